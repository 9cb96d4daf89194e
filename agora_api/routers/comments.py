"""Comment endpoints.

Endpoints:
- GET    /posts/{id}/comments   list a post's comments (oldest first)
- POST   /posts/{id}/comments   comment, optionally replying to a comment
- DELETE /comments/{id}         delete (author or admin)
- POST   /comments/{id}/vote    vote -1 / 0 / 1 and return the recomputed score
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends

from agora_api.auth.dependencies import get_current_user
from agora_api.auth.guard import Action, ResourceRef, authorize
from agora_api.auth.roles import CurrentUser
from agora_api.db.records import Table
from agora_api.db.store import DataStore, get_store
from agora_api.errors import UpstreamError, ValidationError
from agora_api.schemas import CommentCreateRequest, OkResponse, VoteRequest, VoteResponse
from agora_api.services.content import get_comment, get_post
from agora_api.services.votes import COMMENT_VOTES, cast_vote

router = APIRouter(tags=["comments"])
logger = logging.getLogger(__name__)


@router.get("/posts/{post_id}/comments")
def list_comments(post_id: UUID, store: DataStore = Depends(get_store)) -> list[dict[str, Any]]:
    try:
        comments = store.select(Table.COMMENTS, {"post_id": str(post_id)}, order="created_at")
    except UpstreamError as e:
        raise e.with_code("LIST_COMMENTS_ERROR")
    return [comment.model_dump(mode="json") for comment in comments]


@router.post("/posts/{post_id}/comments")
def create_comment(
    post_id: UUID,
    request: CommentCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    """Create a comment on a post.

    Raises:
        NotFound (POST_NOT_FOUND): No such post
        ValidationError: ``parent_id`` is not a comment on the same post
    """
    pid = str(post_id)
    get_post(store, pid)

    row: dict[str, Any] = {"post_id": pid, "author_id": user.id, "content": request.content}
    if request.parent_id is not None:
        parent = store.select_one(Table.COMMENTS, {"id": str(request.parent_id)})
        if parent is None or parent.post_id != pid:
            raise ValidationError(
                "parent_id must reference a comment on the same post",
                details={"field": "parent_id"},
            )
        row["parent_id"] = parent.id

    try:
        comment = store.insert(Table.COMMENTS, row)
    except UpstreamError as e:
        raise e.with_code("CREATE_COMMENT_ERROR")

    logger.info(
        "comment.created",
        extra={"comment_id": comment.id, "post_id": pid, "user_id": user.id},
    )
    return comment.model_dump(mode="json")


@router.delete("/comments/{comment_id}", response_model=OkResponse)
def delete_comment(
    comment_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> OkResponse:
    """Delete a comment. Author or platform admin."""
    cid = str(comment_id)
    comment = get_comment(store, cid)
    authorize(
        user,
        Action.DELETE_COMMENT,
        ResourceRef(author_id=comment.author_id),
        message="Not allowed to delete this comment",
    )

    try:
        store.delete(Table.COMMENTS, {"id": cid})
    except UpstreamError as e:
        raise e.with_code("DELETE_COMMENT_ERROR")

    logger.info("comment.deleted", extra={"comment_id": cid, "user_id": user.id})
    return OkResponse()


@router.post("/comments/{comment_id}/vote", response_model=VoteResponse)
def vote_comment(
    comment_id: UUID,
    request: VoteRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> VoteResponse:
    cid = str(comment_id)
    get_comment(store, cid)
    try:
        score = cast_vote(store, COMMENT_VOTES, user.id, cid, request.value)
    except UpstreamError as e:
        raise e.with_code("VOTE_COMMENT_ERROR")
    return VoteResponse(score=score)
