"""Post endpoints.

Endpoints:
- GET    /posts             list (newest first)
- POST   /posts             create (body names the subreddit)
- GET    /posts/{id}        detail
- DELETE /posts/{id}        delete (author or admin)
- POST   /posts/{id}/vote   vote -1 / 0 / 1 and return the recomputed score
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
from agora_api.errors import UpstreamError
from agora_api.schemas import OkResponse, PostCreateWithSubredditRequest, VoteRequest, VoteResponse
from agora_api.services.content import create_post, get_post
from agora_api.services.votes import POST_VOTES, cast_vote

router = APIRouter(prefix="/posts", tags=["posts"])
logger = logging.getLogger(__name__)


@router.get("")
def list_posts(store: DataStore = Depends(get_store)) -> list[dict[str, Any]]:
    try:
        posts = store.select(Table.POSTS, order="created_at", descending=True)
    except UpstreamError as e:
        raise e.with_code("LIST_POSTS_ERROR")
    return [post.model_dump(mode="json") for post in posts]


@router.post("")
def create_post_endpoint(
    request: PostCreateWithSubredditRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    fields = request.model_dump(mode="json", exclude_none=True, exclude={"subreddit_id"})
    post = create_post(store, str(request.subreddit_id), user.id, fields)
    return post.model_dump(mode="json")


@router.get("/{post_id}")
def get_post_detail(post_id: UUID, store: DataStore = Depends(get_store)) -> dict[str, Any]:
    return get_post(store, str(post_id)).model_dump(mode="json")


@router.delete("/{post_id}", response_model=OkResponse)
def delete_post(
    post_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> OkResponse:
    """Delete a post. Author or platform admin."""
    pid = str(post_id)
    post = get_post(store, pid)
    authorize(
        user,
        Action.DELETE_POST,
        ResourceRef(author_id=post.author_id),
        message="Not allowed to delete this post",
    )

    try:
        store.delete(Table.POSTS, {"id": pid})
    except UpstreamError as e:
        raise e.with_code("DELETE_POST_ERROR")

    logger.info("post.deleted", extra={"post_id": pid, "user_id": user.id})
    return OkResponse()


@router.post("/{post_id}/vote", response_model=VoteResponse)
def vote_post(
    post_id: UUID,
    request: VoteRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> VoteResponse:
    pid = str(post_id)
    get_post(store, pid)
    try:
        score = cast_vote(store, POST_VOTES, user.id, pid, request.value)
    except UpstreamError as e:
        raise e.with_code("VOTE_ERROR")
    return VoteResponse(score=score)
