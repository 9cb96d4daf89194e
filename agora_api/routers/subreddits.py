"""Subreddit endpoints.

Endpoints:
- GET    /subreddits                              list (newest first)
- POST   /subreddits                              create; creator becomes owner
- GET    /subreddits/slug/{name}                  detail by name
- GET    /subreddits/{id}                         detail
- PUT    /subreddits/{id}                         update (owner)
- DELETE /subreddits/{id}                         delete (owner or admin)
- GET    /subreddits/{id}/posts                   posts (newest first)
- POST   /subreddits/{id}/posts                   create post
- POST   /subreddits/{id}/join                    join as member (idempotent)
- POST   /subreddits/{id}/leave                   leave
- GET    /subreddits/{id}/members                 members (owner or mod)
- POST   /subreddits/{id}/members/{user_id}/role  set member role (owner)
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends

from agora_api.auth.dependencies import get_current_user
from agora_api.auth.guard import Action, ResourceRef, authorize, membership_role
from agora_api.auth.roles import CurrentUser
from agora_api.db.records import MembershipRole, Table
from agora_api.db.store import DataStore, get_store
from agora_api.errors import Forbidden, NotFound, UpstreamError
from agora_api.schemas import (
    MemberItem,
    MemberRoleRequest,
    OkResponse,
    PostCreateRequest,
    SubredditCreateRequest,
    SubredditUpdateRequest,
)
from agora_api.services.content import create_post, get_subreddit

router = APIRouter(prefix="/subreddits", tags=["subreddits"])
logger = logging.getLogger(__name__)

MEMBERSHIP_CONFLICT_KEYS = ("user_id", "subreddit_id")


def _subreddit_ref(store: DataStore, user: CurrentUser, subreddit_id: str) -> ResourceRef:
    """Guard input for subreddit-scoped actions (fresh membership read)."""
    return ResourceRef(membership_role=membership_role(store, user.id, subreddit_id))


@router.get("")
def list_subreddits(store: DataStore = Depends(get_store)) -> list[dict[str, Any]]:
    try:
        subreddits = store.select(Table.SUBREDDITS, order="created_at", descending=True)
    except UpstreamError as e:
        raise e.with_code("LIST_SUB_ERROR")
    return [subreddit.model_dump(mode="json") for subreddit in subreddits]


@router.post("")
def create_subreddit(
    request: SubredditCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    """Create a subreddit and make the caller its owner.

    The subreddit insert and the owner membership upsert are two separate
    writes; a failure of the second is reported but the subreddit remains.
    """
    try:
        subreddit = store.insert(Table.SUBREDDITS, request.model_dump(mode="json"))
        store.upsert(
            Table.SUB_MEMBERS,
            {
                "user_id": user.id,
                "subreddit_id": subreddit.id,
                "role": MembershipRole.OWNER.value,
            },
            conflict_keys=MEMBERSHIP_CONFLICT_KEYS,
        )
    except UpstreamError as e:
        raise e.with_code("CREATE_SUB_ERROR")

    logger.info(
        "subreddit.created",
        extra={"subreddit_id": subreddit.id, "subreddit_name": subreddit.name, "user_id": user.id},
    )
    return subreddit.model_dump(mode="json")


@router.get("/slug/{name}")
def get_subreddit_by_name(name: str, store: DataStore = Depends(get_store)) -> dict[str, Any]:
    subreddit = store.select_one(Table.SUBREDDITS, {"name": name})
    if subreddit is None:
        raise NotFound("Subreddit not found", code="SUB_NOT_FOUND")
    return subreddit.model_dump(mode="json")


@router.get("/{subreddit_id}")
def get_subreddit_detail(subreddit_id: UUID, store: DataStore = Depends(get_store)) -> dict[str, Any]:
    return get_subreddit(store, str(subreddit_id)).model_dump(mode="json")


@router.put("/{subreddit_id}")
def update_subreddit(
    subreddit_id: UUID,
    request: SubredditUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    """Update description / visibility. Owner only."""
    sub_id = str(subreddit_id)
    subreddit = get_subreddit(store, sub_id)
    authorize(
        user,
        Action.UPDATE_SUBREDDIT,
        _subreddit_ref(store, user, sub_id),
        message="Owner only",
    )

    patch = request.model_dump(mode="json", exclude_unset=True)
    if not patch:
        return subreddit.model_dump(mode="json")

    try:
        updated = store.update(Table.SUBREDDITS, {"id": sub_id}, patch)
    except UpstreamError as e:
        raise e.with_code("UPDATE_SUB_ERROR")
    if updated is None:
        raise NotFound("Subreddit not found", code="SUB_NOT_FOUND")
    return updated.model_dump(mode="json")


@router.delete("/{subreddit_id}", response_model=OkResponse)
def delete_subreddit(
    subreddit_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> OkResponse:
    """Delete a subreddit. Owner or platform admin."""
    sub_id = str(subreddit_id)
    get_subreddit(store, sub_id)
    authorize(
        user,
        Action.DELETE_SUBREDDIT,
        _subreddit_ref(store, user, sub_id),
        message="Owner or admin only",
    )

    try:
        store.delete(Table.SUBREDDITS, {"id": sub_id})
    except UpstreamError as e:
        raise e.with_code("DELETE_SUB_ERROR")

    logger.info("subreddit.deleted", extra={"subreddit_id": sub_id, "user_id": user.id})
    return OkResponse()


@router.get("/{subreddit_id}/posts")
def list_subreddit_posts(subreddit_id: UUID, store: DataStore = Depends(get_store)) -> list[dict[str, Any]]:
    try:
        posts = store.select(
            Table.POSTS,
            {"subreddit_id": str(subreddit_id)},
            order="created_at",
            descending=True,
        )
    except UpstreamError as e:
        raise e.with_code("LIST_POSTS_ERROR")
    return [post.model_dump(mode="json") for post in posts]


@router.post("/{subreddit_id}/posts")
def create_subreddit_post(
    subreddit_id: UUID,
    request: PostCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    fields = request.model_dump(mode="json", exclude_none=True)
    return create_post(store, str(subreddit_id), user.id, fields).model_dump(mode="json")


@router.post("/{subreddit_id}/join", response_model=OkResponse)
def join_subreddit(
    subreddit_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> OkResponse:
    """Join as ``member``.

    Upserts on (user_id, subreddit_id): repeating the call never creates a
    second row, it overwrites the role.
    """
    sub_id = str(subreddit_id)
    get_subreddit(store, sub_id)
    try:
        store.upsert(
            Table.SUB_MEMBERS,
            {"user_id": user.id, "subreddit_id": sub_id, "role": MembershipRole.MEMBER.value},
            conflict_keys=MEMBERSHIP_CONFLICT_KEYS,
        )
    except UpstreamError as e:
        raise e.with_code("JOIN_ERROR")

    logger.info("subreddit.joined", extra={"subreddit_id": sub_id, "user_id": user.id})
    return OkResponse()


@router.post("/{subreddit_id}/leave", response_model=OkResponse)
def leave_subreddit(
    subreddit_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> OkResponse:
    sub_id = str(subreddit_id)
    try:
        store.delete(Table.SUB_MEMBERS, {"subreddit_id": sub_id, "user_id": user.id})
    except UpstreamError as e:
        raise e.with_code("LEAVE_ERROR")

    logger.info("subreddit.left", extra={"subreddit_id": sub_id, "user_id": user.id})
    return OkResponse()


@router.get("/{subreddit_id}/members", response_model=list[MemberItem])
def list_members(
    subreddit_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> list[MemberItem]:
    """List the subreddit's members. Owner or mod only."""
    sub_id = str(subreddit_id)
    authorize(
        user,
        Action.LIST_MEMBERS,
        _subreddit_ref(store, user, sub_id),
        message="Owner or mod only",
    )

    try:
        members = store.select(Table.SUB_MEMBERS, {"subreddit_id": sub_id}, order="created_at")
    except UpstreamError as e:
        raise e.with_code("MEMBERS_ERROR")
    return [
        MemberItem(user_id=member.user_id, role=member.role, created_at=member.created_at)
        for member in members
    ]


@router.post("/{subreddit_id}/members/{user_id}/role", response_model=OkResponse)
def set_member_role(
    subreddit_id: UUID,
    user_id: UUID,
    request: MemberRoleRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> OkResponse:
    """Promote/demote a member between ``member`` and ``mod``. Owner only."""
    sub_id = str(subreddit_id)
    target_id = str(user_id)
    authorize(
        user,
        Action.SET_MEMBER_ROLE,
        _subreddit_ref(store, user, sub_id),
        message="Owner only",
    )

    target_role = membership_role(store, target_id, sub_id)
    if target_role is None:
        raise NotFound("User is not a member of this subreddit", code="MEMBER_NOT_FOUND")
    if target_role == MembershipRole.OWNER.value:
        raise Forbidden("The owner's role cannot be changed")

    try:
        store.upsert(
            Table.SUB_MEMBERS,
            {"user_id": target_id, "subreddit_id": sub_id, "role": request.role},
            conflict_keys=MEMBERSHIP_CONFLICT_KEYS,
        )
    except UpstreamError as e:
        raise e.with_code("ROLE_UPDATE_ERROR")

    logger.info(
        "subreddit.member_role.set",
        extra={
            "subreddit_id": sub_id,
            "target_user_id": target_id,
            "role": request.role,
            "user_id": user.id,
        },
    )
    return OkResponse()
