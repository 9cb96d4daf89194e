"""Admin endpoints for platform user-role management.

SECURITY:
- Every route depends on ``require_admin`` (platform ``admin`` role)
- Role replacement is delete-then-insert without a transaction; a failed
  insert leaves the user with no assignments, which resolves to ``member``
"""

import logging
from collections import defaultdict
from uuid import UUID

from fastapi import APIRouter, Depends

from agora_api.auth.dependencies import require_admin
from agora_api.auth.roles import CurrentUser, known_role_names
from agora_api.db.records import Table
from agora_api.db.store import DataStore, get_store
from agora_api.errors import NotFound, UpstreamError, ValidationError
from agora_api.schemas import AdminUserItem, SetUserRoleRequest, SetUserRoleResponse

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/users", response_model=list[AdminUserItem])
def list_users(
    admin: CurrentUser = Depends(require_admin),
    store: DataStore = Depends(get_store),
) -> list[AdminUserItem]:
    """List every profile with its platform role names (ordered by username)."""
    try:
        profiles = store.select(Table.PROFILES, order="username")
        assignments = store.select(Table.USER_ROLES)
        catalog = store.select(Table.ROLES)
    except UpstreamError as e:
        raise e.with_code("LIST_USERS_ERROR")

    by_user = defaultdict(list)
    for assignment in assignments:
        by_user[assignment.user_id].append(assignment)

    return [
        AdminUserItem(
            id=profile.id,
            username=profile.username,
            roles=known_role_names(by_user.get(profile.id, []), catalog),
        )
        for profile in profiles
    ]


@router.post("/users/{user_id}/role", response_model=SetUserRoleResponse)
def set_user_role(
    user_id: UUID,
    request: SetUserRoleRequest,
    admin: CurrentUser = Depends(require_admin),
    store: DataStore = Depends(get_store),
) -> SetUserRoleResponse:
    """Replace a user's platform roles with a single role.

    Raises:
        NotFound (USER_NOT_FOUND): No profile for ``user_id``
        ValidationError (ROLE_NOT_FOUND): Role missing from the catalog
        UpstreamError (ROLE_UPDATE_ERROR): Store rejected a lookup or the role write
    """
    target_id = str(user_id)

    try:
        profile = store.select_one(Table.PROFILES, {"id": target_id})
        role = store.select_one(Table.ROLES, {"name": request.role})
    except UpstreamError as e:
        raise e.with_code("ROLE_UPDATE_ERROR")

    if profile is None:
        raise NotFound("User not found", code="USER_NOT_FOUND")
    if role is None:
        raise ValidationError(f"Role '{request.role}' not found", code="ROLE_NOT_FOUND")

    try:
        store.delete(Table.USER_ROLES, {"user_id": target_id})
        store.insert(Table.USER_ROLES, {"user_id": target_id, "role_id": role.id})
    except UpstreamError as e:
        raise e.with_code("ROLE_UPDATE_ERROR")

    logger.info(
        "admin.user_role.set",
        extra={"target_user_id": target_id, "role": request.role, "user_id": admin.id},
    )
    return SetUserRoleResponse(role=request.role)
