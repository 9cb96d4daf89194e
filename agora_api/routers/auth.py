"""Current-user endpoints.

Endpoints:
- GET /auth/me: authenticated user with resolved platform roles
- PUT /auth/me: update own profile (username, bio, avatar_url)

Signup/login happen directly against Supabase Auth from the frontend; the
profile row is created on the Supabase side.
"""

import logging

from fastapi import APIRouter, Depends

from agora_api.auth.dependencies import get_current_user
from agora_api.auth.roles import CurrentUser
from agora_api.db.records import Table
from agora_api.db.store import DataStore, get_store
from agora_api.errors import Unauthorized, UpstreamError
from agora_api.schemas import MeResponse, ProfileResponse, ProfileUpdateRequest

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=MeResponse)
def get_me(user: CurrentUser = Depends(get_current_user)) -> MeResponse:
    """Return the authenticated user (token claims + profile + roles)."""
    return MeResponse(user=user)


@router.put("/me", response_model=ProfileResponse)
def update_me(
    request: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DataStore = Depends(get_store),
) -> ProfileResponse:
    """Update the caller's profile.

    Raises:
        Unauthorized: Profile disappeared between auth and update
        UpstreamError (UPDATE_FAILED): Store rejected the update (e.g. username taken)
    """
    patch = request.model_dump(mode="json", exclude_unset=True)
    if not patch:
        profile = store.select_one(Table.PROFILES, {"id": user.id})
    else:
        try:
            profile = store.update(Table.PROFILES, {"id": user.id}, patch)
        except UpstreamError as e:
            raise e.with_code("UPDATE_FAILED")

    if profile is None:
        raise Unauthorized("User not found")

    logger.info(
        "profile.updated",
        extra={"user_id": user.id, "fields": sorted(patch)},
    )
    return ProfileResponse(
        user=profile.model_dump(mode="json", include={"id", "username", "bio", "avatar_url"})
    )
