"""FastAPI dependencies for session authentication.

FLOW:
1. Client calls an endpoint with ``Authorization: Bearer <supabase jwt>``
2. The token is verified locally against the Supabase JWT secret
3. The role resolver loads the profile and platform roles
4. Handlers receive a ``CurrentUser``; admin-only routes add ``require_admin``
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from agora_api.auth import tokens
from agora_api.auth.guard import Action, authorize
from agora_api.auth.roles import CurrentUser, RoleResolver
from agora_api.config.env import get_jwt_audience, get_jwt_secret
from agora_api.context import user_id_var
from agora_api.db.store import DataStore, get_store
from agora_api.errors import Unauthorized

logger = logging.getLogger(__name__)


def get_current_user(
    authorization: Optional[str] = Header(None, description="Bearer <Supabase access token>"),
    store: DataStore = Depends(get_store),
) -> CurrentUser:
    """Authenticate the request and resolve the caller's roles.

    Raises:
        Unauthorized: Missing/invalid token, or no profile for the subject
    """
    token = tokens.bearer_token(authorization)
    if token is None:
        raise Unauthorized("Missing token")

    identity = tokens.verify(token, get_jwt_secret(), audience=get_jwt_audience())
    if identity is None:
        raise Unauthorized("Invalid token")

    user = RoleResolver(store).resolve(identity)
    user_id_var.set(user.id)

    logger.info(
        "auth.session.resolved",
        extra={"user_id": user.id, "roles": user.roles},
    )
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Require the platform ``admin`` role.

    Raises:
        Forbidden: If the caller is not an admin
    """
    authorize(user, Action.MANAGE_USERS, message="Admins only")
    return user
