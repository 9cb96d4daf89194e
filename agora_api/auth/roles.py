"""Platform role resolution.

FLOW (once per authenticated request):
1. Fetch the profile for the verified subject; no profile → 401
2. Fetch the subject's role assignments and join them to the role catalog,
   keeping only known role names
3. No roles → apply ``member`` to this response and persist it best-effort
   through ``ensure_default_role`` (an idempotent upsert)
4. Merge token claims, profile fields and roles into ``CurrentUser``

Steps 2-3 never fail the request: read or write errors degrade to the
in-memory default.
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from agora_api.auth.tokens import Identity
from agora_api.db.records import Profile, Role, RoleName, Table, UserRole
from agora_api.db.store import DataStore
from agora_api.errors import Unauthorized, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_ROLE = RoleName.MEMBER.value
KNOWN_ROLES = frozenset(role.value for role in RoleName)


class CurrentUser(BaseModel):
    """Authenticated user: token claims + profile + resolved platform roles."""

    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    roles: list[str] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return RoleName.ADMIN.value in self.roles


def known_role_names(assignments: list[UserRole], catalog: list[Role]) -> list[str]:
    """Join assignment role ids to catalog names, dropping unknown names.

    Order follows the assignments; duplicates are collapsed.
    """
    names_by_id = {role.id: role.name for role in catalog}
    names: list[str] = []
    for assignment in assignments:
        name = names_by_id.get(assignment.role_id)
        if name in KNOWN_ROLES and name not in names:
            names.append(name)
    return names


def default_roles(roles: list[str]) -> list[str]:
    """The default-role policy: no roles means ``member``."""
    return list(roles) if roles else [DEFAULT_ROLE]


def ensure_default_role(store: DataStore, user_id: str) -> bool:
    """Persist the ``member`` assignment for ``user_id`` (best-effort).

    Idempotent: the assignment is upserted on ``user_id,role_id`` so two
    concurrent first requests cannot create duplicate rows.

    Returns:
        True if the assignment was written, False otherwise
    """
    try:
        member_role = store.select_one(Table.ROLES, {"name": DEFAULT_ROLE})
    except UpstreamError as e:
        logger.warning(
            "auth.role.default_lookup_failed",
            extra={"user_id": user_id, "error": e.message},
        )
        return False

    if member_role is None:
        logger.warning("auth.role.default_missing", extra={"user_id": user_id})
        return False

    try:
        store.upsert(
            Table.USER_ROLES,
            {"user_id": user_id, "role_id": member_role.id},
            conflict_keys=("user_id", "role_id"),
        )
    except UpstreamError as e:
        logger.warning(
            "auth.role.default_persist_failed",
            extra={"user_id": user_id, "error": e.message},
        )
        return False

    logger.info("auth.role.defaulted", extra={"user_id": user_id})
    return True


class RoleResolver:
    """Resolves a verified identity into a ``CurrentUser``."""

    def __init__(self, store: DataStore):
        self.store = store

    def resolve(self, identity: Identity) -> CurrentUser:
        """Resolve profile and platform roles for ``identity``.

        Raises:
            Unauthorized: If no profile matches the token subject
        """
        profile = self._fetch_profile(identity.subject_id)
        roles = self._fetch_roles(identity.subject_id)

        # Persist only when the read succeeded and observed no roles
        if roles is not None and not roles:
            ensure_default_role(self.store, identity.subject_id)

        return CurrentUser(
            id=profile.id,
            email=identity.email,
            username=profile.username,
            bio=profile.bio,
            avatar_url=profile.avatar_url,
            roles=default_roles(roles or []),
        )

    def _fetch_profile(self, user_id: str) -> Profile:
        try:
            profile = self.store.select_one(Table.PROFILES, {"id": user_id})
        except UpstreamError as e:
            logger.warning(
                "auth.profile.lookup_failed",
                extra={"user_id": user_id, "error": e.message},
            )
            profile = None

        if profile is None:
            raise Unauthorized("User not found")
        return profile

    def _fetch_roles(self, user_id: str) -> Optional[list[str]]:
        """Return known role names, or None if the lookup failed."""
        try:
            assignments = self.store.select(Table.USER_ROLES, {"user_id": user_id})
            if not assignments:
                return []
            catalog = self.store.select(Table.ROLES)
        except UpstreamError as e:
            logger.warning(
                "auth.role.lookup_failed",
                extra={"user_id": user_id, "error": e.message},
            )
            return None
        return known_role_names(assignments, catalog)
