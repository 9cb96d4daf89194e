"""Access guard: per-action allow/deny decisions.

Decisions combine the authenticated user, their platform roles and the target
resource (author or the user's membership role in a subreddit). Everything is
evaluated per request; memberships are read fresh each time and never cached.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from agora_api.auth.roles import CurrentUser
from agora_api.db.records import MembershipRole, Table
from agora_api.db.store import DataStore
from agora_api.errors import Forbidden

logger = logging.getLogger(__name__)


class Action(str, Enum):
    MANAGE_USERS = "manage_users"
    DELETE_POST = "delete_post"
    DELETE_COMMENT = "delete_comment"
    UPDATE_SUBREDDIT = "update_subreddit"
    DELETE_SUBREDDIT = "delete_subreddit"
    LIST_MEMBERS = "list_members"
    SET_MEMBER_ROLE = "set_member_role"


@dataclass(frozen=True)
class ResourceRef:
    """What the guard needs to know about the target resource."""

    author_id: Optional[str] = None
    membership_role: Optional[str] = None


_OWNER = frozenset({MembershipRole.OWNER.value})
_OWNER_OR_MOD = frozenset({MembershipRole.OWNER.value, MembershipRole.MOD.value})

# Membership roles accepted per subreddit-scoped action
_MEMBERSHIP_RULES: dict[Action, frozenset[str]] = {
    Action.UPDATE_SUBREDDIT: _OWNER,
    Action.SET_MEMBER_ROLE: _OWNER,
    Action.DELETE_SUBREDDIT: _OWNER,
    Action.LIST_MEMBERS: _OWNER_OR_MOD,
}

# Actions a platform admin may always perform
_ADMIN_OVERRIDES = frozenset({
    Action.MANAGE_USERS,
    Action.DELETE_POST,
    Action.DELETE_COMMENT,
    Action.DELETE_SUBREDDIT,
})

_OWNED_ACTIONS = frozenset({Action.DELETE_POST, Action.DELETE_COMMENT})


def allowed(user: CurrentUser, action: Action, resource: Optional[ResourceRef] = None) -> bool:
    """Return True if ``user`` may perform ``action`` on ``resource``."""
    if action in _ADMIN_OVERRIDES and user.is_admin:
        return True

    resource = resource or ResourceRef()

    if action in _OWNED_ACTIONS:
        return resource.author_id is not None and resource.author_id == user.id

    accepted = _MEMBERSHIP_RULES.get(action)
    if accepted is not None:
        return resource.membership_role in accepted

    return False


def authorize(
    user: CurrentUser,
    action: Action,
    resource: Optional[ResourceRef] = None,
    message: str = "Forbidden",
) -> None:
    """Raise ``Forbidden`` unless ``allowed(user, action, resource)``."""
    if allowed(user, action, resource):
        return

    logger.warning(
        "auth.access.denied",
        extra={
            "event": "auth.access.denied",
            "user_id": user.id,
            "action": action.value,
            "roles": user.roles,
        },
    )
    raise Forbidden(message)


def membership_role(store: DataStore, user_id: str, subreddit_id: str) -> Optional[str]:
    """Fresh lookup of ``user_id``'s role in ``subreddit_id`` (None if not a member)."""
    membership = store.select_one(
        Table.SUB_MEMBERS,
        {"subreddit_id": subreddit_id, "user_id": user_id},
    )
    return membership.role if membership is not None else None
