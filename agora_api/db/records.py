"""Typed records for the Supabase tables.

Rows are validated once, when they cross the data store boundary; handlers
only ever see these models. Unknown columns are kept (``extra="allow"``) so
that columns added on the database side still reach API clients.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RoleName(str, Enum):
    """Platform-wide role catalog."""

    ADMIN = "admin"
    MOD = "mod"
    MEMBER = "member"
    OWNER = "owner"


class MembershipRole(str, Enum):
    """Per-subreddit role."""

    OWNER = "owner"
    MOD = "mod"
    MEMBER = "member"


class PostType(str, Enum):
    TEXT = "text"
    LINK = "link"
    IMAGE = "image"


class Record(BaseModel):
    """Base for all table records."""

    model_config = ConfigDict(extra="allow", use_enum_values=True)


class Profile(Record):
    id: str
    username: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class Role(Record):
    id: int
    name: str


class UserRole(Record):
    user_id: str
    role_id: int


class Subreddit(Record):
    id: str
    name: str
    description: Optional[str] = None
    is_private: bool = False
    created_at: Optional[datetime] = None


class Membership(Record):
    user_id: str
    subreddit_id: str
    role: MembershipRole
    created_at: Optional[datetime] = None


class Post(Record):
    id: str
    subreddit_id: str
    author_id: str
    title: str
    content: Optional[str] = None
    type: PostType = PostType.TEXT
    media_urls: Optional[list[str]] = None
    score: int = 0
    created_at: Optional[datetime] = None


class Comment(Record):
    id: str
    post_id: str
    author_id: str
    parent_id: Optional[str] = None
    content: str
    score: int = 0
    created_at: Optional[datetime] = None


class PostVote(Record):
    user_id: str
    post_id: str
    value: int = Field(..., ge=-1, le=1)


class CommentVote(Record):
    user_id: str
    comment_id: str
    value: int = Field(..., ge=-1, le=1)


class Table(str, Enum):
    PROFILES = "profiles"
    ROLES = "roles"
    USER_ROLES = "user_roles"
    SUBREDDITS = "subreddits"
    SUB_MEMBERS = "sub_members"
    POSTS = "posts"
    POST_VOTES = "post_votes"
    COMMENTS = "comments"
    COMMENT_VOTES = "comment_votes"


RECORD_TYPES: dict[Table, type[Record]] = {
    Table.PROFILES: Profile,
    Table.ROLES: Role,
    Table.USER_ROLES: UserRole,
    Table.SUBREDDITS: Subreddit,
    Table.SUB_MEMBERS: Membership,
    Table.POSTS: Post,
    Table.POST_VOTES: PostVote,
    Table.COMMENTS: Comment,
    Table.COMMENT_VOTES: CommentVote,
}
