"""Pydantic schemas for API requests/responses."""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    Field,
    StrictInt,
    StringConstraints,
    TypeAdapter,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from agora_api.auth.roles import CurrentUser
from agora_api.db.records import PostType

_ANY_URL = TypeAdapter(AnyUrl)


def _check_url(value: str) -> str:
    # Validated as a URL, stored exactly as sent
    try:
        _ANY_URL.validate_python(value)
    except PydanticValidationError:
        raise ValueError("must be a valid URL") from None
    return value


UrlStr = Annotated[str, AfterValidator(_check_url)]
AvatarUrl = Annotated[str, StringConstraints(max_length=300), AfterValidator(_check_url)]


# ============================================================================
# Error envelope
# ============================================================================


class ErrorEnvelope(BaseModel):
    """Shared error body for every non-2xx response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable explanation")
    details: Optional[Any] = Field(None, description="Field-level or upstream details")


class OkResponse(BaseModel):
    ok: bool = True


# ============================================================================
# /auth/me
# ============================================================================


class ProfileUpdateRequest(BaseModel):
    """Request body for PUT /auth/me. Only provided fields are written."""

    username: Optional[str] = Field(None, min_length=3, max_length=50)
    bio: Optional[str] = Field(None, max_length=300)
    avatar_url: Optional[AvatarUrl] = Field(None, description="Avatar image URL")


class MeResponse(BaseModel):
    user: CurrentUser


class ProfileResponse(BaseModel):
    user: dict[str, Any]


# ============================================================================
# Subreddits
# ============================================================================


class SubredditCreateRequest(BaseModel):
    """Request body for POST /subreddits."""

    name: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = Field(None, max_length=300)
    is_private: bool = False


class SubredditUpdateRequest(BaseModel):
    """Request body for PUT /subreddits/{id}."""

    description: Optional[str] = Field(None, max_length=300)
    is_private: Optional[bool] = None


class MemberRoleRequest(BaseModel):
    """Request body for POST /subreddits/{id}/members/{user_id}/role."""

    role: Literal["member", "mod"]


class MemberItem(BaseModel):
    user_id: str
    role: str
    created_at: Optional[datetime] = None


# ============================================================================
# Posts & comments
# ============================================================================


class PostFields(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    content: str = Field(..., min_length=1, max_length=2000)
    type: PostType = PostType.TEXT
    media_urls: Optional[list[UrlStr]] = None


class PostCreateRequest(PostFields):
    """Request body for POST /subreddits/{id}/posts."""


class PostCreateWithSubredditRequest(PostFields):
    """Request body for POST /posts."""

    subreddit_id: UUID


class CommentCreateRequest(BaseModel):
    """Request body for POST /posts/{id}/comments."""

    content: str = Field(..., min_length=1, max_length=1000)
    parent_id: Optional[UUID] = None


class VoteRequest(BaseModel):
    """Request body for POST /posts/{id}/vote and /comments/{id}/vote.

    ``0`` retracts the caller's vote.
    """

    value: StrictInt

    @field_validator("value")
    @classmethod
    def _value_in_range(cls, value: int) -> int:
        if value not in (-1, 0, 1):
            raise ValueError("value must be -1, 0 or 1")
        return value


class VoteResponse(BaseModel):
    ok: bool = True
    score: int


# ============================================================================
# Admin
# ============================================================================


class SetUserRoleRequest(BaseModel):
    """Request body for POST /admin/users/{id}/role."""

    role: Literal["admin", "member"]


class SetUserRoleResponse(BaseModel):
    ok: bool = True
    role: str


class AdminUserItem(BaseModel):
    id: str
    username: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
