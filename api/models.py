"""
API request and response models for the portfolio REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
comments/models.py, which own the internal domain representation. Route
handlers map between the two.

Request bodies keep their required fields Optional on purpose: a missing
post_id or blank content must come back as a 400 validation_error from the
comment store, not as FastAPI's generic 422.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Principal
from comments.models import Comment

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    """Request body for POST /api/comments."""

    post_id: Optional[int] = None
    parent_id: Optional[int] = None
    content: Optional[str] = None


class CommentUpdate(BaseModel):
    """Request body for PUT /api/comments/{id}."""

    content: Optional[str] = None


class VisibilityUpdate(BaseModel):
    """Request body for PATCH /api/comments/{id}/visibility."""

    is_hidden: bool


# ---------------------------------------------------------------------------
# Comment responses
# ---------------------------------------------------------------------------


class CommentOut(BaseModel):
    """One comment with its nested replies."""

    id: int
    post_id: int
    parent_id: Optional[int]
    author_id: str
    author_name: str
    author_avatar: Optional[str]
    content: str
    is_hidden: bool
    created_at: str
    replies: list[CommentOut] = Field(default_factory=list)

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentOut":
        """Map a Comment (and whatever replies hang off it) to the wire shape."""
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            author_name=comment.author_name,
            author_avatar=comment.author_avatar,
            content=comment.content,
            is_hidden=comment.is_hidden,
            created_at=comment.created_at,
            replies=[cls.from_comment(r) for r in comment.replies],
        )


class ThreadResponse(BaseModel):
    """Response for GET /api/comments/post/{post_id}.

    total is the number of visible rows fetched, which can exceed the number
    of nodes reachable in comments when replies were orphaned.
    """

    comments: list[CommentOut]
    total: int


class CommentCreatedResponse(BaseModel):
    success: bool = True
    comment: CommentOut


class SuccessResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Auth responses
# ---------------------------------------------------------------------------


class MeUser(BaseModel):
    """Claims of the presented token, in the frontend's camelCase."""

    id: str
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    isAdmin: bool = False

    @classmethod
    def from_principal(cls, principal: Principal) -> "MeUser":
        return cls(
            id=principal.id,
            name=principal.name,
            email=principal.email,
            avatar=principal.avatar,
            isAdmin=principal.is_admin,
        )


class MeResponse(BaseModel):
    """Response for GET /api/auth/me. user is null for anonymous callers."""

    user: Optional[MeUser] = None


class AuthorizationUrlResponse(BaseModel):
    url: str


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Remove token from client storage"


class OAuthProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
