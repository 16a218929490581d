"""
api/routes/comments.py -- Comment thread REST endpoints.

Routes:
  GET    /api/comments/post/{post_id}      -- nested thread + total (public)
  POST   /api/comments                     -- create (requires auth)
  PUT    /api/comments/{comment_id}        -- edit content (author or admin)
  DELETE /api/comments/{comment_id}        -- soft delete (author or admin)
  PATCH  /api/comments/{comment_id}/visibility -- hide/unhide (admin only)

Errors from comments/ map to statuses in one place, _http_error():
  CommentValidationError 400, AuthenticationRequiredError 401,
  PermissionDeniedError 403, CommentNotFoundError 404.
Store failures (SQLAlchemyError) are handled app-wide in api/main.py.

Edit/delete look the comment up before checking identity, so an unknown id
is 404 for every caller, anonymous included.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.limiter import limiter
from api.models import (
    CommentCreate,
    CommentCreatedResponse,
    CommentOut,
    CommentUpdate,
    SuccessResponse,
    ThreadResponse,
    VisibilityUpdate,
)
from auth.dependencies import get_acting_user, get_current_user
from auth.models import Principal
from comments.errors import (
    AuthenticationRequiredError,
    CommentError,
    CommentNotFoundError,
    CommentValidationError,
    PermissionDeniedError,
)
from comments.policy import authorize_moderation, authorize_mutation
from comments.store import CommentStore
from comments.thread import build_thread
from core.config import get_settings

# Auth policy:
# - GET    /comments/post/{post_id}:       public
# - POST   /comments:                      verified token required (get_current_user)
# - PUT    /comments/{id}:                 author or admin (comments.policy)
# - DELETE /comments/{id}:                 author or admin (comments.policy)
# - PATCH  /comments/{id}/visibility:      admin only (comments.policy)
router = APIRouter()

_ERROR_STATUS: list[tuple[type[CommentError], int, str]] = [
    (CommentValidationError, 400, "validation_error"),
    (AuthenticationRequiredError, 401, "unauthorized"),
    (PermissionDeniedError, 403, "forbidden"),
    (CommentNotFoundError, 404, "not_found"),
]


def _http_error(exc: CommentError) -> HTTPException:
    for exc_type, status, code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            message = "Comment not found." if status == 404 else str(exc)
            return HTTPException(status_code=status, detail={"code": code, "message": message})
    return HTTPException(status_code=500, detail={"code": "internal_error", "message": "Comment operation failed."})


# ---------------------------------------------------------------------------
# Public read
# ---------------------------------------------------------------------------


@router.get("/comments/post/{post_id}", response_model=ThreadResponse)
def list_comments(request: Request, post_id: int) -> ThreadResponse:
    """Return the post's visible comments as root comments with nested replies."""
    store: CommentStore = request.app.state.comment_store
    thread = build_thread(store.list_for_post(post_id))
    return ThreadResponse(
        comments=[CommentOut.from_comment(c) for c in thread.root_comments],
        total=thread.total,
    )


# ---------------------------------------------------------------------------
# Authenticated writes
# ---------------------------------------------------------------------------


# @limiter.limit goes under @router so the registered endpoint is the limited one.
@router.post("/comments", response_model=CommentCreatedResponse, status_code=201)
@limiter.limit(lambda: get_settings().comment_rate_limit)
def create_comment(
    request: Request,
    body: CommentCreate,
    current_user: Principal = Depends(get_current_user),
) -> CommentCreatedResponse:
    """Attach a comment (or a reply, with parent_id) to a post.

    Author name and avatar are copied from the token claims at this moment.
    """
    store: CommentStore = request.app.state.comment_store
    try:
        comment = store.create(
            post_id=body.post_id,
            parent_id=body.parent_id,
            author_id=current_user.id,
            author_name=current_user.name,
            author_avatar=current_user.avatar,
            content=body.content,
        )
    except CommentError as exc:
        raise _http_error(exc) from exc
    return CommentCreatedResponse(comment=CommentOut.from_comment(comment))


@router.put("/comments/{comment_id}", response_model=SuccessResponse)
def update_comment(
    request: Request,
    comment_id: int,
    body: CommentUpdate,
    actor: Principal | None = Depends(get_acting_user),
) -> SuccessResponse:
    """Replace a comment's content. Author or admin only."""
    store: CommentStore = request.app.state.comment_store
    try:
        authorize_mutation(comment_id, store.get(comment_id), actor)
        store.update(comment_id, body.content)
    except CommentError as exc:
        raise _http_error(exc) from exc
    return SuccessResponse()


@router.delete("/comments/{comment_id}", response_model=SuccessResponse)
def delete_comment(
    request: Request,
    comment_id: int,
    actor: Principal | None = Depends(get_acting_user),
) -> SuccessResponse:
    """Soft delete: hide the row and replace its content with "[deleted]".

    The row stays so replies keep their parent. Repeating the call is harmless.
    """
    store: CommentStore = request.app.state.comment_store
    try:
        authorize_mutation(comment_id, store.get(comment_id), actor)
        store.soft_delete(comment_id)
    except CommentError as exc:
        raise _http_error(exc) from exc
    return SuccessResponse()


@router.patch("/comments/{comment_id}/visibility", response_model=SuccessResponse)
def set_comment_visibility(
    request: Request,
    comment_id: int,
    body: VisibilityUpdate,
    actor: Principal | None = Depends(get_acting_user),
) -> SuccessResponse:
    """Moderation: hide or unhide a comment without changing its content. Admin only."""
    store: CommentStore = request.app.state.comment_store
    try:
        authorize_moderation(actor)
        store.set_visibility(comment_id, body.is_hidden)
    except CommentError as exc:
        raise _http_error(exc) from exc
    return SuccessResponse()
