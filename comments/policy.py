"""
comments/policy.py -- Who may change a comment.

Edit and soft delete: the comment's author, or any admin.
Visibility (moderation): admins only, no author exception.

Check order for edit/delete is fixed: the target must exist first, so a
missing id is always "not found" even for anonymous callers. Only then are
identity and ownership evaluated.

Admin status is whatever the request's Principal says, i.e. the isAdmin claim
frozen into the token at issuance. The user store is not re-read.
"""

from __future__ import annotations

from auth.models import Principal
from comments.errors import AuthenticationRequiredError, CommentNotFoundError, PermissionDeniedError
from comments.models import Comment


def can_modify(comment: Comment, principal: Principal) -> bool:
    return principal.is_admin or comment.author_id == principal.id


def authorize_mutation(comment_id: int, comment: Comment | None, principal: Principal | None) -> Principal:
    """Gate update and soft delete. Returns the acting Principal on success.

    Raises, in this order:
        CommentNotFoundError         -- comment is None
        AuthenticationRequiredError  -- principal is None
        PermissionDeniedError        -- neither author nor admin
    """
    if comment is None:
        raise CommentNotFoundError(comment_id)
    if principal is None:
        raise AuthenticationRequiredError("Authentication required")
    if not can_modify(comment, principal):
        raise PermissionDeniedError("Not authorized")
    return principal


def authorize_moderation(principal: Principal | None) -> Principal:
    """Gate the hide/unhide toggle. Admin only."""
    if principal is None:
        raise AuthenticationRequiredError("Authentication required")
    if not principal.is_admin:
        raise PermissionDeniedError("Admin access required")
    return principal
