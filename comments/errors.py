"""
comments/errors.py -- Domain exceptions for the comment subsystem.

Stores and the policy module raise these; api/routes/comments.py maps them
to HTTP status codes:

  CommentValidationError       -> 400
  AuthenticationRequiredError  -> 401
  PermissionDeniedError        -> 403
  CommentNotFoundError         -> 404
"""


class CommentError(Exception):
    """Base class for comment subsystem errors."""


class CommentValidationError(CommentError, ValueError):
    """Required input is missing or blank."""


class CommentNotFoundError(CommentError, LookupError):
    """No comment row with the requested id."""

    def __init__(self, comment_id: int) -> None:
        super().__init__(f"Comment {comment_id} not found")
        self.comment_id = comment_id


class AuthenticationRequiredError(CommentError):
    """The operation needs an identity and the request has none."""


class PermissionDeniedError(CommentError):
    """The identity is neither the comment's author nor an admin."""
