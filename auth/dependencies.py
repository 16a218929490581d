"""
auth/dependencies.py -- Identity resolution and FastAPI Depends() helpers.

resolve_principal() is called by the identity middleware in api/main.py on
every request, before any route handler. It reads only the
Authorization: Bearer <token> header and stores the result (a Principal or
None) on request.state.user. A missing, malformed, expired, or forged token
leaves the request anonymous -- this layer never produces an error response.

Route-level helpers then read request.state.user:
  get_optional_user() -- Principal | None, for routes open to anonymous callers.
  get_current_user()  -- raises HTTP 401 when anonymous.

Ownership and admin checks for comment mutations live in comments/policy.py,
because they need the target comment loaded first.

  get_acting_user()   -- like get_optional_user(), plus legacy headers.

Legacy headers: when TRUST_IDENTITY_HEADERS=true, edit/delete/moderation
routes also accept X-User-Id / X-User-Admin. This lets a client self-assert
admin and is off by default.

Layer rule: no imports from api/ or comments/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import Principal
from auth.tokens import principal_from_claims, verify_token
from core.config import get_settings

logger = logging.getLogger("folio.auth")

_BEARER_PREFIX = "Bearer "


def resolve_principal(request: Request) -> Principal | None:
    """Best-effort identity from the Authorization header. Never raises."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None

    token = auth_header[len(_BEARER_PREFIX) :].strip()
    if not token:
        return None

    claims = verify_token(token)
    if claims is None:
        return None
    return principal_from_claims(claims)


def get_optional_user(request: Request) -> Principal | None:
    """Return the verified Principal, or None for anonymous callers."""
    return getattr(request.state, "user", None)


def get_acting_user(request: Request) -> Principal | None:
    """Identity for edit, delete, and moderation checks.

    Same as get_optional_user() unless TRUST_IDENTITY_HEADERS is on. Then
    X-User-Id overrides the token's user id and X-User-Admin: true grants
    admin, mirroring the legacy clients. X-User-Admin without X-User-Id is
    ignored.
    """
    principal = get_optional_user(request)
    if not get_settings().trust_identity_headers:
        return principal

    header_id = request.headers.get("X-User-Id", "").strip()
    if not header_id:
        return principal

    logger.warning("Identity taken from X-User-Id header for %s %s", request.method, request.url.path)
    header_admin = request.headers.get("X-User-Admin", "") == "true"
    return Principal(
        id=header_id,
        name=principal.name if principal else "",
        is_admin=header_admin or bool(principal and principal.is_admin),
    )


def get_current_user(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.post("/comments")
        async def route(user: Principal = Depends(get_current_user)): ...
    """
    principal = get_optional_user(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal
