"""
auth/tokens.py -- Credential issue and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), name, email, avatar, isAdmin, iat and exp. Verification
       returns None on any failure -- the identity middleware turns that into
       an anonymous request, never an error response.

  Stateless: there is no session table. A token is valid exactly when its
       signature checks out and exp is in the future. Claims are a snapshot
       taken at issuance; a later change to the user's admin flag is not seen
       until a new token is issued.

  Logout: nothing to invalidate server-side. The client discards the token.

Layer rule: no imports from api/ or comments/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import Principal
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("folio.auth")

_settings = get_settings()

_ALGORITHM = "HS256"


def issue_token(user: User, expire_seconds: int = 0) -> str:
    """Encode a signed JWT snapshot of the user's identity claims.

    Args:
        user:           The identity to embed.
        expire_seconds: Lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds (7 days).
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
        "isAdmin": user.is_admin,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def verify_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the claims dict or None on any failure.

    Failure covers malformed structure, bad signature, and expiry in the past.
    The user store is not consulted: acceptance is purely cryptographic and
    time-based.
    """
    try:
        return jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        logger.debug("Token rejected: %s", exc)
        return None


def principal_from_claims(claims: dict) -> Principal | None:
    """Map verified claims to a Principal. Returns None if sub is not a string."""
    subject = claims.get("sub")
    if not isinstance(subject, str):
        return None
    name = claims.get("name")
    email = claims.get("email")
    avatar = claims.get("avatar")
    return Principal(
        id=subject,
        name=name if isinstance(name, str) else "",
        email=email if isinstance(email, str) else None,
        avatar=avatar if isinstance(avatar, str) else None,
        is_admin=bool(claims.get("isAdmin", False)),
    )
