"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work.

Layer rule: no imports from api/, core/, or comments/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A local identity linked to exactly one external OAuth account.

    (provider, provider_id) is unique -- at most one User per external account.
    is_admin is decided once, at creation, from the ADMIN_EMAILS allow-list.
    Nothing exposed over HTTP mutates it afterwards.
    """

    id: str  # opaque, "u_" + 16 hex chars
    provider: str  # "github", "google"
    provider_id: str  # provider's stable user ID
    name: str
    email: str | None = None
    avatar: str | None = None
    is_admin: bool = False
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Principal:
    """The identity resolved for the current request.

    Built from verified token claims, so it is a snapshot taken at issuance:
    a revoked admin keeps is_admin=True here until the token expires.
    """

    id: str
    name: str
    email: str | None = None
    avatar: str | None = None
    is_admin: bool = False


@dataclass
class OAuthProfile:
    """Provider callback data normalized into one shape.

    email_verified gates the admin allow-list match; an unverified address
    could have been added by someone who does not own it.
    """

    provider: str
    provider_id: str
    name: str
    email: str | None = None
    email_verified: bool = False
    avatar: str | None = None
