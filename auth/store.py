"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as comments/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(provider, provider_id) is enforced in SQL. Both columns are NOT NULL,
  so SQLite's "NULLs are distinct" rule does not weaken the constraint.

Layer rule: no imports from api/ or comments/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import OAuthProfile, User
from auth.oauth import is_admin_email
from core.config import get_settings

logger = logging.getLogger("folio.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("provider", String(30), nullable=False),  # "github", "google"
    Column("provider_id", String(255), nullable=False),
    Column("name", String(255), nullable=False),
    Column("email", String(255)),
    Column("avatar", Text),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("provider", "provider_id", name="uq_users_provider"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def generate_user_id() -> str:
    """Return a new opaque user id: u_ followed by 16 hex characters."""
    return "u_" + uuid.uuid4().hex[:16]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.find_or_create(profile, get_settings().admin_email_set)
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_provider(self, provider: str, provider_id: str) -> User | None:
        """Look up the identity linked to an external account."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.provider == provider) & (_users.c.provider_id == provider_id))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def create_user(self, user: User) -> str:
        """Insert a new user and return its id.

        Raises sqlalchemy.exc.IntegrityError if (provider, provider_id) is
        already linked to another record.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user.id,
                    provider=user.provider,
                    provider_id=user.provider_id,
                    name=user.name,
                    email=user.email,
                    avatar=user.avatar,
                    is_admin=1 if user.is_admin else 0,
                    created_at=user.created_at or _now_iso(),
                )
            )
            conn.commit()
        return user.id

    def find_or_create(self, profile: OAuthProfile, admin_emails: frozenset[str]) -> User:
        """Return the identity for an OAuth profile, creating it on first sight.

        Existing records are returned untouched: name, avatar, and is_admin
        are not refreshed from the provider. The admin allow-list is only
        consulted here, at creation time, and only against a verified email.

        Two concurrent first logins for the same account race on the UNIQUE
        constraint; the loser re-reads the winner's record.
        """
        existing = self.get_by_provider(profile.provider, profile.provider_id)
        if existing is not None:
            return existing

        user = User(
            id=generate_user_id(),
            provider=profile.provider,
            provider_id=profile.provider_id,
            name=profile.name,
            email=profile.email,
            avatar=profile.avatar,
            is_admin=profile.email_verified and is_admin_email(profile.email, admin_emails),
            created_at=_now_iso(),
        )
        try:
            self.create_user(user)
        except IntegrityError:
            winner = self.get_by_provider(profile.provider, profile.provider_id)
            if winner is None:
                raise
            return winner
        logger.info("Created user %s via %s (admin=%s)", user.id, user.provider, user.is_admin)
        return user

    def set_admin(self, user_id: str, is_admin: bool) -> bool:
        """Change a user's stored admin flag. Maintenance use only.

        Already-issued tokens keep their original isAdmin claim until expiry.
        Returns True if a row was updated.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(is_admin=1 if is_admin else 0)
            )
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        provider=row.provider,
        provider_id=row.provider_id,
        name=row.name,
        email=row.email,
        avatar=row.avatar,
        is_admin=bool(row.is_admin),
        created_at=row.created_at,
    )
