"""
comments/store.py -- SQLAlchemy-backed persistence layer for comments.

Uses SQLAlchemy Core (not ORM) so the dataclass in comments/models.py remains
the authoritative domain representation.

Pattern: Repository + Data Mapper. CommentStore is the repository; _row_to_comment
is the mapper. Route handlers never touch SQL directly.

Tree shape: adjacency list. Each row carries a nullable parent_id pointing at
another row on the same post. Rows are never physically deleted -- a soft
delete hides the row and overwrites its content with DELETED_SENTINEL so that
replies keep a valid parent_id.

Consistency: create() is an INSERT followed by a SELECT of the generated id,
two statements with no transaction around them. Concurrent edits to one row
are last-write-wins.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CommentStore()                                # SQLite default
    store = CommentStore("postgresql://user:pw@host/db")  # PostgreSQL
    comment = store.create(post_id=42, author_id="u_1", author_name="Ada", content="hi")
    comments = store.list_for_post(42)
    store.close()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from comments.errors import CommentNotFoundError, CommentValidationError
from comments.models import DELETED_SENTINEL, Comment
from core.config import get_settings

logger = logging.getLogger("folio.comments")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False),
    Column("parent_id", Integer),  # NULL = root comment
    Column("author_id", String(32), nullable=False),
    Column("author_name", String(255), nullable=False),
    Column("author_avatar", Text),
    Column("content", Text, nullable=False),
    Column("is_hidden", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("created_at", String(32), nullable=False),
    Index("ix_comments_post_id", "post_id"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode (per connection; PRAGMAs are not inherited)."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    # Fixed microsecond precision keeps string order equal to time order.
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _clean_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise CommentValidationError("Content is required")
    return content.strip()


def _check_post_id(post_id) -> int:
    if isinstance(post_id, bool) or not isinstance(post_id, int) or post_id <= 0:
        raise CommentValidationError("A positive post_id is required")
    return post_id


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CommentStore:
    """Repository for Comment rows."""

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_for_post(self, post_id: int) -> list[Comment]:
        """Return every visible comment on a post, oldest first.

        Hidden rows (soft-deleted or moderated) are excluded. Ties on
        created_at fall back to insertion order.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                _comments.select()
                .where((_comments.c.post_id == post_id) & (_comments.c.is_hidden == 0))
                .order_by(_comments.c.created_at, _comments.c.id)
            ).fetchall()
        return [_row_to_comment(r) for r in rows]

    def get(self, comment_id: int) -> Comment | None:
        """Look up a comment by id, hidden or not. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        post_id: int,
        author_id: str,
        author_name: str,
        content: str,
        parent_id: int | None = None,
        author_avatar: str | None = None,
    ) -> Comment:
        """Insert a visible comment and return the stored row.

        Raises CommentValidationError when post_id is not a positive integer
        or content is blank. Content is stored trimmed. The parent is trusted
        to belong to the same post; it is not looked up.
        """
        post_id = _check_post_id(post_id)
        body = _clean_content(content)
        with self.engine.connect() as conn:
            result = conn.execute(
                _comments.insert().values(
                    post_id=post_id,
                    parent_id=parent_id or None,
                    author_id=author_id,
                    author_name=author_name,
                    author_avatar=author_avatar or None,
                    content=body,
                    is_hidden=0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            comment_id = result.inserted_primary_key[0]

        created = self.get(comment_id)
        if created is None:
            raise CommentNotFoundError(comment_id)
        logger.info("Comment %d created on post %d by %s", comment_id, post_id, author_id)
        return created

    def update(self, comment_id: int, content: str) -> None:
        """Replace a comment's content (trimmed).

        Raises CommentValidationError for blank content, CommentNotFoundError
        when no row has this id. No length limit is applied here.
        """
        body = _clean_content(content)
        self._update(comment_id, content=body)

    def soft_delete(self, comment_id: int) -> None:
        """Hide a comment and overwrite its content with the sentinel. Idempotent."""
        self._update(comment_id, is_hidden=1, content=DELETED_SENTINEL)

    def set_visibility(self, comment_id: int, hidden: bool) -> None:
        """Moderation toggle: flip is_hidden without touching content."""
        self._update(comment_id, is_hidden=1 if hidden else 0)

    def _update(self, comment_id: int, **values) -> None:
        with self.engine.connect() as conn:
            result = conn.execute(_comments.update().where(_comments.c.id == comment_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            raise CommentNotFoundError(comment_id)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        parent_id=row.parent_id,
        author_id=row.author_id,
        author_name=row.author_name,
        author_avatar=row.author_avatar,
        content=row.content,
        is_hidden=bool(row.is_hidden),
        created_at=row.created_at,
    )
