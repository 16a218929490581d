"""
comments/models.py -- Domain dataclass for a comment row.

Pure data container. The store fills every column field; replies is only
populated by comments/thread.build_thread().
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Content written over a soft-deleted comment.
DELETED_SENTINEL = "[deleted]"


@dataclass
class Comment:
    """One row of the comments table.

    parent_id None means a root comment. author_name and author_avatar are
    copied from the author's identity when the comment is created and are not
    kept in sync afterwards.

    id is None before the record is written to the database.
    """

    post_id: int
    author_id: str
    author_name: str
    content: str
    parent_id: int | None = None
    author_avatar: str | None = None
    is_hidden: bool = False
    created_at: str = ""  # ISO 8601, set by store on insert
    id: int | None = None
    replies: list[Comment] = field(default_factory=list)
