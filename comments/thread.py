"""
comments/thread.py -- Rebuild a reply tree from a flat, time-ordered list.

Two linear passes over the same list:
  1. index every comment by id and reset its replies to [];
  2. attach each reply to its parent (by reference) or collect it as a root.

A reply whose parent is not in the list (the parent is hidden, say) is
dropped from the tree. It is not promoted to a root. total still counts it:
it is the length of the flat input, not the number of reachable nodes.

Input order is preserved inside every replies list, so oldest-first input
yields oldest-first replies.
"""

from __future__ import annotations

from dataclasses import dataclass

from comments.models import Comment


@dataclass
class ThreadResult:
    root_comments: list[Comment]
    total: int


def build_thread(comments: list[Comment]) -> ThreadResult:
    by_id: dict[int, Comment] = {}
    for comment in comments:
        comment.replies = []
        by_id[comment.id] = comment

    roots: list[Comment] = []
    for comment in comments:
        if comment.parent_id is not None:
            parent = by_id.get(comment.parent_id)
            if parent is not None:
                parent.replies.append(comment)
        else:
            roots.append(comment)

    return ThreadResult(root_comments=roots, total=len(comments))
