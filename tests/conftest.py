"""
tests/conftest.py -- Shared test fixtures for the portfolio API tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for users + comments
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus three signed-in identities (alice, bob, admin)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG and COMMENT_RATE_LIMIT must be set before any app import: DEBUG lets
get_settings() auto-generate SECRET_KEY, and the high comment limit keeps the
shared limiter out of the way. Rate-limit tests patch the cached Settings.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("COMMENT_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import issue_token
from comments.store import CommentStore


@dataclass
class Identity:
    user: User
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class ApiContext:
    client: TestClient
    user_store: UserStore
    comment_store: CommentStore
    alice: Identity
    bob: Identity
    admin: Identity


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, CommentStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_folio_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), CommentStore(db_url=url)


def _patch_lifespan(user_store: UserStore, comment_store: CommentStore):
    """Return a lifespan that installs the test stores and a mock OAuth registry."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.comment_store = comment_store
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


def _make_identity(store: UserStore, user_id: str, name: str, is_admin: bool = False) -> Identity:
    user = User(
        id=user_id,
        provider="github",
        provider_id=f"gh-{user_id}",
        name=name,
        email=f"{name.lower()}@example.com",
        avatar=f"https://avatars.example.com/{user_id}.png",
        is_admin=is_admin,
    )
    store.create_user(user)
    return Identity(user=store.get_by_id(user_id), token=issue_token(user))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by fresh in-memory stores.

    One TestClient per test module; tests that write comments use their own
    post ids so they do not see each other's rows.
    """
    user_store, comment_store = _make_test_stores(request.module.__name__.replace(".", "_"))
    alice = _make_identity(user_store, "u_alice000000000", "Alice")
    bob = _make_identity(user_store, "u_bob00000000000", "Bob")
    admin = _make_identity(user_store, "u_admin000000000", "Admin", is_admin=True)

    app.router.lifespan_context = _patch_lifespan(user_store, comment_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            user_store=user_store,
            comment_store=comment_store,
            alice=alice,
            bob=bob,
            admin=admin,
        )

    comment_store.close()
    user_store.close()


@pytest.fixture
def comment_store() -> Generator[CommentStore, None, None]:
    """Plain in-memory CommentStore for unit tests (same thread only)."""
    store = CommentStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()
