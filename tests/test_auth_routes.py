"""
tests/test_auth_routes.py -- Integration tests for the OAuth and identity endpoints.

The OAuth registry on app.state is a MagicMock (see conftest._patch_lifespan);
tests configure the client it returns. Providers are enabled per test by
patching the cached Settings instance.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from authlib.integrations.starlette_client import OAuthError
from fastapi.testclient import TestClient

from api.main import app
from auth.oauth import sign_state
from auth.tokens import verify_token
from conftest import ApiContext
from core.config import get_settings


@pytest.fixture
def github_enabled(monkeypatch) -> None:
    settings = get_settings()
    monkeypatch.setattr(settings, "github_client_id", "gh-client")
    monkeypatch.setattr(settings, "github_client_secret", "gh-secret")
    monkeypatch.setattr(settings, "admin_emails", "owner@example.com")
    monkeypatch.setattr(settings, "frontend_url", "https://folio.test")


def _response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


def _github_client(user: dict, emails: list[dict]) -> MagicMock:
    client = MagicMock()
    client.fetch_access_token = AsyncMock(return_value={"access_token": "gho_x"})
    client.get = AsyncMock(side_effect=[_response(user), _response(emails)])
    return client


def _callback_url(code: str = "abc", state: str | None = None) -> str:
    return f"/api/auth/github/callback?code={code}&state={state or sign_state('github')}"


def _token_from_redirect(location: str) -> str:
    parsed = urlparse(location)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://folio.test/auth/callback"
    return parse_qs(parsed.query)["token"][0]


class TestMe:
    def test_anonymous(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.json() == {"user": None}

    def test_invalid_token_is_anonymous(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.json() == {"user": None}

    def test_wrong_scheme_is_anonymous(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/auth/me", headers={"Authorization": f"Token {api_client.alice.token}"})
        assert resp.json() == {"user": None}

    def test_returns_token_claims(self, api_client: ApiContext) -> None:
        ctx = api_client
        user = ctx.admin.user
        resp = ctx.client.get("/api/auth/me", headers=ctx.admin.headers)
        assert resp.json() == {
            "user": {
                "id": user.id,
                "name": "Admin",
                "email": user.email,
                "avatar": user.avatar,
                "isAdmin": True,
            }
        }


class TestPublicEndpoints:
    def test_logout(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_providers_empty_by_default(self, api_client: ApiContext) -> None:
        assert api_client.client.get("/api/auth/providers").json() == []

    def test_providers_lists_configured(self, api_client: ApiContext, github_enabled) -> None:
        assert api_client.client.get("/api/auth/providers").json() == [{"name": "github", "label": "GitHub"}]

    def test_disabled_provider_is_404(self, api_client: ApiContext) -> None:
        assert api_client.client.get("/api/auth/github").status_code == 404
        assert api_client.client.get("/api/auth/github/callback?code=x").status_code == 404

    def test_unknown_route_uses_error_envelope(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/nowhere")
        assert resp.status_code == 404
        assert "error" in resp.json()


class TestAuthorizationUrl:
    def test_returns_provider_url(self, api_client: ApiContext, github_enabled) -> None:
        client = MagicMock()
        client.create_authorization_url = AsyncMock(
            return_value={"url": "https://github.com/login/oauth/authorize?state=abc", "state": "abc"}
        )
        api_client.client.app.state.oauth.create_client.return_value = client

        resp = api_client.client.get("/api/auth/github")

        assert resp.status_code == 200
        assert resp.json() == {"url": "https://github.com/login/oauth/authorize?state=abc"}
        assert "set-cookie" not in resp.headers
        redirect_uri = client.create_authorization_url.await_args.args[0]
        assert redirect_uri.endswith("/api/auth/github/callback")

    def test_callback_without_cookies_from_authorize_step(self, api_client: ApiContext, github_enabled) -> None:
        """The SPA fetches the URL cross-origin, so the callback arrives with no cookies at all."""
        ctx = api_client
        authorize_client = MagicMock()
        authorize_client.create_authorization_url = AsyncMock(return_value={"url": "https://github.com/login", "state": "s"})
        ctx.client.app.state.oauth.create_client.return_value = authorize_client
        assert ctx.client.get("/api/auth/github").status_code == 200
        state = authorize_client.create_authorization_url.await_args.kwargs["state"]

        ctx.client.app.state.oauth.create_client.return_value = _github_client(
            {"id": 5010, "login": "spa", "name": "Spa User", "avatar_url": None},
            [{"email": "spa@example.com", "primary": True, "verified": True}],
        )
        browser = TestClient(app)
        resp = browser.get(_callback_url("from-provider", state), follow_redirects=False)

        assert resp.status_code == 302
        assert verify_token(_token_from_redirect(resp.headers["location"]))["name"] == "Spa User"
        assert ctx.user_store.get_by_provider("github", "5010") is not None


class TestCallback:
    def test_first_login_creates_admin_identity(self, api_client: ApiContext, github_enabled) -> None:
        ctx = api_client
        ctx.client.app.state.oauth.create_client.return_value = _github_client(
            {"id": 5001, "login": "owner", "name": "Site Owner", "email": None, "avatar_url": "https://a/5001"},
            [{"email": "Owner@example.com", "primary": True, "verified": True}],
        )

        resp = ctx.client.get(_callback_url(), follow_redirects=False)

        assert resp.status_code == 302
        assert resp.headers["cache-control"] == "no-store"
        claims = verify_token(_token_from_redirect(resp.headers["location"]))
        assert claims["name"] == "Site Owner"
        assert claims["isAdmin"] is True

        user = ctx.user_store.get_by_provider("github", "5001")
        assert user is not None
        assert claims["sub"] == user.id
        assert user.is_admin is True

    def test_returning_login_reuses_identity(self, api_client: ApiContext, github_enabled) -> None:
        ctx = api_client
        user_payload = {"id": 5002, "login": "fan", "name": "Fan", "avatar_url": "https://a/5002"}
        emails = [{"email": "fan@example.com", "primary": True, "verified": True}]

        ctx.client.app.state.oauth.create_client.return_value = _github_client(user_payload, emails)
        first = ctx.client.get(_callback_url("1"), follow_redirects=False)
        ctx.client.app.state.oauth.create_client.return_value = _github_client(user_payload, emails)
        second = ctx.client.get(_callback_url("2"), follow_redirects=False)

        first_sub = verify_token(_token_from_redirect(first.headers["location"]))["sub"]
        second_sub = verify_token(_token_from_redirect(second.headers["location"]))["sub"]
        assert first_sub == second_sub
        assert verify_token(_token_from_redirect(second.headers["location"]))["isAdmin"] is False

    def test_issued_token_authorizes_comment_creation(self, api_client: ApiContext, github_enabled) -> None:
        ctx = api_client
        ctx.client.app.state.oauth.create_client.return_value = _github_client(
            {"id": 5003, "login": "writer", "name": "Writer", "avatar_url": "https://a/5003"},
            [],
        )
        resp = ctx.client.get(_callback_url("3"), follow_redirects=False)
        token = _token_from_redirect(resp.headers["location"])

        created = ctx.client.post(
            "/api/comments",
            json={"post_id": 900, "content": "first!"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert created.status_code == 201
        assert created.json()["comment"]["author_name"] == "Writer"
        assert created.json()["comment"]["author_avatar"] == "https://a/5003"

    def test_failed_exchange_is_400(self, api_client: ApiContext, github_enabled) -> None:
        client = MagicMock()
        client.fetch_access_token = AsyncMock(side_effect=OAuthError(error="bad_verification_code"))
        api_client.client.app.state.oauth.create_client.return_value = client

        resp = api_client.client.get(_callback_url("bad"), follow_redirects=False)

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "oauth_failed"

    def test_profile_without_id_is_400(self, api_client: ApiContext, github_enabled) -> None:
        api_client.client.app.state.oauth.create_client.return_value = _github_client({"login": "x"}, [])
        resp = api_client.client.get(_callback_url("x"), follow_redirects=False)
        assert resp.status_code == 400

    def test_forged_state_is_400(self, api_client: ApiContext, github_enabled) -> None:
        client = _github_client({"id": 5011, "login": "x"}, [])
        api_client.client.app.state.oauth.create_client.return_value = client

        resp = api_client.client.get(_callback_url("abc", "forged.state.value"), follow_redirects=False)

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "oauth_failed"
        client.fetch_access_token.assert_not_awaited()

    def test_provider_denial_is_400(self, api_client: ApiContext, github_enabled) -> None:
        resp = api_client.client.get("/api/auth/github/callback?error=access_denied", follow_redirects=False)
        assert resp.status_code == 400
