"""
api/routes/auth.py -- OAuth login and identity endpoints.

Routes:
  GET  /api/auth/providers             -- list enabled OAuth providers (public)
  GET  /api/auth/me                    -- claims of the presented token, or null
  POST /api/auth/logout                -- acknowledgement only; client drops the token
  GET  /api/auth/{provider}            -- {"url": authorization URL}
  GET  /api/auth/{provider}/callback   -- code exchange; 302 to the frontend with ?token=

Flow:
  The frontend fetches /auth/{provider}, navigates to the returned URL, and
  the provider redirects back to /auth/{provider}/callback. There the signed
  state is verified (no session cookie is involved), the code is exchanged,
  the profile is normalized, the identity is found or created, and a 7-day
  token is issued.
  The browser lands on {FRONTEND_URL}/auth/callback?token=..., which moves
  the token into client storage and strips it from the URL.

Route registration order: fixed paths (/auth/me, /auth/providers) come before
/auth/{provider} so they are not captured as a provider name.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from api.limiter import limiter
from api.models import AuthorizationUrlResponse, LogoutResponse, MeResponse, MeUser, OAuthProviderInfo
from auth.dependencies import get_optional_user
from auth.models import Principal
from auth.oauth import build_authorization_url, exchange_code, get_enabled_providers, get_oauth_profile
from auth.store import UserStore
from auth.tokens import issue_token
from core.config import get_settings

logger = logging.getLogger("folio.api.auth")

# Auth policy: every route here is public. /auth/me reports anonymity as
# {"user": null} rather than 401.
router = APIRouter()


def _require_enabled(provider: str) -> None:
    """404 for provider names that are not configured.

    Checked before touching the registry so a spoofed name never reaches
    authlib.
    """
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": f"OAuth provider {provider!r} is not enabled."},
        )


# ---------------------------------------------------------------------------
# Fixed paths
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers, so the frontend knows which buttons to show."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers()]


@router.get("/auth/me", response_model=MeResponse)
async def me(principal: Principal | None = Depends(get_optional_user)) -> MeResponse:
    """Echo the identity carried by the presented token.

    These are the token's claims, not a fresh read of the user record.
    """
    if principal is None:
        return MeResponse(user=None)
    return MeResponse(user=MeUser.from_principal(principal))


@router.post("/auth/logout", response_model=LogoutResponse)
async def logout() -> LogoutResponse:
    """No server-side session exists; the client discards its token."""
    return LogoutResponse()


# ---------------------------------------------------------------------------
# OAuth flow
# ---------------------------------------------------------------------------


@router.get("/auth/{provider}", response_model=AuthorizationUrlResponse)
async def authorization_url(request: Request, provider: str) -> AuthorizationUrlResponse:
    """Return the provider's authorization URL. Its state parameter is signed, not stored."""
    _require_enabled(provider)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    url = await build_authorization_url(client, provider, redirect_uri)
    return AuthorizationUrlResponse(url=url)


# Limiter under the router decorator, as in api/routes/comments.py.
@router.get("/auth/{provider}/callback", name="oauth_callback")
@limiter.limit("30/minute")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Exchange the code, find or create the identity, and hand a token to the frontend.

    Failures of the exchange or of the profile fetch are 400 oauth_failed;
    the cause is logged, not returned.
    """
    _require_enabled(provider)
    settings = get_settings()
    user_store: UserStore = request.app.state.user_store
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))

    try:
        token = await exchange_code(client, provider, request.query_params, redirect_uri)
    except (OAuthError, httpx.HTTPError):
        logger.exception("OAuth token exchange failed for provider %r", provider)
        raise HTTPException(
            status_code=400,
            detail={"code": "oauth_failed", "message": "Failed to get access token."},
        )

    try:
        profile = await get_oauth_profile(client, provider, token)
    except (ValueError, httpx.HTTPError):
        logger.exception("OAuth profile fetch failed for provider %r", provider)
        raise HTTPException(
            status_code=400,
            detail={"code": "oauth_failed", "message": "Authentication failed."},
        )

    user = user_store.find_or_create(profile, settings.admin_email_set)
    token_str = issue_token(user)
    logger.info("User %s signed in via %s", user.id, provider)

    target = f"{settings.frontend_url.rstrip('/')}/auth/callback?{urlencode({'token': token_str})}"
    resp = RedirectResponse(target, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp
