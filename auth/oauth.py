"""
auth/oauth.py -- Authlib OAuth provider configuration.

Reads configuration from core.config.get_settings() at module load to decide
which providers are active. Only providers with both client ID and secret
configured get registered.

OAuth state parameter: the frontend fetches the authorization URL with a
plain cross-origin request, so no cookie set on that response survives to the
callback. The state is therefore self-contained: an itsdangerous-signed,
timestamped payload naming the provider (and, for OpenID Connect, the nonce).
The callback verifies the signature and age instead of reading a session.

Supported providers:
  github -- Authorization code flow; static endpoints.
  google -- Authorization code flow; OIDC discovery.

Layer rule: no imports from api/ or comments/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping

from authlib.integrations.base_client import MismatchingStateError
from authlib.integrations.starlette_client import OAuth, OAuthError
from itsdangerous import BadSignature, URLSafeTimedSerializer

from auth.models import OAuthProfile
from core.config import get_settings

logger = logging.getLogger("folio.auth.oauth")

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

# GitHub -- static endpoints (no OIDC discovery document)
if _cfg.github_client_id and _cfg.github_client_secret:
    oauth.register(
        name="github",
        client_id=_cfg.github_client_id,
        client_secret=_cfg.github_client_secret,
        access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
        authorize_url="https://github.com/login/oauth/authorize",
        api_base_url="https://api.github.com/",
        client_kwargs={"scope": "read:user user:email"},
    )
    logger.info("GitHub OAuth provider registered")

# Google -- OIDC discovery
if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


def get_enabled_providers() -> list[dict]:
    """Return {"name", "label"} for every provider with an id and secret configured."""
    cfg = get_settings()
    providers: list[dict] = []
    if cfg.github_client_id and cfg.github_client_secret:
        providers.append({"name": "github", "label": "GitHub"})
    if cfg.google_client_id and cfg.google_client_secret:
        providers.append({"name": "google", "label": "Google"})
    return providers


def is_admin_email(email: str | None, admin_emails: frozenset[str]) -> bool:
    """Case-insensitive membership test against the admin allow-list."""
    if not email:
        return False
    return email.strip().lower() in admin_emails


# ---------------------------------------------------------------------------
# Signed state -- authorization request to callback without a session
# ---------------------------------------------------------------------------

STATE_MAX_AGE = 600  # seconds between building the URL and the callback
_STATE_SALT = "folio.oauth.state"

# Providers whose scope includes "openid"; they get a nonce bound into the state.
_OIDC_PROVIDERS = {"google"}


def _state_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().secret_key, salt=_STATE_SALT)


def sign_state(provider: str, nonce: str | None = None) -> str:
    """Return a signed, timestamped state value for one authorization request."""
    payload = {"p": provider, "r": secrets.token_urlsafe(16)}
    if nonce:
        payload["n"] = nonce
    return _state_serializer().dumps(payload)


def load_state(state: str | None, provider: str) -> dict:
    """Verify a state value from the callback query string.

    Raises:
        MismatchingStateError: missing, tampered, expired, or issued for a
            different provider.
    """
    if not state:
        raise MismatchingStateError()
    try:
        data = _state_serializer().loads(state, max_age=STATE_MAX_AGE)
    except BadSignature as exc:
        logger.warning("Rejected OAuth state for provider %r: %s", provider, type(exc).__name__)
        raise MismatchingStateError() from exc
    if not isinstance(data, dict) or data.get("p") != provider:
        raise MismatchingStateError()
    return data


async def build_authorization_url(client, provider: str, redirect_uri: str) -> str:
    """Create the provider authorization URL carrying a signed state.

    Returns the URL instead of redirecting so the single-page frontend can
    navigate to it itself.
    """
    nonce = secrets.token_urlsafe(16) if provider in _OIDC_PROVIDERS else None
    kwargs = {"state": sign_state(provider, nonce)}
    if nonce:
        kwargs["nonce"] = nonce
    rv = await client.create_authorization_url(redirect_uri, **kwargs)
    return rv["url"]


async def exchange_code(client, provider: str, params: Mapping[str, str], redirect_uri: str) -> dict:
    """Verify the callback's state and trade its code for a token.

    For OpenID Connect providers the id_token is validated against the nonce
    carried in the state and its claims are stored under token["userinfo"].

    Raises:
        OAuthError: the provider reported an error, the state does not verify,
            the code is missing, or the token endpoint refused the code.
    """
    error = params.get("error")
    if error:
        raise OAuthError(error=error, description=params.get("error_description"))

    state = load_state(params.get("state"), provider)
    code = params.get("code")
    if not code:
        raise OAuthError(error="missing_code", description="No authorization code in callback")

    token = await client.fetch_access_token(redirect_uri=redirect_uri, code=code)
    if "id_token" in token and state.get("n"):
        token["userinfo"] = await client.parse_id_token(token, nonce=state["n"])
    return token


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


async def get_oauth_profile(client, provider: str, token: dict) -> OAuthProfile:
    """Normalize a provider token response into an OAuthProfile.

    Args:
        client:   The authlib OAuth client for this provider.
        provider: "github" or "google".
        token:    The token dict returned by authlib after code exchange.

    Raises:
        ValueError: unknown provider, or no stable subject id in the response.
    """
    if provider == "github":
        return await _get_github_profile(client, token)
    elif provider == "google":
        return _get_google_profile(token)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _get_github_profile(client, token: dict) -> OAuthProfile:
    """Build a profile from GitHub's REST API.

    GET /user gives the numeric id, name/login, avatar, and the public email
    (if any). GET /user/emails is then consulted for the verified flag, and
    for the primary address when no public email is set.
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    profile = resp.json()
    if profile.get("id") is None:
        raise ValueError("GitHub OAuth: no user id in profile response")

    email: str | None = profile.get("email")
    emails_resp = await client.get("user/emails", token=token)
    emails_resp.raise_for_status()
    entries = emails_resp.json()

    match = None
    if email:
        match = next((e for e in entries if e.get("email") == email), None)
    if match is None:
        match = next((e for e in entries if e.get("primary")), None)
    if match is not None:
        email = match.get("email")

    return OAuthProfile(
        provider="github",
        provider_id=str(profile["id"]),
        name=profile.get("name") or profile.get("login") or "",
        email=email,
        email_verified=bool(match and match.get("verified")),
        avatar=profile.get("avatar_url"),
    )


def _get_google_profile(token: dict) -> OAuthProfile:
    """Build a profile from the Google id_token claims parsed by authlib."""
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError("google OAuth: no userinfo in token response")

    subject = userinfo.get("sub")
    if not subject:
        raise ValueError("google OAuth: missing sub claim in userinfo")

    email = userinfo.get("email")
    return OAuthProfile(
        provider="google",
        provider_id=str(subject),
        name=userinfo.get("name") or email or "",
        email=email,
        email_verified=bool(userinfo.get("email_verified", False)),
        avatar=userinfo.get("picture"),
    )
