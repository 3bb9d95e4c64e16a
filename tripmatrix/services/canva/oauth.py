"""
Canva OAuth configuration and authorization start.

Canva Connect requires PKCE (S256) on every authorization. Each flow
gets a fresh state token and code verifier, persisted with a 10 minute
lifetime so any replica can finish the exchange when Canva redirects
back.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from urllib.parse import urlencode

from sqlmodel import Session

from tripmatrix.core.config import settings
from tripmatrix.core.errors import ConfigurationMissing
from tripmatrix.crud.canva_state import store_authorization_state

logger = logging.getLogger(__name__)

CANVA_SCOPES = [
    "asset:read",
    "asset:write",
    "brandtemplate:content:read",
    "brandtemplate:meta:read",
    "design:content:read",
    "design:content:write",
    "design:meta:read",
    "profile:read",
]

CODE_CHALLENGE_METHOD = "S256"


@dataclass
class CanvaOAuthConfig:
    """Configuration for the Canva OAuth client."""

    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    api_base_url: str
    scopes: list[str] = field(default_factory=lambda: list(CANVA_SCOPES))


def default_redirect_uri() -> str:
    """Callback URL used when neither settings nor the request provide one."""
    return f"http://localhost:{settings.PORT}{settings.API_V1_STR}/canva/callback"


def get_canva_config(redirect_uri: str | None = None) -> CanvaOAuthConfig:
    """
    Build the Canva OAuth config from settings.

    Args:
        redirect_uri: Callback URL derived from the incoming request. An
            explicit CANVA_REDIRECT_URI setting takes precedence.

    Raises:
        ConfigurationMissing: If the client id or secret is not set.
    """
    if not settings.CANVA_CLIENT_ID or not settings.CANVA_CLIENT_SECRET:
        raise ConfigurationMissing()

    return CanvaOAuthConfig(
        client_id=settings.CANVA_CLIENT_ID,
        client_secret=settings.CANVA_CLIENT_SECRET,
        redirect_uri=settings.CANVA_REDIRECT_URI or redirect_uri or default_redirect_uri(),
        authorize_url=f"{settings.CANVA_AUTH_BASE_URL.rstrip('/')}/oauth/authorize",
        api_base_url=settings.CANVA_API_BASE_URL,
    )


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def generate_oauth_state() -> str:
    """
    Generate a cryptographically secure OAuth state parameter.

    Returns:
        URL-safe random string (64 bytes of entropy)
    """
    return secrets.token_urlsafe(64)


def generate_pkce_pair() -> tuple[str, str]:
    """
    Generate a PKCE code verifier and challenge pair.

    Following RFC 7636:
    - Code verifier: 96 random bytes, base64url encoded (128 chars)
    - Code challenge: Base64url(SHA256(code_verifier)), no padding

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    code_verifier = _b64url(secrets.token_bytes(96))
    code_challenge = _b64url(hashlib.sha256(code_verifier.encode()).digest())
    return code_verifier, code_challenge


def verify_pkce_pair(code_verifier: str, code_challenge: str) -> bool:
    """Check that a challenge was derived from the verifier."""
    expected = _b64url(hashlib.sha256(code_verifier.encode()).digest())
    return secrets.compare_digest(expected, code_challenge)


def build_authorization_url(
    config: CanvaOAuthConfig,
    state: str,
    code_challenge: str,
) -> str:
    """Build the Canva authorize URL for one flow."""
    params = {
        "code_challenge": code_challenge,
        "code_challenge_method": CODE_CHALLENGE_METHOD,
        "scope": " ".join(config.scopes),
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "state": state,
    }
    return f"{config.authorize_url}?{urlencode(params)}"


def begin_authorization(
    *,
    session: Session,
    user_id: int,
    diary_id: int | None = None,
    redirect_uri: str | None = None,
) -> str:
    """
    Start a Canva authorization for a user.

    Persists the state and code verifier (10 minute lifetime) and returns
    the URL the user must visit. No network calls are made.

    Args:
        session: Database session
        user_id: User starting the flow
        diary_id: Diary to return to after the callback
        redirect_uri: Callback URL derived from the request

    Returns:
        Authorization URL

    Raises:
        ConfigurationMissing: If client credentials are not configured.
        StorageError: If the state cannot be persisted.
    """
    config = get_canva_config(redirect_uri)

    state = generate_oauth_state()
    code_verifier, code_challenge = generate_pkce_pair()

    store_authorization_state(
        session=session,
        state=state,
        user_id=user_id,
        code_verifier=code_verifier,
        redirect_uri=config.redirect_uri,
        diary_id=diary_id,
    )

    logger.info("Started Canva authorization for user %s", user_id)
    return build_authorization_url(config, state, code_challenge)
