"""
Canva token exchange, refresh and lifecycle.

get_valid_access_token is the only way the rest of the integration gets
a usable access token. It refreshes tokens that are inside the skew
window and discards the stored record when a refresh is impossible, so
callers only ever see a working token, NotConnected, or
ReauthorizationRequired.

Refreshes are single-flight per user: concurrent callers for the same
user wait on one asyncio.Lock and the losers reuse the winner's token.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta

from cryptography.fernet import InvalidToken
from sqlmodel import Session

from tripmatrix.core.config import settings
from tripmatrix.core.errors import (
    NetworkError,
    NotConnected,
    ReauthorizationRequired,
    StateInvalidOrExpired,
)
from tripmatrix.crud.canva_state import consume_authorization_state
from tripmatrix.crud.canva_token import (
    delete_canva_token,
    get_canva_token,
    get_decrypted_tokens,
    update_refreshed_token,
    upsert_canva_token,
)
from tripmatrix.models import CanvaAuthorizationState, CanvaConnectionStatus, CanvaToken
from tripmatrix.services.canva.client import CanvaClient
from tripmatrix.services.canva.oauth import CanvaOAuthConfig, get_canva_config

logger = logging.getLogger(__name__)

# Canva access tokens live for four hours; used when a response omits expires_in
DEFAULT_EXPIRES_IN_SECONDS = 14400


class RefreshLockTable:
    """
    Per-user asyncio locks guarding token refresh.

    Locks are held in a WeakValueDictionary, so a user's lock disappears
    once no coroutine is waiting on it.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


_refresh_locks = RefreshLockTable()


def _normalize_token_response(result: dict) -> dict:
    return {
        "access_token": result["access_token"],
        "refresh_token": result.get("refresh_token"),
        "expires_in": int(result.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS),
        "token_type": result.get("token_type", "Bearer"),
        "scope": result.get("scope"),
    }


async def exchange_code_for_tokens(
    code: str,
    code_verifier: str,
    config: CanvaOAuthConfig,
    *,
    client: CanvaClient | None = None,
) -> dict:
    """
    Exchange an authorization code for access and refresh tokens.

    Args:
        code: Authorization code from the OAuth callback
        code_verifier: PKCE verifier stored with the state
        config: Canva OAuth config; its redirect_uri must match the one
            used in the authorization request
        client: Canva client (a default one is created if omitted)

    Returns:
        Dictionary with access_token, refresh_token, expires_in, token_type, scope

    Raises:
        OAuthTokenError: If Canva rejects the code.
        NetworkError: If Canva cannot be reached.
    """
    client = client or CanvaClient(api_base_url=config.api_base_url)
    result = await client.request_token(
        client_id=config.client_id,
        client_secret=config.client_secret,
        data={
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": config.redirect_uri,
        },
    )
    return _normalize_token_response(result)


async def refresh_access_token(
    refresh_token: str,
    config: CanvaOAuthConfig,
    *,
    client: CanvaClient | None = None,
) -> dict:
    """
    Get a new access token with a refresh token.

    Returns:
        Same shape as exchange_code_for_tokens. When Canva does not rotate
        the refresh token, the original one is returned.

    Raises:
        OAuthTokenError: If Canva rejects the refresh token.
        NetworkError: If Canva cannot be reached.
    """
    client = client or CanvaClient(api_base_url=config.api_base_url)
    result = await client.request_token(
        client_id=config.client_id,
        client_secret=config.client_secret,
        data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
    )
    tokens = _normalize_token_response(result)
    if not tokens["refresh_token"]:
        tokens["refresh_token"] = refresh_token
    return tokens


async def complete_authorization(
    *,
    session: Session,
    code: str,
    state: str,
    client: CanvaClient | None = None,
    now: datetime | None = None,
) -> CanvaAuthorizationState:
    """
    Finish an authorization from Canva's callback.

    The state is consumed before the exchange is attempted, so it cannot
    be redeemed again whether the exchange succeeds or fails.

    Returns:
        The consumed state (carries user_id and diary_id for the redirect)

    Raises:
        StateInvalidOrExpired: Unknown, already consumed, expired, or
            missing its code verifier.
        ConfigurationMissing: Client credentials are not configured.
        OAuthTokenError / NetworkError: The exchange failed.
        StorageError: The state or tokens could not be persisted.
    """
    auth_state = consume_authorization_state(session=session, state=state)
    if auth_state is None:
        logger.warning("Canva callback with unknown or already used state")
        raise StateInvalidOrExpired(code="invalid_state")

    if auth_state.is_expired(now):
        logger.warning("Canva callback with expired state for user %s", auth_state.user_id)
        raise StateInvalidOrExpired(
            "This Canva authorization link has expired. Please connect again.",
            code="state_expired",
        )

    if not auth_state.code_verifier:
        raise StateInvalidOrExpired(code="missing_code_verifier")

    config = get_canva_config(auth_state.redirect_uri)
    tokens = await exchange_code_for_tokens(
        code, auth_state.code_verifier, config, client=client
    )

    upsert_canva_token(
        session=session,
        user_id=auth_state.user_id,
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
        expires_in=tokens["expires_in"],
        scopes=tokens["scope"],
        token_type=tokens["token_type"],
        now=now,
    )

    logger.info("Canva connected for user %s", auth_state.user_id)
    return auth_state


def _discard(session: Session, user_id: int, reason: str) -> ReauthorizationRequired:
    logger.warning("Discarding Canva token for user %s: %s", user_id, reason)
    delete_canva_token(session=session, user_id=user_id)
    return ReauthorizationRequired()


async def _refresh(
    *,
    session: Session,
    token: CanvaToken,
    client: CanvaClient | None,
    now: datetime | None,
) -> str:
    user_id = token.user_id

    try:
        refresh_token = get_decrypted_tokens(token)["refresh_token"]
    except InvalidToken:
        raise _discard(session, user_id, "stored token cannot be decrypted")

    if not refresh_token:
        raise _discard(session, user_id, "no refresh token")

    config = get_canva_config()
    try:
        new_tokens = await refresh_access_token(refresh_token, config, client=client)
    except NetworkError as e:
        # OAuthTokenError is a NetworkError
        raise _discard(session, user_id, f"refresh failed ({e.code})") from e

    update_refreshed_token(
        session=session,
        token=token,
        access_token=new_tokens["access_token"],
        refresh_token=new_tokens["refresh_token"],
        expires_in=new_tokens["expires_in"],
        scopes=new_tokens["scope"],
        now=now,
    )
    logger.info("Refreshed Canva token for user %s", user_id)
    return new_tokens["access_token"]


def _access_token(session: Session, token: CanvaToken) -> str:
    try:
        return get_decrypted_tokens(token)["access_token"]
    except InvalidToken:
        raise _discard(session, token.user_id, "stored token cannot be decrypted")


async def get_valid_access_token(
    *,
    session: Session,
    user_id: int,
    client: CanvaClient | None = None,
    now: datetime | None = None,
) -> str:
    """
    Return a Canva access token that stays valid for at least the skew window.

    Raises:
        NotConnected: The user has no stored token.
        ReauthorizationRequired: The token needed a refresh that could not
            happen; the stored record has been deleted.
        StorageError: The refreshed token could not be saved.
    """
    skew = timedelta(seconds=settings.CANVA_TOKEN_REFRESH_SKEW_SECONDS)

    token = get_canva_token(session=session, user_id=user_id)
    if token is None:
        raise NotConnected()

    if not token.needs_refresh(skew=skew, now=now):
        return _access_token(session, token)

    async with _refresh_locks.get(user_id):
        # Another caller may have refreshed (or discarded) the token meanwhile
        token = get_canva_token(session=session, user_id=user_id)
        if token is None:
            raise NotConnected()

        if not token.needs_refresh(skew=skew, now=now):
            return _access_token(session, token)

        return await _refresh(session=session, token=token, client=client, now=now)


def get_connection_status(*, session: Session, user_id: int) -> CanvaConnectionStatus:
    """Report whether a user has a stored Canva token, without exposing it."""
    token = get_canva_token(session=session, user_id=user_id)
    if token is None:
        return CanvaConnectionStatus(connected=False)

    return CanvaConnectionStatus(
        connected=True,
        expires_at=token.expires_at_utc(),
        has_refresh_token=token.refresh_token_encrypted is not None,
    )


def disconnect(*, session: Session, user_id: int) -> bool:
    """
    Forget a user's Canva tokens.

    Returns:
        True if a connection existed
    """
    deleted = delete_canva_token(session=session, user_id=user_id)
    if deleted:
        logger.info("Canva disconnected for user %s", user_id)
    return deleted
