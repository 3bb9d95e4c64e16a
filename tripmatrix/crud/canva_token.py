"""
CRUD operations for CanvaToken.

One row per user. Tokens are encrypted before they are written and only
decrypted through get_decrypted_tokens.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from tripmatrix.core.encryption import get_token_cipher
from tripmatrix.core.errors import StorageError
from tripmatrix.models import CanvaToken

logger = logging.getLogger(__name__)


def _commit(session: Session, token: CanvaToken | None = None) -> None:
    try:
        session.commit()
        if token is not None:
            session.refresh(token)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Canva token store failure: %s", e)
        raise StorageError() from e


def get_canva_token(*, session: Session, user_id: int) -> CanvaToken | None:
    """
    Get a user's Canva token row.

    Always reloads from the database so a refresh committed by another
    request is visible.
    """
    statement = (
        select(CanvaToken)
        .where(CanvaToken.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).first()


def upsert_canva_token(
    *,
    session: Session,
    user_id: int,
    access_token: str,
    refresh_token: str | None,
    expires_in: int,
    scopes: str | None = None,
    token_type: str = "Bearer",
    now: datetime | None = None,
) -> CanvaToken:
    """
    Store the tokens from a code exchange, overwriting any previous row.

    Args:
        session: Database session
        user_id: Owner
        access_token: Access token (will be encrypted)
        refresh_token: Refresh token (will be encrypted; None clears it)
        expires_in: Access token lifetime in seconds
        scopes: Space-separated scopes granted
        token_type: Token type, typically "Bearer"
        now: Issue time (defaults to the current time)

    Raises:
        StorageError: If the row cannot be written.
    """
    cipher = get_token_cipher()
    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=expires_in)

    token = get_canva_token(session=session, user_id=user_id)
    if token is None:
        token = CanvaToken(
            user_id=user_id,
            access_token_encrypted=cipher.encrypt(access_token),
            refresh_token_encrypted=cipher.encrypt_optional(refresh_token),
            expires_at=expires_at,
            scopes=scopes,
            token_type=token_type,
            created_at=now,
            updated_at=now,
        )
    else:
        token.access_token_encrypted = cipher.encrypt(access_token)
        token.refresh_token_encrypted = cipher.encrypt_optional(refresh_token)
        token.expires_at = expires_at
        token.scopes = scopes
        token.token_type = token_type
        token.updated_at = now

    session.add(token)
    _commit(session, token)
    return token


def update_refreshed_token(
    *,
    session: Session,
    token: CanvaToken,
    access_token: str,
    expires_in: int,
    refresh_token: str | None = None,
    scopes: str | None = None,
    now: datetime | None = None,
) -> CanvaToken:
    """
    Apply a refresh response to an existing row in place.

    When the refresh response carries no new refresh token the stored one
    is kept.
    """
    cipher = get_token_cipher()
    now = now or datetime.now(timezone.utc)

    token.access_token_encrypted = cipher.encrypt(access_token)
    if refresh_token is not None:
        token.refresh_token_encrypted = cipher.encrypt(refresh_token)
    token.expires_at = now + timedelta(seconds=expires_in)
    if scopes is not None:
        token.scopes = scopes
    token.updated_at = now

    session.add(token)
    _commit(session, token)
    return token


def delete_canva_token(*, session: Session, user_id: int) -> bool:
    """
    Delete a user's Canva token. Safe to call when none exists.

    Returns:
        True if a row was deleted, False if there was none
    """
    token = get_canva_token(session=session, user_id=user_id)
    if token is None:
        return False

    session.delete(token)
    _commit(session)
    return True


def get_decrypted_tokens(token: CanvaToken) -> dict[str, str | None]:
    """
    Decrypt a token row.

    Returns:
        Dictionary with "access_token" and "refresh_token" keys
    """
    cipher = get_token_cipher()

    refresh_token = None
    if token.refresh_token_encrypted is not None:
        refresh_token = cipher.decrypt(token.refresh_token_encrypted)

    return {
        "access_token": cipher.decrypt(token.access_token_encrypted),
        "refresh_token": refresh_token,
    }
