"""
CRUD operations for CanvaAuthorizationState.

States are single-use: consume_authorization_state deletes the row with a
conditional DELETE and only the caller whose DELETE removed it gets the
row back, so a replayed callback can never redeem the same state twice.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from tripmatrix.core.errors import StorageError
from tripmatrix.models import CanvaAuthorizationState

logger = logging.getLogger(__name__)


def store_authorization_state(
    *,
    session: Session,
    state: str,
    user_id: int,
    code_verifier: str,
    redirect_uri: str,
    diary_id: int | None = None,
    now: datetime | None = None,
) -> CanvaAuthorizationState:
    """
    Persist a new authorization state with a 10 minute lifetime.

    Raises:
        StorageError: If the row cannot be written.
    """
    auth_state = CanvaAuthorizationState.issue(
        state=state,
        user_id=user_id,
        code_verifier=code_verifier,
        redirect_uri=redirect_uri,
        diary_id=diary_id,
        now=now,
    )
    try:
        session.add(auth_state)
        session.commit()
        session.refresh(auth_state)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Failed to store Canva authorization state for user %s: %s", user_id, e)
        raise StorageError() from e
    return auth_state


def get_authorization_state(
    *,
    session: Session,
    state: str,
) -> CanvaAuthorizationState | None:
    """Look up a state without consuming it."""
    return session.get(CanvaAuthorizationState, state)


def consume_authorization_state(
    *,
    session: Session,
    state: str,
) -> CanvaAuthorizationState | None:
    """
    Atomically delete a state and return it.

    Expiry is not checked here; the caller decides what an expired row
    means. The row is removed either way.

    Returns:
        The detached state row, or None if it did not exist or another
        caller consumed it first.

    Raises:
        StorageError: If the delete fails.
    """
    try:
        auth_state = session.get(CanvaAuthorizationState, state)
        if auth_state is None:
            return None

        # Keep loaded attributes readable after the row is gone
        session.expunge(auth_state)

        result = session.connection().execute(
            delete(CanvaAuthorizationState).where(CanvaAuthorizationState.state == state)
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Failed to consume Canva authorization state: %s", e)
        raise StorageError() from e

    if result.rowcount != 1:
        logger.info("Canva authorization state was consumed concurrently")
        return None

    return auth_state


def cleanup_expired_authorization_states(
    *,
    session: Session,
    now: datetime | None = None,
) -> int:
    """
    Remove all expired authorization states.

    Returns:
        Number of states removed
    """
    now = now or datetime.now(timezone.utc)

    statement = select(CanvaAuthorizationState).where(
        CanvaAuthorizationState.expires_at <= now
    )
    expired_states = session.exec(statement).all()

    count = len(expired_states)
    for auth_state in expired_states:
        session.delete(auth_state)

    if count > 0:
        session.commit()

    return count
