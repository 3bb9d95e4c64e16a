"""
Background cleanup of expired Canva authorization states.

Abandoned authorizations (the user never came back from Canva) leave
state rows behind. run_cleanup_task is started from the application
lifespan and deletes them periodically.
"""

import asyncio
import logging

from tripmatrix.core.config import settings
from tripmatrix.crud.canva_state import cleanup_expired_authorization_states

logger = logging.getLogger(__name__)


async def run_cleanup_task(
    *,
    get_session,
    interval_seconds: int | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Periodically remove expired authorization states.

    Runs until cancelled or stop_event is set.

    Args:
        get_session: Callable that returns a database session context manager
        interval_seconds: Time between cleanup runs
            (defaults to settings.STATE_CLEANUP_INTERVAL_SECONDS)
        stop_event: Optional event to signal task shutdown
    """
    if interval_seconds is None:
        interval_seconds = settings.STATE_CLEANUP_INTERVAL_SECONDS

    logger.info(
        "Canva state cleanup task started (interval: %d seconds)",
        interval_seconds,
    )

    while True:
        try:
            if stop_event is not None and stop_event.is_set():
                break

            # Wait for the interval (or until stop_event is set)
            if stop_event is not None:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
                    break
                except asyncio.TimeoutError:
                    pass
            else:
                await asyncio.sleep(interval_seconds)

            with get_session() as session:
                count = cleanup_expired_authorization_states(session=session)
                if count > 0:
                    logger.info("Cleaned up %d expired Canva authorization states", count)
                else:
                    logger.debug("No expired Canva authorization states to clean up")

        except asyncio.CancelledError:
            logger.info("Canva state cleanup task cancelled")
            raise
        except Exception:
            logger.exception("Error in Canva state cleanup task")
            # Keep running; the next tick retries
            await asyncio.sleep(interval_seconds)

    logger.info("Canva state cleanup task stopped")
