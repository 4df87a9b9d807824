"""
Graceful Shutdown - Bounded logout before the process exits.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from ..infrastructure.config import ShutdownSettings
from ..infrastructure.whatsapp import MessagingSession, ResourceBusyError

logger = logging.getLogger(__name__)


async def safe_logout(
    session: MessagingSession,
    attempts: int = 3,
    backoff_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """
    Log the session out, retrying while its storage is busy.

    Returns True on success and False once all attempts are used up.
    Errors other than ResourceBusyError are raised on the first failure.
    """
    retries = attempts
    while retries > 0:
        try:
            await session.logout()
            logger.info("Logged out successfully.")
            return True
        except ResourceBusyError:
            logger.info("Resource busy, retrying logout...")
            retries -= 1
            await sleep(backoff_seconds)

    logger.error("Failed to log out after multiple attempts.")
    return False


async def shutdown_session(session: MessagingSession, settings: ShutdownSettings) -> bool:
    """
    Run the logout sequence and release the browser.

    Never raises: a failed logout is logged and the process carries on
    exiting.
    """
    logger.info("Shutting down gracefully...")
    try:
        return await safe_logout(
            session,
            attempts=settings.logout_attempts,
            backoff_seconds=settings.logout_backoff_seconds,
        )
    except Exception:
        logger.exception("Logout aborted")
        return False
    finally:
        await session.close()
