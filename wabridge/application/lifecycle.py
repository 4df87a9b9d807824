"""
Session Lifecycle - Pairing, readiness and reconnection
========================================================

Tracks the session through pairing and readiness, and brings it back
after a disconnect by wiping the stored profile and starting over.
"""

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

import qrcode

from ..infrastructure.whatsapp import (
    MessagingSession,
    SessionEvent,
    SessionEventType,
)

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_SCAN = "awaiting_scan"
    AUTHENTICATED = "authenticated"
    READY = "ready"


def print_pairing_code(payload: str) -> None:
    """Render the pairing QR code in the terminal."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(payload)
    qr.print_ascii(invert=True)


class LifecycleController:
    """
    State machine driven by session events.

    Only DISCONNECTED has side effects: the credentials and cache
    directories are removed and the session is initialized again,
    retrying with a capped exponential backoff until it starts or the
    controller is stopped.
    """

    def __init__(
        self,
        session: MessagingSession,
        storage_dirs: Iterable[Path],
        render_pairing_code: Callable[[str], None] = print_pairing_code,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._session = session
        self._storage_dirs = list(storage_dirs)
        self._render_pairing_code = render_pairing_code
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._sleep = sleep
        self._stopped = False
        self.state = LifecycleState.UNAUTHENTICATED

    async def start(self) -> None:
        """Subscribe to the session and start it."""
        self._session.subscribe(self.handle_event)
        await self._session.initialize()

    def stop(self) -> None:
        """Stop reacting to disconnects; pending reconnect attempts give up."""
        self._stopped = True

    async def handle_event(self, event: SessionEvent) -> None:
        if event.type is SessionEventType.QR:
            self._render_pairing_code(event.payload or "")
            logger.info("Please scan the QR code to connect to WhatsApp")
            self.state = LifecycleState.AWAITING_SCAN

        elif event.type is SessionEventType.AUTHENTICATED:
            logger.info("Authenticated successfully!")
            self.state = LifecycleState.AUTHENTICATED

        elif event.type is SessionEventType.READY:
            logger.info("WhatsApp client is ready")
            self.state = LifecycleState.READY

        elif event.type is SessionEventType.DISCONNECTED:
            await self._on_disconnected(event.payload)

    async def _on_disconnected(self, reason: Optional[str]) -> None:
        logger.warning(f"Client was disconnected: {reason}")
        self.state = LifecycleState.UNAUTHENTICATED

        await self.remove_storage()

        await self._reinitialize()

    async def _reinitialize(self) -> None:
        delay = self._reconnect_delay
        while not self._stopped:
            logger.info("Re-initializing WhatsApp client...")
            try:
                await self._session.initialize()
                return
            except Exception:
                logger.exception(f"Re-initialization failed, retrying in {delay}s")
            await self._sleep(delay)
            delay = min(delay * 2, self._max_reconnect_delay)
        logger.info("Lifecycle stopped, not re-initializing")

    async def remove_storage(self) -> bool:
        """
        Delete the stored session directories.
        Returns False if any of them could not be removed.
        """
        removed = True
        for path in self._storage_dirs:
            try:
                await asyncio.to_thread(shutil.rmtree, path)
            except FileNotFoundError:
                continue
            except OSError:
                logger.exception(f"Failed to remove session directory: {path}")
                removed = False

        if removed:
            logger.info("Auth and cache directories removed successfully.")
        return removed
