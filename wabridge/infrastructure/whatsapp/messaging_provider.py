"""
Messaging Provider - Abstraction Layer for the WhatsApp Session
================================================================

Provides a unified interface over a WhatsApp session: lifecycle events,
outbound messages and logout. Currently backed by Selenium automation of
WhatsApp Web.

USAGE:
    session = SeleniumSession(settings.whatsapp)
    session.subscribe(on_event)
    await session.initialize()
    await session.send_message("923001234567@c.us", "Hello!")
"""

import asyncio
import errno
import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from contextlib import suppress
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Union

from selenium.common.exceptions import WebDriverException

from ..config import WhatsAppSettings
from .models import (
    MessageMedia,
    SessionEvent,
    SessionEventType,
    SessionState,
    phone_from_chat_address,
)
from .whatsapp_client import (
    ResourceBusyError,
    SessionNotReadyError,
    WhatsAppClient,
)

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent], Awaitable[None]]

# Windows reports a locked file as a sharing violation instead of EBUSY
_WINDOWS_SHARING_VIOLATION = 32


def is_resource_busy(exc: OSError) -> bool:
    """True if the OS error means the file is locked by another process."""
    return (
        exc.errno == errno.EBUSY
        or getattr(exc, "winerror", None) == _WINDOWS_SHARING_VIOLATION
    )


class MessagingSession(ABC):
    """
    Abstract base class for WhatsApp sessions.
    Implement this interface to add new messaging backends.
    """

    @property
    @abstractmethod
    def state(self) -> SessionState:
        """Current lifecycle state."""
        ...

    @abstractmethod
    def subscribe(self, listener: SessionListener) -> None:
        """Register a coroutine called with every session event."""
        ...

    @abstractmethod
    async def initialize(self) -> None:
        """Start (or restart) the session and begin emitting events."""
        ...

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        content: Union[str, MessageMedia],
        caption: Optional[str] = None,
    ) -> None:
        """Send text or media to a chat address. Raises on failure."""
        ...

    @abstractmethod
    async def logout(self) -> None:
        """Unlink the device and remove stored credentials."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the session without unlinking."""
        ...


class SeleniumSession(MessagingSession):
    """
    Selenium-based WhatsApp Web session.

    Watches the page in a background task and turns what it sees into
    session events. The WebDriver is not thread-safe, so every driver
    call goes through one lock and runs on a worker thread.
    """

    def __init__(
        self,
        settings: WhatsAppSettings,
        client_factory: Callable[[WhatsAppSettings], WhatsAppClient] = WhatsAppClient,
    ):
        self._settings = settings
        self._client_factory = client_factory
        self._client: Optional[WhatsAppClient] = None
        self._state = SessionState.UNAUTHENTICATED
        self._last_qr: Optional[str] = None
        self._listeners: List[SessionListener] = []
        self._lock = asyncio.Lock()
        self._watcher: Optional[asyncio.Task] = None

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    async def initialize(self) -> None:
        """Launch the browser on the stored profile and start watching it."""
        await self._stop_watcher()

        async with self._lock:
            if self._client is not None:
                await asyncio.to_thread(self._client.close)
                self._client = None
            logger.info("Launching WhatsApp Web...")
            self._client = await asyncio.to_thread(self._client_factory, self._settings)
            self._state = SessionState.UNAUTHENTICATED
            self._last_qr = None

        self._watcher = asyncio.create_task(self._watch())

    async def send_message(
        self,
        chat_id: str,
        content: Union[str, MessageMedia],
        caption: Optional[str] = None,
    ) -> None:
        if self._state is not SessionState.READY:
            raise SessionNotReadyError(
                f"WhatsApp session is not ready (state: {self._state.value})"
            )

        phone = phone_from_chat_address(chat_id)
        async with self._lock:
            client = self._client
            if client is None:
                raise SessionNotReadyError("WhatsApp session is not running")

            if isinstance(content, MessageMedia):
                await asyncio.to_thread(self._send_media, client, phone, content, caption)
            else:
                await asyncio.to_thread(client.send_text, phone, content)

    @staticmethod
    def _send_media(
        client: WhatsAppClient,
        phone: str,
        media: MessageMedia,
        caption: Optional[str],
    ) -> None:
        """Write the attachment to a temp file the browser can upload."""
        filename = Path(media.filename).name or "attachment"
        with tempfile.TemporaryDirectory(prefix="wabridge-") as tmp:
            path = Path(tmp) / filename
            path.write_bytes(media.data)
            client.send_file(phone, path, caption)

    async def logout(self) -> None:
        """
        Unlink the device, quit the browser and remove the stored profile.

        Safe to retry: steps that already completed are skipped.
        """
        await self._stop_watcher()

        async with self._lock:
            client = self._client
            if client is not None:
                if self._state in (SessionState.AUTHENTICATED, SessionState.READY):
                    await asyncio.to_thread(client.logout)
                await asyncio.to_thread(client.close)
                self._client = None
                self._state = SessionState.UNAUTHENTICATED

            await asyncio.to_thread(self._remove_auth_dir)

    def _remove_auth_dir(self) -> None:
        try:
            shutil.rmtree(self._settings.auth_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            if is_resource_busy(e):
                raise ResourceBusyError(str(e)) from e
            raise

    async def close(self) -> None:
        await self._stop_watcher()

        async with self._lock:
            if self._client is not None:
                await asyncio.to_thread(self._client.close)
                self._client = None
            self._state = SessionState.DISCONNECTED

    # ── Page watcher ───────────────────────────────────────────────

    async def _stop_watcher(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is None or watcher.done() or watcher is asyncio.current_task():
            return
        watcher.cancel()
        with suppress(asyncio.CancelledError):
            await watcher

    async def _watch(self) -> None:
        me = asyncio.current_task()
        while self._watcher is me:
            try:
                events = await self._poll_once()
            except Exception:
                logger.exception("Page status check failed")
                events = []
            for event in events:
                await self._dispatch(event)
            if any(e.type is SessionEventType.DISCONNECTED for e in events):
                return
            await asyncio.sleep(self._settings.poll_interval)

    async def _poll_once(self) -> List[SessionEvent]:
        """Read the page once and return the events it implies."""
        async with self._lock:
            if self._client is None:
                return []
            try:
                status = await asyncio.to_thread(self._client.read_status)
            except WebDriverException as e:
                logger.warning(f"Browser unreachable: {e.msg}")
                return [await self._disconnect("BROWSER_CLOSED")]

            if status.qr_payload:
                if self._state in (SessionState.AUTHENTICATED, SessionState.READY):
                    return [await self._disconnect("LOGOUT")]
                if status.qr_payload == self._last_qr:
                    return []
                self._last_qr = status.qr_payload
                self._state = SessionState.AWAITING_SCAN
                return [SessionEvent(SessionEventType.QR, status.qr_payload)]

            events = []
            if self._state in (SessionState.UNAUTHENTICATED, SessionState.AWAITING_SCAN):
                if status.loading or status.logged_in:
                    self._state = SessionState.AUTHENTICATED
                    events.append(SessionEvent(SessionEventType.AUTHENTICATED))
            if self._state is SessionState.AUTHENTICATED and status.logged_in:
                self._state = SessionState.READY
                events.append(SessionEvent(SessionEventType.READY))
            return events

    async def _disconnect(self, reason: str) -> SessionEvent:
        """Quit the browser so its profile can be removed. Caller holds the lock."""
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            self._client = None
        self._state = SessionState.DISCONNECTED
        return SessionEvent(SessionEventType.DISCONNECTED, reason)

    async def _dispatch(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception(f"Session listener failed on {event.type.value} event")
