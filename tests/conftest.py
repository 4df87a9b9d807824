"""Shared pytest fixtures for WhatsApp Send Bridge tests."""
import sys
sys.dont_write_bytecode = True

from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402

from wabridge.infrastructure.config import Settings  # noqa: E402
from wabridge.infrastructure.whatsapp import (  # noqa: E402
    MessagingSession,
    SessionState,
)


class FakeSession(MessagingSession):
    """In-memory session that records calls and replays scripted failures."""

    def __init__(self, state: SessionState = SessionState.READY):
        self._state = state
        self.listeners = []
        self.initialize_calls = 0
        self.logout_calls = 0
        self.close_calls = 0
        self.sent = []
        self.send_error: Optional[Exception] = None
        self.logout_errors: List[Exception] = []
        self.initialize_errors: List[Exception] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener) -> None:
        self.listeners.append(listener)

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.initialize_errors:
            raise self.initialize_errors.pop(0)

    async def send_message(self, chat_id, content, caption=None) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((chat_id, content, caption))

    async def logout(self) -> None:
        self.logout_calls += 1
        if self.logout_errors:
            raise self.logout_errors.pop(0)

    async def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def settings(monkeypatch, tmp_path) -> Settings:
    """Settings with session storage under a temp directory."""
    monkeypatch.setenv("WHATSAPP_AUTH_DIR", str(tmp_path / "auth"))
    monkeypatch.setenv("WHATSAPP_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("MAX_ATTACHMENT_BYTES", "1024")
    monkeypatch.setenv("LOGOUT_BACKOFF_SECONDS", "0")
    return Settings()
