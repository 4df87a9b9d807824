"""
WhatsApp Models - Session states, events and outbound payloads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """Lifecycle state of a WhatsApp Web session."""
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_SCAN = "awaiting_scan"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    DISCONNECTED = "disconnected"


class SessionEventType(str, Enum):
    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SessionEvent:
    """
    Notification emitted by a session.

    payload holds the QR string for QR events and the reason for
    DISCONNECTED events.
    """
    type: SessionEventType
    payload: Optional[str] = None


@dataclass(frozen=True)
class PageStatus:
    """Snapshot of what WhatsApp Web is currently showing."""
    qr_payload: Optional[str] = None
    loading: bool = False
    logged_in: bool = False


@dataclass(frozen=True)
class MessageMedia:
    """A binary attachment ready to be sent."""
    mimetype: str
    data: bytes
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


def chat_address(number: str, suffix: str = "@c.us") -> str:
    """Build the chat address for a phone number (e.g. 919999999999@c.us)."""
    return f"{number}{suffix}"


def phone_from_chat_address(chat_id: str) -> str:
    """Strip the domain suffix from a chat address."""
    return chat_id.split("@", 1)[0]
