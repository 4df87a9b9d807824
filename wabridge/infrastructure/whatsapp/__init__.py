from .models import (
    MessageMedia,
    PageStatus,
    SessionEvent,
    SessionEventType,
    SessionState,
    chat_address,
)
from .whatsapp_client import (
    ResourceBusyError,
    SessionNotReadyError,
    WhatsAppBlockedError,
    WhatsAppClient,
    WhatsAppClientError,
)
from .messaging_provider import MessagingSession, SeleniumSession, SessionListener

__all__ = [
    "MessageMedia",
    "MessagingSession",
    "PageStatus",
    "ResourceBusyError",
    "SeleniumSession",
    "SessionEvent",
    "SessionEventType",
    "SessionListener",
    "SessionNotReadyError",
    "SessionState",
    "WhatsAppBlockedError",
    "WhatsAppClient",
    "WhatsAppClientError",
    "chat_address",
]
