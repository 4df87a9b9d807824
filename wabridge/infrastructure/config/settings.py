"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclass for safety and clarity
- Single source of truth for all configurable values
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file if present (development convenience)
load_dotenv()


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class WhatsAppSettings:
    """WhatsApp Web session and browser settings."""

    web_url: str = "https://web.whatsapp.com/"

    # Persisted session storage, owned by the browser profile
    auth_dir: Path = field(
        default_factory=lambda: Path(_env_str("WHATSAPP_AUTH_DIR", ".whatsapp_auth"))
    )
    cache_dir: Path = field(
        default_factory=lambda: Path(_env_str("WHATSAPP_CACHE_DIR", ".whatsapp_cache"))
    )

    # Personal chats are addressed as <number>@c.us
    chat_suffix: str = field(
        default_factory=lambda: _env_str("WHATSAPP_CHAT_SUFFIX", "@c.us")
    )

    # Browser settings
    headless: bool = field(default_factory=lambda: _env_bool("WHATSAPP_HEADLESS", True))

    # Seconds between page status checks
    poll_interval: float = field(
        default_factory=lambda: _env_float("WHATSAPP_POLL_INTERVAL", 2.0)
    )

    # Backoff between failed relaunches after a disconnect, doubling up to the max
    reconnect_delay: float = field(
        default_factory=lambda: _env_float("WHATSAPP_RECONNECT_DELAY", 1.0)
    )
    max_reconnect_delay: float = field(
        default_factory=lambda: _env_float("WHATSAPP_RECONNECT_MAX_DELAY", 30.0)
    )

    # Seconds to wait for a chat composer after navigation
    chat_open_timeout: int = field(
        default_factory=lambda: _env_int("WHATSAPP_CHAT_TIMEOUT", 30)
    )


@dataclass(frozen=True)
class ServerSettings:
    """HTTP listener and delivery endpoint settings."""

    host: str = field(default_factory=lambda: _env_str("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 5000))

    # Attachments are buffered in memory before being handed to the browser
    max_attachment_bytes: int = field(
        default_factory=lambda: _env_int("MAX_ATTACHMENT_BYTES", 16 * 1024 * 1024)
    )
    attachment_caption: str = field(
        default_factory=lambda: _env_str("ATTACHMENT_CAPTION", "Here is your PDF!")
    )

    # Seconds uvicorn lets in-flight requests finish before the logout runs
    shutdown_grace_seconds: int = field(
        default_factory=lambda: _env_int("SHUTDOWN_GRACE_SECONDS", 5)
    )


@dataclass(frozen=True)
class ShutdownSettings:
    """Graceful logout settings."""

    logout_attempts: int = field(default_factory=lambda: _env_int("LOGOUT_ATTEMPTS", 3))
    logout_backoff_seconds: float = field(
        default_factory=lambda: _env_float("LOGOUT_BACKOFF_SECONDS", 1.0)
    )


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from wabridge.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.server.port)
    """

    # Sub-settings groups
    whatsapp: WhatsAppSettings = field(default_factory=WhatsAppSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    shutdown: ShutdownSettings = field(default_factory=ShutdownSettings)

    log_level: str = field(default_factory=lambda: _env_str("LOG_LEVEL", "INFO").upper())

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings/errors.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not self.whatsapp.headless:
            issues.append(
                "WARNING: WHATSAPP_HEADLESS is off. "
                "A visible browser window is required on this host."
            )

        if self.whatsapp.auth_dir == self.whatsapp.cache_dir:
            issues.append(
                "WARNING: WHATSAPP_AUTH_DIR and WHATSAPP_CACHE_DIR are the same path. "
                "Both are deleted on disconnect."
            )

        if self.shutdown.logout_attempts < 1:
            issues.append(
                "WARNING: LOGOUT_ATTEMPTS is below 1. "
                "Logout will be skipped on shutdown."
            )

        if self.server.max_attachment_bytes <= 0:
            issues.append(
                "WARNING: MAX_ATTACHMENT_BYTES is not positive. "
                "Every attachment will be rejected."
            )

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
