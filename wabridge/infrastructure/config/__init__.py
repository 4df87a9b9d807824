from .settings import (
    Settings,
    ServerSettings,
    ShutdownSettings,
    WhatsAppSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "ServerSettings",
    "ShutdownSettings",
    "WhatsAppSettings",
    "get_settings",
]
