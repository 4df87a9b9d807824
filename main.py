"""
WhatsApp Send Bridge - Server Entry Point
==========================================

Run this to start the bridge:
    python main.py

Scan the QR code printed in the terminal with WhatsApp on your phone,
then send messages with:
    curl -X POST "http://localhost:5000/send?number=919999999999&message=Hello"
    curl -X POST "http://localhost:5000/send?number=919999999999" -F "pdf=@invoice.pdf"

Press Ctrl+C to log out and stop.
"""

import logging

import uvicorn

from wabridge.application import LifecycleController
from wabridge.infrastructure.config import get_settings
from wabridge.infrastructure.whatsapp import SeleniumSession
from wabridge.web import create_app

logger = logging.getLogger(__name__)


def main():
    """Start the WhatsApp session and the HTTP server."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    for issue in settings.validate():
        logger.warning(issue)

    session = SeleniumSession(settings.whatsapp)
    controller = LifecycleController(
        session,
        storage_dirs=[settings.whatsapp.auth_dir, settings.whatsapp.cache_dir],
        reconnect_delay=settings.whatsapp.reconnect_delay,
        max_reconnect_delay=settings.whatsapp.max_reconnect_delay,
    )
    app = create_app(session, settings, controller)

    logger.info(f"Starting server on http://{settings.server.host}:{settings.server.port}")

    # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which logs out
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.server.shutdown_grace_seconds,
    )


if __name__ == "__main__":
    main()
