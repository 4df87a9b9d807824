"""
FastAPI Web Application - WhatsApp Send Bridge
===============================================

POST /send relays a text message or a file attachment to a phone number
through the WhatsApp session. GET /health reports the session state.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..application import LifecycleController, shutdown_session
from ..infrastructure.config import Settings
from ..infrastructure.whatsapp import MessageMedia, MessagingSession, chat_address

logger = logging.getLogger(__name__)


class SendResponse(BaseModel):
    status: str = "success"
    message: str


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
    error: Optional[str] = None


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(message=message, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def _attachment(request: Request) -> Optional[UploadFile]:
    """The uploaded `pdf` file, or None if the field is missing or not a file."""
    form = await request.form()
    pdf = form.get("pdf")
    return pdf if isinstance(pdf, UploadFile) else None


def create_app(
    session: MessagingSession,
    settings: Settings,
    controller: Optional[LifecycleController] = None,
) -> FastAPI:
    """
    Build the HTTP app around an already constructed session.

    When a controller is given the app owns the session lifecycle: the
    controller is started on startup, and on shutdown it is stopped
    before the logout sequence runs.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if controller is not None:
            await controller.start()
        yield
        if controller is not None:
            controller.stop()
            await shutdown_session(session, settings.shutdown)

    app = FastAPI(
        title="WhatsApp Send Bridge",
        description="Relay messages and files to WhatsApp",
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request", error=str(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.post("/send", response_model=SendResponse)
    async def send(
        request: Request,
        number: Optional[str] = None,
        message: Optional[str] = None,
    ):
        """Send a text message or a PDF to a phone number."""
        if not number:
            return _error(400, "Please provide a number")

        chat_id = chat_address(number, settings.whatsapp.chat_suffix)
        max_bytes = settings.server.max_attachment_bytes
        pdf = await _attachment(request)

        try:
            if pdf is not None:
                if pdf.size is not None and pdf.size > max_bytes:
                    return _error(413, f"Attachment exceeds {max_bytes} bytes")

                media = MessageMedia(
                    mimetype=pdf.content_type or "application/octet-stream",
                    data=await pdf.read(),
                    filename=pdf.filename or "attachment",
                )
                if media.size > max_bytes:
                    return _error(413, f"Attachment exceeds {max_bytes} bytes")

                await session.send_message(
                    chat_id, media, caption=settings.server.attachment_caption
                )
                return SendResponse(message="PDF sent successfully")

            if message:
                await session.send_message(chat_id, message)
                return SendResponse(message="Message sent successfully")

        except Exception as e:
            logger.exception(f"Failed to send to {chat_id}: {e}")
            return _error(500, "Failed to send", error=str(e))

        return _error(400, "Please provide either a message or a PDF file")

    @app.get("/health")
    async def health():
        return {"status": "ok", "session": session.state.value}

    return app
