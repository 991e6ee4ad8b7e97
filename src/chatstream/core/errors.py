from __future__ import annotations

import logging
from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChatStreamError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.detail
        super().__init__(self.detail)


# ---------- client errors ----------
class ValidationError(ChatStreamError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request"


class InvalidInput(ValidationError):
    pass


class InvalidDirection(ValidationError):
    detail = "direction must be 'after' or 'before'"


class MalformedCursor(ValidationError):
    detail = "Invalid cursor format"


class NotFoundError(ChatStreamError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class ConversationNotFound(NotFoundError):
    detail = "Conversation not found"


class MessageNotFound(NotFoundError):
    detail = "Message not found"


class ConflictError(ChatStreamError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Conflict"


class AuthenticationError(ChatStreamError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Unauthorized"


# ---------- server side ----------
class PersistenceError(ChatStreamError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Storage temporarily unavailable"


class ProviderErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    CONNECTION = "connection"
    UNKNOWN = "unknown"


PROVIDER_ERROR_MESSAGES: dict[ProviderErrorKind, str] = {
    ProviderErrorKind.NOT_CONFIGURED: "AI service not configured",
    ProviderErrorKind.CONNECTION: "Cannot connect to AI service",
    ProviderErrorKind.RATE_LIMITED: "AI service rate limit exceeded",
    ProviderErrorKind.UNAVAILABLE: "AI service temporarily unavailable",
    ProviderErrorKind.UNKNOWN: "AI service unavailable",
}


class ProviderError(ChatStreamError):
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, kind: ProviderErrorKind, detail: str | None = None):
        self.kind = kind
        super().__init__(detail or PROVIDER_ERROR_MESSAGES[kind])

    @property
    def user_message(self) -> str:
        return PROVIDER_ERROR_MESSAGES[self.kind]


class ProviderNotConfigured(ProviderError):
    def __init__(self, detail: str | None = None):
        super().__init__(ProviderErrorKind.NOT_CONFIGURED, detail)


# ---------- transport ----------
class TransportError(ChatStreamError):
    detail = "Transport error"


class StreamClosed(TransportError):
    detail = "Response stream closed"


class WriteTimeout(TransportError):
    detail = "Write timeout"


class WriteFailed(TransportError):
    detail = "Write failed"


# ---------- cancellation (internal only, never sent to a client) ----------
class Cancelled(ChatStreamError):
    detail = "Generation cancelled"


class AlreadyCancelled(Cancelled):
    detail = "Generation cancelled before start"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ChatStreamError)
    async def _chatstream_error(request: Request, exc: ChatStreamError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
