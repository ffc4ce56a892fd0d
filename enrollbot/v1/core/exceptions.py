"""
Application errors and the JSON envelopes of the status API.

Errors carry the queue context they were raised with (document id, queue
depths, worker states) in ``details`` so a failed response says which
document or worker was involved.
"""

import time
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from enrollbot.config.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class EnrollBotException(Exception):
    """Base exception; subclasses fix the HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.details = {key: value for key, value in context.items() if value is not None}
        super().__init__(message)


class ValidationError(EnrollBotException):
    """Admission input rejected, e.g. a document announced with no jobs."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, document_id: str | int | None = None, **context: Any):
        super().__init__(message, document_id=document_id, **context)


class QueueUnavailableError(EnrollBotException):
    """No queue runtime is attached, or a started worker loop is not running."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(
        self,
        message: str = "Queue runtime unavailable",
        queue: dict[str, Any] | None = None,
        workers: list[dict[str, Any]] | None = None,
        **context: Any,
    ):
        super().__init__(message, queue=queue, workers=workers, **context)


def request_id_of(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def success_envelope(request: Request, data: Any) -> dict[str, Any]:
    """Wrap endpoint data in the success envelope."""
    return {
        "ok": True,
        "data": data,
        "message": None,
        "request_id": request_id_of(request),
        "timestamp": datetime.now(UTC).isoformat(),
    }


def error_envelope(
    request: Request, status_code: int, message: str, details: dict[str, Any] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": {"message": message, "code": status_code, "details": details or {}},
            "request_id": request_id_of(request),
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def enrollbot_exception_handler(
    request: Request, exc: EnrollBotException
) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        exc.message,
        exception=exc.__class__.__name__,
        status_code=exc.status_code,
        document_id=exc.details.get("document_id"),
    )
    return error_envelope(request, exc.status_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning("HTTP exception", status_code=exc.status_code, detail=exc.detail)
    return error_envelope(request, exc.status_code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exception=exc.__class__.__name__, exc_info=True)
    return error_envelope(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to every log line of the request and echo it back.

    An inbound X-Request-ID is reused so a caller can correlate its own logs.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        ):
            response = await call_next(request)
            logger.debug(
                "Request served",
                status_code=response.status_code,
                duration_ms=round((time.monotonic() - started) * 1000, 1),
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
