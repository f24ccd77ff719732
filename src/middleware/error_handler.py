"""Exception handlers turning domain errors into JSON responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.exceptions import CardServiceError
from src.schemas.shared import ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, error_code: str, details=None) -> JSONResponse:
    body = ErrorResponse(message=message, error_code=error_code, details=details or None)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def card_service_error_handler(request: Request, exc: CardServiceError) -> JSONResponse:
    """Handle domain errors raised by services."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{exc.__class__.__name__}: {exc.message}",
        extra={"event": "request.domain_error", "error_code": exc.error_code, "path": request.url.path},
    )
    return _error_response(exc.status_code, exc.message, exc.error_code, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep framework HTTP errors in the same envelope."""
    return _error_response(exc.status_code, str(exc.detail), "http_error")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors; the caller only sees a generic message."""
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path}",
        extra={"event": "request.unhandled_error", "path": request.url.path},
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        "internal_error",
    )


def add_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(CardServiceError, card_service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
