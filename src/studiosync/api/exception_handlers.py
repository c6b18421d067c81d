"""Custom exception handlers for the FastAPI application.

Every error leaves the API in the same envelope the frontend already parses:

    {"success": false, "error": "<message>", "timestamp": "<ISO-8601>"}

Hey future me - the status mapping matters to the client. 401 sends the user back to the
login screen, 502 means "auth provider is down, try again", 500 means our storage broke.
Don't collapse them into one generic 500.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from studiosync.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    ExternalServiceError,
    InvalidStateException,
    SyncAbortedError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Checked in order, first isinstance match wins.
_STATUS_BY_EXCEPTION: list[tuple[type[DomainException], int]] = [
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (ValidationException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidStateException, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (SyncAbortedError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    """Build the shared error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "timestamp": datetime.now(UTC).isoformat(),
            **extra,
        },
    )


def status_for(exc: DomainException) -> int:
    for exc_type, status_code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain, validation, HTTP and unexpected errors."""

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "%s at %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "status_code": status_code},
        )
        return error_response(status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        ]
        logger.warning("Request validation error at %s: %s", request.url.path, errors)
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "; ".join(errors) or "Invalid request"
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception("Unhandled error at %s", request.url.path)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal server error"
        )
