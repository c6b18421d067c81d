"""Middleware for observability: correlation ids and request logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from studiosync.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me, this runs before every route. It takes the caller's X-Correlation-ID (or
# mints one), so every log line of a sync run carries it, and echoes it back on the
# response. Clients can put that id in a bug report and we find the whole run.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Sets the correlation id and logs each request with its duration."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_correlation_id(request.headers.get(CORRELATION_HEADER))
        method = request.method
        path = request.url.path

        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if path != "/health":
            logger.info(
                f"{method} {path} → {response.status_code} ({duration_ms}ms)",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response
