"""Shared logger helpers.

Usage:
    logger = logging.getLogger(__name__)

    async with log_operation(logger, "sync.materialize", user_id=user.id):
        ...
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, wrap every sync stage in this! It logs {operation}.started / .completed with
# duration_ms, or .failed with the error type and full traceback, and re-raises so the
# caller decides what a failure means. The **context kwargs land as extra fields on
# every line (JSON logs make them queryable).
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[None]:
    """Log operation start/end with automatic timing.

    Args:
        logger: Module logger
        operation: Operation name (e.g. "sync.download")
        **context: Additional fields to include in logs
    """
    start = time.monotonic()
    logger.info(f"{operation}.started", extra=context)

    try:
        yield
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        f"{operation}.completed",
        extra={**context, "duration_ms": duration_ms},
    )
