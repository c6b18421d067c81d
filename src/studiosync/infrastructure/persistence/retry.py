# Hey future me - SQLite can only have ONE writer at a time. Two sync runs for the same
# user (double click in the UI, periodic sync overlapping a manual one) hit "database is
# locked" now and then. Those locks are temporary: wait a bit, try again, it works.
#
# retry_async() is the generic loop (exponential backoff, caller decides what is
# retryable). with_db_retry() is the decorator for repository writes, and the download
# batcher reuses retry_async() for transient network errors.
"""Retry utilities with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[Exception], bool],
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
    label: str = "operation",
) -> T:
    """Run an async operation, retrying retryable failures with backoff.

    The backoff is exponential: 0.5s -> 1s -> 2s (capped at max_delay).
    Non-retryable exceptions and the last failure are re-raised unchanged.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt)
        should_retry: Predicate deciding whether an exception is transient
        max_attempts: Total attempts including the first one
        initial_delay: Delay before the second attempt in seconds
        max_delay: Upper bound for a single delay
        backoff_factor: Multiplier applied after each retry
        label: Name used in log messages
    """
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt >= max_attempts or not should_retry(e):
                raise
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                label,
                attempt,
                max_attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            delay = min(delay * backoff_factor, max_delay)
    # max_attempts < 1 never enters the loop
    raise ValueError("max_attempts must be at least 1")


def is_lock_error(exc: Exception) -> bool:
    """True for SQLite "database is locked" / "busy" errors."""
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying database operations on lock errors.

    Only lock errors are retried; other OperationalErrors (connection refused,
    bad SQL) fail fast.

    Example:
        @with_db_retry(max_attempts=3)
        async def save_sync_fields(self, job: GenerationJob) -> None:
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await retry_async(
                lambda: func(*args, **kwargs),
                should_retry=is_lock_error,
                max_attempts=max_attempts,
                initial_delay=initial_delay,
                max_delay=max_delay,
                backoff_factor=backoff_factor,
                label=f"{func.__module__}.{func.__qualname__}",
            )

        return wrapper

    return decorator
