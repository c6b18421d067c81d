"""Shared HTTP client pool for connection reuse across services.

Hey future me - instead of creating a new httpx.AsyncClient per download or per auth call
(which wastes TCP connections and ignores keep-alive), everything in this service uses this
shared pool. A sync run fetches up to three audio files at once from the same CDN, so
keep-alive actually pays off here.

Usage:
    from studiosync.infrastructure.integrations.http_pool import HttpClientPool

    client = await HttpClientPool.get_client()
    response = await client.get(url)

HttpClientPool.close() is called at app shutdown (see lifecycle.py).
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Singleton HTTP client pool for connection reuse.

    Lazily creates one shared httpx.AsyncClient and closes it at shutdown.
    """

    # Class variables, shared across all callers. _lock guards first initialization.
    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_TIMEOUT: ClassVar[float] = 30.0
    DEFAULT_MAX_KEEPALIVE: ClassVar[int] = 10
    DEFAULT_MAX_CONNECTIONS: ClassVar[int] = 20

    @classmethod
    async def _ensure_lock(cls) -> asyncio.Lock:
        # asyncio.Lock() wants a running loop, so it is created on first use.
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(
        cls,
        timeout: float | None = None,
        max_keepalive: int | None = None,
        max_connections: int | None = None,
    ) -> httpx.AsyncClient:
        """Get the shared HTTP client instance.

        Config params only apply on the FIRST call; later calls return the same client.
        Per-request timeouts are passed to client.get() by the callers.
        """
        lock = await cls._ensure_lock()

        async with lock:
            if cls._client is None:
                effective_timeout = timeout or cls.DEFAULT_TIMEOUT
                effective_keepalive = max_keepalive or cls.DEFAULT_MAX_KEEPALIVE
                effective_max_conn = max_connections or cls.DEFAULT_MAX_CONNECTIONS

                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(effective_timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=effective_keepalive,
                        max_connections=effective_max_conn,
                    ),
                    http2=True,
                    # Provider CDNs redirect to signed URLs
                    follow_redirects=True,
                )
                logger.info(
                    "HTTP client pool initialized (timeout=%.1fs, keepalive=%d, max_conn=%d)",
                    effective_timeout,
                    effective_keepalive,
                    effective_max_conn,
                )

            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client and release all connections."""
        lock = await cls._ensure_lock()

        async with lock:
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                logger.info("HTTP client pool closed")
