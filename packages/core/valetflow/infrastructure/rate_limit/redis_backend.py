"""Rate limit counters shared through Redis.

Example:
    ```python
    backend = RedisRateLimitBackend(redis_url="redis://localhost:6379/0")
    limiter = RateLimiter(observability, shared_backend=backend)
    ```
"""

import os

import structlog
from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from valetflow.domain.interfaces.document_store import StateStoreError
from valetflow.domain.interfaces.rate_limit_backend import RateLimitBackend
from valetflow.domain.models.errors import RateLimitedError

logger = structlog.get_logger(__name__)

KEY_PATTERN_RATE_LIMIT = "valetflow:rate_limit:{caller_id}"


class RedisRateLimitBackend(RateLimitBackend):
    """Fixed-window counter using INCR with a window-long expiry.

    The first hit in a window creates the key and sets its expiry; the key
    disappearing is what starts the next window. Redis failures surface as
    StateStoreError so the caller can fall back to its in-process counter.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        max_requests: int = 30,
        window_seconds: int = 60,
        connection_timeout: float = 5.0,
    ) -> None:
        """Initialize RedisRateLimitBackend.

        Args:
            redis_url: Redis connection URL. If None, reads from REDIS_URL.
            max_requests: Requests allowed per caller per window.
            window_seconds: Window length in seconds.
            connection_timeout: Socket timeout in seconds.

        Raises:
            StateStoreError: If no URL is available or it cannot be parsed.
        """
        self._redis_url = redis_url or os.getenv("REDIS_URL")
        if not self._redis_url:
            raise StateStoreError(
                "Redis URL not provided. Set REDIS_URL environment variable or pass redis_url."
            )
        self._max_requests = max_requests
        self._window_seconds = window_seconds

        try:
            self._connection_pool: ConnectionPool | None = ConnectionPool.from_url(
                self._redis_url,
                max_connections=10,
                socket_connect_timeout=connection_timeout,
                socket_timeout=connection_timeout,
                retry_on_timeout=True,
            )
            self._redis: Redis | None = Redis(connection_pool=self._connection_pool)
        except (ValueError, RedisError) as e:
            raise StateStoreError(f"Invalid Redis URL: {e}") from e

    async def hit(self, caller_id: str) -> None:
        if self._redis is None:
            raise StateStoreError("Redis connection not available")

        key = KEY_PATTERN_RATE_LIMIT.format(caller_id=caller_id)
        try:
            count = await self._redis.incr(key)
            ttl = await self._redis.ttl(key)
            if count == 1 or ttl < 0:
                # New window, or a key left without expiry by an interrupted hit.
                await self._redis.expire(key, self._window_seconds)
                ttl = self._window_seconds
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning("redis_rate_limit_failed", caller_id=caller_id, error=str(e))
            raise StateStoreError(f"Redis rate limit check failed: {e}") from e

        if count > self._max_requests:
            raise RateLimitedError(
                "Too many requests. Please slow down.",
                retry_after=max(1, ttl),
                details={"caller_id": caller_id, "limit": self._max_requests},
            )

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        if self._connection_pool is not None:
            await self._connection_pool.disconnect()
            self._connection_pool = None
