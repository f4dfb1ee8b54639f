"""Shared rate limit backends."""

from valetflow.infrastructure.rate_limit.redis_backend import RedisRateLimitBackend
from valetflow.infrastructure.rate_limit.store_backend import StoreRateLimitBackend

__all__ = ["RedisRateLimitBackend", "StoreRateLimitBackend"]
