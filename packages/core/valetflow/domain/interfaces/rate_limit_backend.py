"""RateLimitBackend interface for counters shared across processes."""

from abc import ABC, abstractmethod


class RateLimitBackend(ABC):
    """Shared, eventually-consistent fixed-window counter.

    Layered behind the in-process limiter so several service instances see
    one budget per caller. The in-process check always runs first.
    """

    @abstractmethod
    async def hit(self, caller_id: str) -> None:
        """Count one request for ``caller_id``.

        Raises:
            RateLimitedError: If the shared window is exhausted.
        """

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""
