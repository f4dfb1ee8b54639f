"""Per-caller fixed-window rate limiter."""

import contextlib
from datetime import datetime, timedelta

from valetflow.domain.clock import Clock, utc_now
from valetflow.domain.interfaces.document_store import StateStoreError
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from valetflow.domain.interfaces.rate_limit_backend import RateLimitBackend
from valetflow.domain.models.errors import RateLimitedError
from valetflow.domain.models.rate_limit_counter import RateLimitCounter

RATE_LIMIT_MESSAGE = "Too many requests. Please slow down."


class RateLimiter:
    """Fixed-window request throttle keyed by caller identity.

    The in-process counter is the fast path and is always consulted. When a
    shared backend is configured it is hit afterwards so that several
    service instances share one budget per caller; a backend that fails for
    any reason other than an exhausted window is logged and ignored.

    Counting is exact per process: within one window the ``max_requests``-th
    request passes and the next one fails. Rejected requests still count.
    """

    # Expired windows are dropped once the local table grows past this size.
    _PRUNE_THRESHOLD = 10_000

    def __init__(
        self,
        observability_manager: ObservabilityManager,
        max_requests: int = 30,
        window_seconds: int = 60,
        shared_backend: RateLimitBackend | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize RateLimiter.

        Args:
            observability_manager: Used to report shared backend failures.
            max_requests: Requests allowed per caller per window.
            window_seconds: Window length in seconds.
            shared_backend: Optional cross-process counter.
            clock: Time source.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        self._observability = observability_manager
        self._max_requests = max_requests
        self._window = timedelta(seconds=window_seconds)
        self._shared_backend = shared_backend
        self._clock = clock
        self._counters: dict[str, RateLimitCounter] = {}

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def _check_local(self, caller_id: str) -> None:
        now = self._clock()
        counter = self._counters.get(caller_id)
        if counter is None:
            counter = RateLimitCounter(count=1, window_start=now)
        else:
            counter = counter.hit(now, self._window)
        self._counters[caller_id] = counter

        if counter.count > self._max_requests:
            raise RateLimitedError(
                RATE_LIMIT_MESSAGE,
                retry_after=counter.retry_after(now, self._window),
                details={"caller_id": caller_id, "limit": self._max_requests},
            )

        if len(self._counters) > self._PRUNE_THRESHOLD:
            self._prune(now)

    def _prune(self, now: datetime) -> None:
        self._counters = {
            caller: counter
            for caller, counter in self._counters.items()
            if not counter.is_expired(now, self._window)
        }

    async def check(self, caller_id: str) -> None:
        """Count one request for ``caller_id``.

        Raises:
            RateLimitedError: If the caller exhausted the current window,
                locally or in the shared backend.
        """
        self._check_local(caller_id)

        if self._shared_backend is None:
            return
        try:
            await self._shared_backend.hit(caller_id)
        except StateStoreError as e:
            with contextlib.suppress(ObservabilityError):
                await self._observability.log(
                    level="WARNING",
                    message="Shared rate limit check failed, relying on in-process counter",
                    context={"caller_id": caller_id, "error": str(e)},
                )

    def reset(self, caller_id: str | None = None) -> None:
        """Forget local counters for one caller, or for everyone."""
        if caller_id is None:
            self._counters.clear()
        else:
            self._counters.pop(caller_id, None)
