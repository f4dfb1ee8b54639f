"""Rate limit counters shared through the document store."""

from datetime import timedelta
from typing import Any

from valetflow.domain.clock import Clock, utc_now
from valetflow.domain.document_paths import rate_limit_path
from valetflow.domain.interfaces.document_store import DocumentStore, Transaction
from valetflow.domain.interfaces.rate_limit_backend import RateLimitBackend
from valetflow.domain.models.errors import RateLimitedError
from valetflow.domain.models.rate_limit_counter import RateLimitCounter


class StoreRateLimitBackend(RateLimitBackend):
    """Fixed-window counter kept in one store document per caller.

    Each hit is a transaction on ``rate_limits/{caller_id}``. A rejected hit
    aborts its transaction, so the stored count never passes the limit.
    The stored ``expires_at`` lets an external TTL sweep reclaim idle
    counters.
    """

    def __init__(
        self,
        store: DocumentStore,
        max_requests: int = 30,
        window_seconds: int = 60,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._max_requests = max_requests
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock

    async def hit(self, caller_id: str) -> None:
        path = rate_limit_path(caller_id)

        async def record(tx: Transaction) -> None:
            now = self._clock()
            data: dict[str, Any] | None = await tx.get(path)
            if data is None:
                counter = RateLimitCounter(count=1, window_start=now)
            else:
                counter = RateLimitCounter.from_document(data).hit(now, self._window)

            if counter.count > self._max_requests:
                raise RateLimitedError(
                    "Too many requests. Please slow down.",
                    retry_after=counter.retry_after(now, self._window),
                    details={"caller_id": caller_id, "limit": self._max_requests},
                )

            tx.set(
                path,
                {**counter.to_document(), "expires_at": counter.window_start + 2 * self._window},
            )

        await self._store.run_transaction(record)
