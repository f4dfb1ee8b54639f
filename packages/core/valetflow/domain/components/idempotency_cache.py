"""Idempotency cache for booking creation."""

import contextlib
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from valetflow.domain.clock import Clock, utc_now
from valetflow.domain.document_paths import idempotency_path
from valetflow.domain.interfaces.document_store import (
    DocumentStore,
    StateStoreError,
    Transaction,
)
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from valetflow.domain.models.idempotency_record import IdempotencyRecord


class IdempotencyCache:
    """Maps (tenant, idempotency key) to a previously returned result.

    The default flow checks outside the create transaction and saves after
    it commits, both best-effort: a failed check is a miss and a failed save
    is logged. The ``*_in`` variants run inside a caller's transaction for
    strict deduplication.

    Records are written last-write-wins and reclaimed out of band once
    ``expires_at`` passes; this class never deletes them.
    """

    def __init__(
        self,
        store: DocumentStore,
        observability_manager: ObservabilityManager,
        ttl: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
    ) -> None:
        """Initialize IdempotencyCache.

        Args:
            store: Document store holding the records.
            observability_manager: Used to report best-effort failures.
            ttl: How long a record is honored.
            clock: Time source.
        """
        self._store = store
        self._observability = observability_manager
        self._ttl = ttl
        self._clock = clock

    def _live_result(self, data: dict[str, Any] | None) -> dict[str, Any] | None:
        if data is None:
            return None
        try:
            record = IdempotencyRecord.from_document(data)
        except ValidationError:
            return None
        if not record.is_live(self._clock(), self._ttl):
            return None
        return record.result

    def _record(self, result: dict[str, Any]) -> dict[str, Any]:
        now = self._clock()
        return IdempotencyRecord(
            result=result, created_at=now, expires_at=now + self._ttl
        ).to_document()

    async def check(self, tenant_id: str, key: str | None) -> dict[str, Any] | None:
        """Return the cached result for ``key``, or None.

        None when the key is empty, unknown, expired or unreadable.
        """
        if not key:
            return None
        try:
            data = await self._store.get(idempotency_path(tenant_id, key))
        except StateStoreError as e:
            with contextlib.suppress(ObservabilityError):
                await self._observability.log(
                    level="WARNING",
                    message="Idempotency lookup failed, treating as miss",
                    context={"tenant_id": tenant_id, "idempotency_key": key, "error": str(e)},
                )
            return None
        return self._live_result(data)

    async def save(self, tenant_id: str, key: str | None, result: dict[str, Any]) -> None:
        """Record ``result`` for ``key``. No-op when the key is empty."""
        if not key:
            return
        try:
            await self._store.set(idempotency_path(tenant_id, key), self._record(result))
        except StateStoreError as e:
            with contextlib.suppress(ObservabilityError):
                await self._observability.log(
                    level="WARNING",
                    message="Failed to record idempotency result",
                    context={"tenant_id": tenant_id, "idempotency_key": key, "error": str(e)},
                )

    async def check_in(
        self, tx: Transaction, tenant_id: str, key: str | None
    ) -> dict[str, Any] | None:
        """Transactional variant of :meth:`check`."""
        if not key:
            return None
        return self._live_result(await tx.get(idempotency_path(tenant_id, key)))

    def save_in(
        self, tx: Transaction, tenant_id: str, key: str | None, result: dict[str, Any]
    ) -> None:
        """Transactional variant of :meth:`save`."""
        if not key:
            return
        tx.set(idempotency_path(tenant_id, key), self._record(result))
