"""SpotManager component: soft locks and spot assignment."""

import contextlib
from datetime import datetime, timedelta
from typing import Any

from valetflow.domain.clock import Clock, utc_now
from valetflow.domain.components.repository import read_booking, read_spot
from valetflow.domain.components.transition_validator import SPOT_HOLDING_STATUSES
from valetflow.domain.document_paths import booking_path, spot_path, spots_collection
from valetflow.domain.interfaces.audit_sink import AuditSink
from valetflow.domain.interfaces.document_store import (
    DocumentQuery,
    DocumentStore,
    Transaction,
)
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from valetflow.domain.models.audit_entry import AuditEntry
from valetflow.domain.models.booking import Booking, SpotRef
from valetflow.domain.models.errors import (
    InvalidTransitionError,
    PermissionDeniedError,
    SpotLockedError,
    SpotOccupiedError,
)
from valetflow.domain.models.spot import Spot, SpotStatus

_CLEARED_LOCK: dict[str, Any] = {"locked_by": None, "locked_at": None}


class SpotManager:
    """Enforces mutual exclusion over physical spots.

    Two exclusions share the spot document: the transient soft lock an
    operator takes before assigning, and the persistent ``occupied`` status
    held by a booking. A soft lock older than ``lock_timeout`` counts as
    absent everywhere, so any caller may take it over without an explicit
    steal operation.
    """

    def __init__(
        self,
        store: DocumentStore,
        observability_manager: ObservabilityManager,
        audit_sink: AuditSink,
        lock_timeout: timedelta = timedelta(seconds=30),
        clock: Clock = utc_now,
    ) -> None:
        """Initialize SpotManager.

        Args:
            store: Document store holding spots and bookings.
            observability_manager: Structured logging and events.
            audit_sink: Destination for spot.* audit entries.
            lock_timeout: Age after which a soft lock is abandoned.
            clock: Time source.
        """
        self._store = store
        self._observability = observability_manager
        self._audit_sink = audit_sink
        self._lock_timeout = lock_timeout
        self._clock = clock

    @property
    def lock_timeout(self) -> timedelta:
        return self._lock_timeout

    def _ensure_not_locked(self, spot: Spot, actor: str, now: datetime) -> None:
        if spot.is_locked_against(actor, now, self._lock_timeout):
            age = spot.lock_age(now)
            raise SpotLockedError(
                "Spot is locked by another operator.",
                details={
                    "location_id": spot.location_id,
                    "spot_id": spot.id,
                    "lock_owner": spot.locked_by,
                    "lock_age_seconds": age.total_seconds() if age is not None else None,
                    "lock_timeout_seconds": self._lock_timeout.total_seconds(),
                },
            )

    async def lock(
        self,
        tenant_id: str,
        location_id: str,
        spot_id: str,
        actor: str,
        correlation_id: str = "",
    ) -> Spot:
        """Take (or refresh) a soft lock on a spot for ``actor``.

        Re-locking a spot the actor already holds refreshes ``locked_at``.

        Raises:
            NotFoundError: If the spot does not exist.
            SpotOccupiedError: If a booking occupies the spot.
            SpotLockedError: If another caller holds a live lock.
        """
        path = spot_path(tenant_id, location_id, spot_id)

        async def take_lock(tx: Transaction) -> Spot:
            spot = await read_spot(tx, tenant_id, location_id, spot_id)
            now = self._clock()
            if spot.status is SpotStatus.Occupied:
                raise SpotOccupiedError(
                    "Spot is occupied.",
                    details={
                        "location_id": location_id,
                        "spot_id": spot_id,
                        "booking_id": spot.booking_id,
                    },
                )
            self._ensure_not_locked(spot, actor, now)
            tx.update(path, {"locked_by": actor, "locked_at": now})
            return spot.model_copy(update={"locked_by": actor, "locked_at": now})

        spot = await self._store.run_transaction(take_lock)

        await self._log(
            level="INFO",
            message="Spot locked",
            context={
                "tenant_id": tenant_id,
                "location_id": location_id,
                "spot_id": spot_id,
                "actor": actor,
                "correlation_id": correlation_id,
            },
        )
        await self._audit(
            tenant_id,
            AuditEntry(
                action="spot.lock",
                actor=actor,
                resource_type="spot",
                resource_id=f"{location_id}/{spot_id}",
                correlation_id=correlation_id,
                timestamp=self._clock(),
            ),
        )
        return spot

    async def assign(
        self,
        tenant_id: str,
        booking_id: str,
        location_id: str,
        spot_id: str,
        actor: str,
        correlation_id: str = "",
    ) -> Booking:
        """Bind a spot to a booking in one transaction.

        The spot becomes occupied by the booking with its lock cleared, and
        the booking records the spot. A different spot the booking held
        before is released in the same transaction. Assigning the spot the
        booking already holds is a no-op.

        Raises:
            NotFoundError: If the booking or spot does not exist.
            InvalidTransitionError: If the booking is not in Check-In,
                Parked or Active.
            SpotOccupiedError: If a different booking occupies the spot.
            SpotLockedError: If another caller holds a live lock.
        """
        target = spot_path(tenant_id, location_id, spot_id)

        async def bind(tx: Transaction) -> tuple[Booking, bool]:
            booking = await read_booking(tx, tenant_id, booking_id)
            spot = await read_spot(tx, tenant_id, location_id, spot_id)
            now = self._clock()

            if spot.status is SpotStatus.Occupied:
                if spot.booking_id == booking_id:
                    return booking, False
                raise SpotOccupiedError(
                    "Spot is already occupied.",
                    details={
                        "location_id": location_id,
                        "spot_id": spot_id,
                        "booking_id": spot.booking_id,
                    },
                )
            if booking.status not in SPOT_HOLDING_STATUSES:
                raise InvalidTransitionError(
                    f"Cannot assign a spot to a booking in status {booking.status.value}.",
                    details={
                        "current": booking.status.value,
                        "allowed": sorted(status.value for status in SPOT_HOLDING_STATUSES),
                    },
                )
            self._ensure_not_locked(spot, actor, now)

            previous = booking.spot_ref
            if previous is not None and (previous.location_id, previous.spot_id) != (
                location_id,
                spot_id,
            ):
                await self.release_held_spot(tx, tenant_id, booking_id, previous)

            spot_ref = SpotRef(
                location_id=location_id,
                spot_id=spot_id,
                spot_name=spot.name or spot_id,
            )
            tx.update(
                target,
                {"status": SpotStatus.Occupied.value, "booking_id": booking_id, **_CLEARED_LOCK},
            )
            tx.update(
                booking_path(tenant_id, booking_id),
                {"spot_ref": spot_ref.to_document(), "updated_at": now},
            )
            return booking.model_copy(update={"spot_ref": spot_ref, "updated_at": now}), True

        booking, changed = await self._store.run_transaction(bind)

        await self._log(
            level="INFO",
            message="Spot assigned" if changed else "Spot already assigned to booking",
            context={
                "tenant_id": tenant_id,
                "booking_id": booking_id,
                "location_id": location_id,
                "spot_id": spot_id,
                "actor": actor,
                "correlation_id": correlation_id,
            },
        )
        if changed:
            await self._audit(
                tenant_id,
                AuditEntry(
                    action="spot.assign",
                    actor=actor,
                    resource_type="spot",
                    resource_id=f"{location_id}/{spot_id}",
                    correlation_id=correlation_id,
                    details={"booking_id": booking_id},
                    timestamp=self._clock(),
                ),
            )
        return booking

    async def release(
        self,
        tenant_id: str,
        location_id: str,
        spot_id: str,
        actor: str,
        elevated: bool = False,
        correlation_id: str = "",
    ) -> Spot:
        """Clear the soft lock on a spot.

        Only the lock owner or an elevated caller may release a live lock;
        an unlocked or expired spot releases for anyone. Occupancy is not
        touched.

        Raises:
            NotFoundError: If the spot does not exist.
            PermissionDeniedError: If another caller holds a live lock and
                ``actor`` is not elevated.
        """
        path = spot_path(tenant_id, location_id, spot_id)

        async def clear_lock(tx: Transaction) -> tuple[Spot, str | None]:
            spot = await read_spot(tx, tenant_id, location_id, spot_id)
            owner = spot.live_lock_owner(self._clock(), self._lock_timeout)
            if owner is not None and owner != actor and not elevated:
                raise PermissionDeniedError(
                    "Only the lock owner or an admin can release this spot.",
                    details={"location_id": location_id, "spot_id": spot_id, "lock_owner": owner},
                )
            if spot.locked_by is not None or spot.locked_at is not None:
                tx.update(path, dict(_CLEARED_LOCK))
            return spot.model_copy(update=_CLEARED_LOCK), owner

        try:
            spot, previous_owner = await self._store.run_transaction(clear_lock)
        except PermissionDeniedError as e:
            await self._log(
                level="WARNING",
                message="Unauthorized release attempt",
                context={
                    "tenant_id": tenant_id,
                    "location_id": location_id,
                    "spot_id": spot_id,
                    "attempted_by": actor,
                    "lock_owner": e.details.get("lock_owner"),
                    "correlation_id": correlation_id,
                },
            )
            raise

        await self._log(
            level="INFO",
            message="Spot released",
            context={
                "tenant_id": tenant_id,
                "location_id": location_id,
                "spot_id": spot_id,
                "actor": actor,
                "previous_owner": previous_owner,
                "correlation_id": correlation_id,
            },
        )
        await self._audit(
            tenant_id,
            AuditEntry(
                action="spot.release",
                actor=actor,
                resource_type="spot",
                resource_id=f"{location_id}/{spot_id}",
                correlation_id=correlation_id,
                details={"previous_owner": previous_owner},
                timestamp=self._clock(),
            ),
        )
        return spot

    async def release_held_spot(
        self, tx: Transaction, tenant_id: str, booking_id: str, spot_ref: SpotRef
    ) -> bool:
        """Free the spot a booking holds, inside the caller's transaction.

        The spot is only touched while it still points at ``booking_id``; a
        missing spot or one already reassigned is left alone.

        Returns:
            True when a release was written.
        """
        path = spot_path(tenant_id, spot_ref.location_id, spot_ref.spot_id)
        data = await tx.get(path)
        if data is None or data.get("booking_id") != booking_id:
            return False
        tx.update(
            path,
            {"status": SpotStatus.Available.value, "booking_id": None, **_CLEARED_LOCK},
        )
        return True

    async def sweep_expired_locks(self, tenant_id: str, location_id: str) -> int:
        """Clear stored lock fields that have outlived the lock timeout.

        Correctness never depends on this sweep since expiry is evaluated
        lazily; it only keeps stored data tidy. Every candidate is re-checked
        in its own transaction so a lock refreshed meanwhile survives.

        Returns:
            Number of spots whose lock fields were cleared.
        """
        snapshots = await self._store.query(
            DocumentQuery(collection=spots_collection(tenant_id, location_id))
        )
        now = self._clock()
        candidates = [
            snapshot.id
            for snapshot in snapshots
            if snapshot.data.get("locked_by")
            and Spot.from_document(snapshot.data, id=snapshot.id, location_id=location_id)
            .live_lock_owner(now, self._lock_timeout) is None
        ]

        cleared = 0
        for spot_id in candidates:

            async def clear_if_expired(tx: Transaction, spot_id: str = spot_id) -> bool:
                data = await tx.get(spot_path(tenant_id, location_id, spot_id))
                if data is None or not data.get("locked_by"):
                    return False
                spot = Spot.from_document(data, id=spot_id, location_id=location_id)
                if spot.live_lock_owner(self._clock(), self._lock_timeout) is not None:
                    return False
                tx.update(spot_path(tenant_id, location_id, spot_id), dict(_CLEARED_LOCK))
                return True

            if await self._store.run_transaction(clear_if_expired):
                cleared += 1

        await self._log(
            level="INFO",
            message="Expired spot locks swept",
            context={"tenant_id": tenant_id, "location_id": location_id, "cleared": cleared},
        )
        return cleared

    async def _log(self, level: str, message: str, context: dict[str, Any]) -> None:
        """Log, ignoring observability failures."""
        with contextlib.suppress(ObservabilityError):
            await self._observability.log(level=level, message=message, context=context)

    async def _audit(self, tenant_id: str, entry: AuditEntry) -> None:
        try:
            await self._audit_sink.append(tenant_id, entry)
        except Exception as e:
            await self._log(
                level="WARNING",
                message="Audit append failed",
                context={"tenant_id": tenant_id, "action": entry.action, "error": str(e)},
            )
