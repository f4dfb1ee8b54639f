"""BookingEngine component for the booking lifecycle."""

import contextlib
import uuid
from typing import Any

from valetflow.domain.clock import Clock, utc_now
from valetflow.domain.components.idempotency_cache import IdempotencyCache
from valetflow.domain.components.repository import read_booking
from valetflow.domain.components.spot_manager import SpotManager
from valetflow.domain.components.ticket_counter import ShardedTicketCounter
from valetflow.domain.components.transition_validator import (
    can_transition,
    describe_allowed,
    is_terminal,
)
from valetflow.domain.document_paths import (
    booking_path,
    bookings_collection,
    daily_stats_path,
)
from valetflow.domain.interfaces.audit_sink import AuditSink
from valetflow.domain.interfaces.document_store import (
    DocumentQuery,
    DocumentStore,
    Increment,
    Transaction,
)
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from valetflow.domain.models.audit_entry import AuditEntry
from valetflow.domain.models.booking import (
    Booking,
    BookingStatus,
    HistoryEntry,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Vehicle,
)
from valetflow.domain.models.errors import InvalidTransitionError
from valetflow.domain.models.requests import (
    CreateBookingInput,
    ListBookingsInput,
    SortDirection,
)
from valetflow.domain.models.responses import BookingPage, CreateBookingResult


class BookingEngine:
    """Creates, transitions, completes, cancels and lists bookings.

    Every mutation is one store transaction. Status changes go through the
    transition table; leaving the spot-holding statuses for a terminal one
    releases the held spot in the same transaction. Audit entries and
    events are written after commit and never fail the mutation.
    """

    def __init__(
        self,
        store: DocumentStore,
        observability_manager: ObservabilityManager,
        audit_sink: AuditSink,
        spot_manager: SpotManager,
        ticket_counter: ShardedTicketCounter,
        idempotency_cache: IdempotencyCache,
        clock: Clock = utc_now,
        strict_idempotency: bool = False,
    ) -> None:
        """Initialize BookingEngine with dependencies.

        Args:
            store: Document store holding bookings, spots and counters.
            observability_manager: Structured logging and events.
            audit_sink: Destination for booking.* audit entries.
            spot_manager: Releases spots held by bookings.
            ticket_counter: Allocates ticket numbers.
            idempotency_cache: Deduplicates create requests.
            clock: Time source.
            strict_idempotency: Check and record idempotency keys inside
                the create transaction instead of around it.
        """
        self._store = store
        self._observability = observability_manager
        self._audit_sink = audit_sink
        self._spot_manager = spot_manager
        self._ticket_counter = ticket_counter
        self._idempotency = idempotency_cache
        self._clock = clock
        self._strict_idempotency = strict_idempotency

    async def create(
        self,
        tenant_id: str,
        request: CreateBookingInput,
        actor: str,
        correlation_id: str = "",
    ) -> tuple[CreateBookingResult, Booking | None]:
        """Create a booking in status New.

        With an idempotency key, a live cached result is returned without
        creating anything. By default the lookup happens before the
        transaction and the result is recorded after commit, so two
        duplicates racing inside that gap may both allocate a ticket; strict
        mode closes the gap at the cost of reading the key in every create
        transaction.

        Returns:
            The result, and the new booking (None when served from cache).
        """
        key = request.idempotency_key

        if not self._strict_idempotency:
            cached = await self._idempotency.check(tenant_id, key)
            if cached is not None:
                await self._log_cache_hit(tenant_id, key, correlation_id)
                return CreateBookingResult.model_validate(cached), None

        async def insert(tx: Transaction) -> tuple[CreateBookingResult, Booking | None]:
            if self._strict_idempotency:
                cached = await self._idempotency.check_in(tx, tenant_id, key)
                if cached is not None:
                    return CreateBookingResult.model_validate(cached), None

            # Ticket numbers are unique per tenant but not increasing:
            # shards advance independently, so a later booking can get a
            # smaller number than an earlier one.
            ticket_number = await self._ticket_counter.allocate(tx, tenant_id)

            now = self._clock()
            booking = Booking(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                ticket_number=ticket_number,
                status=BookingStatus.New,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                customer_email=request.customer_email or "",
                vehicle=Vehicle(
                    make=request.vehicle_make,
                    model=request.vehicle_model,
                    color=request.vehicle_color,
                    plate=request.vehicle_plate,
                ),
                flight_number=request.flight_number,
                notes=request.notes,
                history=(
                    HistoryEntry(
                        status=BookingStatus.New,
                        timestamp=now,
                        actor=actor,
                        note="Booking created",
                    ),
                ),
                created_at=now,
                updated_at=now,
                created_by=actor,
                correlation_id=correlation_id,
            )
            tx.set(booking_path(tenant_id, booking.id), booking.to_document())

            result = CreateBookingResult(id=booking.id, ticket_number=ticket_number)
            if self._strict_idempotency:
                self._idempotency.save_in(tx, tenant_id, key, result.model_dump())
            return result, booking

        result, booking = await self._store.run_transaction(insert)

        if booking is None:
            await self._log_cache_hit(tenant_id, key, correlation_id)
            return result, None

        if not self._strict_idempotency:
            await self._idempotency.save(tenant_id, key, result.model_dump())

        await self._log(
            level="INFO",
            message="Booking created",
            context={
                "tenant_id": tenant_id,
                "booking_id": booking.id,
                "ticket_number": booking.ticket_number,
                "actor": actor,
                "correlation_id": correlation_id,
            },
        )
        await self._record(
            tenant_id,
            "booking_created",
            AuditEntry(
                action="booking.create",
                actor=actor,
                resource_type="booking",
                resource_id=booking.id,
                correlation_id=correlation_id,
                details={
                    "ticket_number": booking.ticket_number,
                    "customer_name": booking.customer_name,
                    "plate": booking.vehicle.plate,
                },
                timestamp=booking.created_at,
            ),
        )
        return result, booking

    async def transition(
        self,
        tenant_id: str,
        booking_id: str,
        new_status: BookingStatus,
        note: str,
        actor: str,
        correlation_id: str = "",
    ) -> Booking:
        """Move a booking along one edge of the transition table.

        Raises:
            NotFoundError: If the booking does not exist.
            InvalidTransitionError: If ``new_status`` is not reachable from
                the current status.
        """
        booking = await self._change_status(
            tenant_id,
            booking_id,
            new_status,
            note or f"Status changed to {new_status.value}",
            actor,
        )
        await self._log(
            level="INFO",
            message="Booking transitioned",
            context={
                "tenant_id": tenant_id,
                "booking_id": booking_id,
                "new_status": new_status.value,
                "actor": actor,
                "correlation_id": correlation_id,
            },
        )
        await self._record(
            tenant_id,
            "booking_transitioned",
            AuditEntry(
                action="booking.transition",
                actor=actor,
                resource_type="booking",
                resource_id=booking_id,
                correlation_id=correlation_id,
                details={"new_status": new_status.value, "note": note},
                timestamp=booking.updated_at,
            ),
        )
        return booking

    async def cancel(
        self,
        tenant_id: str,
        booking_id: str,
        reason: str,
        actor: str,
        correlation_id: str = "",
    ) -> Booking:
        """Cancel a booking and free its spot.

        Raises:
            NotFoundError: If the booking does not exist.
            InvalidTransitionError: If the booking is already terminal.
        """
        booking = await self._change_status(
            tenant_id,
            booking_id,
            BookingStatus.Cancelled,
            reason or "Booking cancelled",
            actor,
        )
        await self._log(
            level="INFO",
            message="Booking cancelled",
            context={
                "tenant_id": tenant_id,
                "booking_id": booking_id,
                "actor": actor,
                "correlation_id": correlation_id,
            },
        )
        await self._record(
            tenant_id,
            "booking_cancelled",
            AuditEntry(
                action="booking.cancel",
                actor=actor,
                resource_type="booking",
                resource_id=booking_id,
                correlation_id=correlation_id,
                details={"reason": reason},
                timestamp=booking.updated_at,
            ),
        )
        return booking

    async def complete(
        self,
        tenant_id: str,
        booking_id: str,
        payment_method: PaymentMethod,
        payment_amount: float,
        actor: str,
        correlation_id: str = "",
    ) -> Booking:
        """Complete an Active booking, capture payment and free its spot.

        The per-day stats document is incremented in the same transaction.

        Raises:
            NotFoundError: If the booking does not exist.
            InvalidTransitionError: If the booking is not exactly Active.
        """

        async def finish(tx: Transaction) -> Booking:
            booking = await read_booking(tx, tenant_id, booking_id)
            # Checked explicitly: completion also captures payment, so the
            # generic edge table is not enough.
            if booking.status is not BookingStatus.Active:
                raise InvalidTransitionError(
                    "Only Active bookings can be completed.",
                    details={
                        "current": booking.status.value,
                        "requested": BookingStatus.Completed.value,
                        "allowed": [BookingStatus.Active.value],
                    },
                )

            if booking.spot_ref is not None:
                await self._spot_manager.release_held_spot(
                    tx, tenant_id, booking_id, booking.spot_ref
                )

            now = self._clock()
            updated = booking.with_history(
                BookingStatus.Completed,
                actor=actor,
                note=f"Completed - ${payment_amount:.2f} via {payment_method.value}",
                timestamp=now,
                spot_ref=None,
                completed_at=now,
                payment=Payment(
                    method=payment_method,
                    amount=payment_amount,
                    status=PaymentStatus.Paid,
                ),
            )
            tx.set(booking_path(tenant_id, booking_id), updated.to_document())
            tx.set(
                daily_stats_path(tenant_id, now.date().isoformat()),
                {
                    "completed_count": Increment(1),
                    "total_revenue": Increment(payment_amount),
                },
                merge=True,
            )
            return updated

        booking = await self._store.run_transaction(finish)

        await self._log(
            level="INFO",
            message="Booking completed",
            context={
                "tenant_id": tenant_id,
                "booking_id": booking_id,
                "amount": payment_amount,
                "payment_method": payment_method.value,
                "actor": actor,
                "correlation_id": correlation_id,
            },
        )
        await self._record(
            tenant_id,
            "booking_completed",
            AuditEntry(
                action="booking.complete",
                actor=actor,
                resource_type="booking",
                resource_id=booking_id,
                correlation_id=correlation_id,
                details={
                    "payment_method": payment_method.value,
                    "payment_amount": payment_amount,
                },
                timestamp=booking.updated_at,
            ),
        )
        return booking

    async def list_bookings(self, tenant_id: str, request: ListBookingsInput) -> BookingPage:
        """Return one page of bookings.

        One booking past ``limit`` is fetched to compute ``has_more``
        without a count query; it is never returned.
        """
        filters: dict[str, Any] = {}
        if request.status is not None:
            filters["status"] = request.status.value

        snapshots = await self._store.query(
            DocumentQuery(
                collection=bookings_collection(tenant_id),
                filters=filters,
                order_by=request.order_by.value,
                descending=request.direction is SortDirection.Desc,
                limit=request.limit + 1,
                start_after=request.start_after,
            )
        )

        has_more = len(snapshots) > request.limit
        page = snapshots[: request.limit]
        bookings = [
            Booking.from_document(snapshot.data, id=snapshot.id, tenant_id=tenant_id)
            for snapshot in page
        ]
        return BookingPage(
            bookings=bookings,
            has_more=has_more,
            last_id=bookings[-1].id if bookings else None,
        )

    async def _change_status(
        self,
        tenant_id: str,
        booking_id: str,
        new_status: BookingStatus,
        note: str,
        actor: str,
    ) -> Booking:
        async def apply(tx: Transaction) -> Booking:
            booking = await read_booking(tx, tenant_id, booking_id)
            current = booking.status
            if not can_transition(current, new_status):
                allowed = describe_allowed(current)
                if new_status is BookingStatus.Cancelled:
                    message = f"Cannot cancel a {current.value} booking."
                else:
                    message = (
                        f"Cannot transition from {current.value} to {new_status.value}. "
                        f"Allowed: {', '.join(allowed) or 'none'}"
                    )
                raise InvalidTransitionError(
                    message,
                    details={
                        "current": current.value,
                        "requested": new_status.value,
                        "allowed": allowed,
                    },
                )

            now = self._clock()
            changes: dict[str, Any] = {}
            if is_terminal(new_status):
                if booking.spot_ref is not None:
                    await self._spot_manager.release_held_spot(
                        tx, tenant_id, booking_id, booking.spot_ref
                    )
                changes["spot_ref"] = None
            if new_status is BookingStatus.Completed:
                changes["completed_at"] = now

            updated = booking.with_history(
                new_status, actor=actor, note=note, timestamp=now, **changes
            )
            tx.set(booking_path(tenant_id, booking_id), updated.to_document())
            return updated

        return await self._store.run_transaction(apply)

    async def _log(self, level: str, message: str, context: dict[str, Any]) -> None:
        """Log, ignoring observability failures."""
        with contextlib.suppress(ObservabilityError):
            await self._observability.log(level=level, message=message, context=context)

    async def _log_cache_hit(self, tenant_id: str, key: str | None, correlation_id: str) -> None:
        await self._log(
            level="INFO",
            message="Returning cached result for idempotent request",
            context={
                "tenant_id": tenant_id,
                "idempotency_key": key,
                "correlation_id": correlation_id,
            },
        )

    async def _record(self, tenant_id: str, event_type: str, entry: AuditEntry) -> None:
        """Append the audit entry and emit the matching event, best-effort."""
        try:
            await self._audit_sink.append(tenant_id, entry)
        except Exception as e:
            await self._log(
                level="WARNING",
                message="Audit append failed",
                context={"tenant_id": tenant_id, "action": entry.action, "error": str(e)},
            )
        with contextlib.suppress(ObservabilityError):
            await self._observability.emit_event(
                event_type=event_type,
                payload={
                    "resource_id": entry.resource_id,
                    "actor": entry.actor,
                    **entry.details,
                },
                metadata={
                    "tenant_id": tenant_id,
                    "correlation_id": entry.correlation_id,
                    "timestamp": entry.timestamp.isoformat(),
                },
            )
