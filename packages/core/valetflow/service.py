"""BookingService - the boundary every caller goes through."""

import asyncio
import contextlib
import random
import uuid
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import structlog

from valetflow.domain.clock import Clock, utc_now
from valetflow.domain.components.access_policy import Operation, authorize
from valetflow.domain.components.booking_engine import BookingEngine
from valetflow.domain.components.idempotency_cache import IdempotencyCache
from valetflow.domain.components.rate_limiter import RateLimiter
from valetflow.domain.components.spot_manager import SpotManager
from valetflow.domain.components.ticket_counter import ShardedTicketCounter
from valetflow.domain.interfaces.audit_sink import AuditSink
from valetflow.domain.interfaces.document_store import DocumentStore
from valetflow.domain.interfaces.notifier import BookingNotification, NotificationService
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from valetflow.domain.interfaces.rate_limit_backend import RateLimitBackend
from valetflow.domain.models.auth_context import AuthContext
from valetflow.domain.models.booking import Booking
from valetflow.domain.models.errors import ValetFlowError
from valetflow.domain.models.requests import (
    AssignSpotInput,
    CancelBookingInput,
    CompleteBookingInput,
    CreateBookingInput,
    ListBookingsInput,
    LockSpotInput,
    ReleaseSpotInput,
    SweepLocksInput,
    TransitionBookingInput,
    parse_request,
)
from valetflow.domain.models.responses import BookingPage, CreateBookingResult, SuccessResult
from valetflow.infrastructure.audit.store_audit_sink import StoreAuditSink
from valetflow.infrastructure.config.file_loader import load_settings
from valetflow.infrastructure.config.settings import ValetFlowSettings
from valetflow.infrastructure.notifications.logging_notifier import LoggingNotificationService
from valetflow.infrastructure.observability.logger import DefaultObservabilityManager
from valetflow.infrastructure.rate_limit.redis_backend import RedisRateLimitBackend
from valetflow.infrastructure.rate_limit.store_backend import StoreRateLimitBackend
from valetflow.infrastructure.state_store.memory_store import InMemoryDocumentStore
from valetflow.infrastructure.state_store.mongo_store import MongoDocumentStore

RequestData = dict[str, Any] | None


class BookingService:
    """Booking and spot operations for authenticated callers.

    Every call runs the same pipeline: authorize the caller's role,
    validate the input, count the call against the caller's rate limit,
    then hand over to the engine. Notifications are dispatched in the
    background once a mutation has committed; ``close()`` waits for them.

    Example:
        ```python
        async with BookingService(config={"counter_shards": 3}) as service:
            auth = AuthContext(caller_id="op-1", role=Role.Operator, tenant_id="acme")
            created = await service.create_booking(
                auth, {"customer_name": "Ada", "vehicle_plate": "abc 123"}
            )
            await service.transition_booking(
                auth, {"booking_id": created.id, "new_status": "Check-In"}
            )
        ```
    """

    def __init__(
        self,
        store: DocumentStore | None = None,
        observability_manager: ObservabilityManager | None = None,
        config: ValetFlowSettings | dict[str, Any] | None = None,
        audit_sink: AuditSink | None = None,
        notifier: NotificationService | None = None,
        rate_limit_backend: RateLimitBackend | None = None,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize BookingService with dependencies.

        Args:
            store: Optional DocumentStore. Defaults to the backend named by
                ``store_backend`` in the settings.
            observability_manager: Optional ObservabilityManager. Defaults to
                DefaultObservabilityManager.
            config: ValetFlowSettings, a dictionary of settings, or None to
                read the environment.
            audit_sink: Optional AuditSink. Defaults to StoreAuditSink.
            notifier: Optional NotificationService. Defaults to
                LoggingNotificationService.
            rate_limit_backend: Optional shared rate limit backend. Defaults
                to the backend named by ``rate_limit_backend``.
            clock: Time source shared by every component.
            rng: Random source for counter shard selection.

        Raises:
            ConfigurationError: If the configuration is invalid.
            ValueError: If ``config`` has an unsupported type.
        """
        if config is None:
            self._config = ValetFlowSettings()
        elif isinstance(config, dict):
            self._config = ValetFlowSettings.from_dict(config)
        elif isinstance(config, ValetFlowSettings):
            self._config = config
        else:
            raise ValueError(
                f"Invalid config type: {type(config)}. Expected ValetFlowSettings, dict, or None"
            )

        self._store = store if store is not None else self._build_store()

        if observability_manager is None:
            self._observability_manager: ObservabilityManager = DefaultObservabilityManager(
                log_level=self._config.log_level,
                json_format=self._config.log_json,
            )
        else:
            self._observability_manager = observability_manager

        self._audit_sink = audit_sink if audit_sink is not None else StoreAuditSink(self._store)
        self._notifier = (
            notifier
            if notifier is not None
            else LoggingNotificationService(self._observability_manager)
        )
        if rate_limit_backend is None:
            rate_limit_backend = self._build_rate_limit_backend(clock)
        self._rate_limit_backend = rate_limit_backend

        self._rate_limiter = RateLimiter(
            observability_manager=self._observability_manager,
            max_requests=self._config.rate_limit_max_requests,
            window_seconds=self._config.rate_limit_window_seconds,
            shared_backend=rate_limit_backend,
            clock=clock,
        )
        self._spot_manager = SpotManager(
            store=self._store,
            observability_manager=self._observability_manager,
            audit_sink=self._audit_sink,
            lock_timeout=self._config.spot_lock_timeout,
            clock=clock,
        )
        self._engine = BookingEngine(
            store=self._store,
            observability_manager=self._observability_manager,
            audit_sink=self._audit_sink,
            spot_manager=self._spot_manager,
            ticket_counter=ShardedTicketCounter(
                shard_count=self._config.counter_shards,
                base=self._config.ticket_number_base,
                rng=rng,
            ),
            idempotency_cache=IdempotencyCache(
                store=self._store,
                observability_manager=self._observability_manager,
                ttl=self._config.idempotency_ttl,
                clock=clock,
            ),
            clock=clock,
            strict_idempotency=self._config.strict_idempotency,
        )

        self._pending_notifications: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config_file(
        cls, config_file_path: str | Path | None = None, **kwargs: Any
    ) -> "BookingService":
        """Build a service from a YAML or JSON settings file.

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        return cls(config=load_settings(config_file_path), **kwargs)

    def _build_store(self) -> DocumentStore:
        if self._config.store_backend == "mongodb":
            return MongoDocumentStore(
                connection_url=self._config.mongodb_url,
                database_name=self._config.mongodb_database,
            )
        return InMemoryDocumentStore(
            max_transaction_attempts=self._config.max_transaction_attempts
        )

    def _build_rate_limit_backend(self, clock: Clock) -> RateLimitBackend | None:
        if self._config.rate_limit_backend == "store":
            return StoreRateLimitBackend(
                self._store,
                max_requests=self._config.rate_limit_max_requests,
                window_seconds=self._config.rate_limit_window_seconds,
                clock=clock,
            )
        if self._config.rate_limit_backend == "redis":
            return RedisRateLimitBackend(
                redis_url=self._config.redis_url,
                max_requests=self._config.rate_limit_max_requests,
                window_seconds=self._config.rate_limit_window_seconds,
            )
        return None

    async def __aenter__(self) -> "BookingService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Wait for pending notifications, then release backends."""
        if self._pending_notifications:
            await asyncio.gather(*self._pending_notifications, return_exceptions=True)
        if self._rate_limit_backend is not None:
            await self._rate_limit_backend.close()
        await self._store.close()

    @property
    def config(self) -> ValetFlowSettings:
        return self._config

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def engine(self) -> BookingEngine:
        return self._engine

    @property
    def spot_manager(self) -> SpotManager:
        return self._spot_manager

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def observability_manager(self) -> ObservabilityManager:
        return self._observability_manager

    @contextlib.asynccontextmanager
    async def _request(
        self, operation: Operation, auth: AuthContext | None
    ) -> AsyncIterator[tuple[AuthContext, str]]:
        """Authorize the caller and scope logs to one correlation id."""
        correlation_id = str(uuid.uuid4())
        with structlog.contextvars.bound_contextvars(
            correlation_id=correlation_id,
            operation=operation.value,
        ):
            try:
                caller = authorize(auth, operation)
                yield caller, correlation_id
            except ValetFlowError as e:
                await self._log(
                    level="WARNING",
                    message="Request rejected",
                    context={
                        "operation": operation.value,
                        "caller_id": auth.caller_id if auth else None,
                        "tenant_id": auth.tenant_id if auth else None,
                        "correlation_id": correlation_id,
                        **e.to_dict(),
                    },
                )
                raise

    async def create_booking(
        self, auth: AuthContext | None, data: CreateBookingInput | RequestData
    ) -> CreateBookingResult:
        """Create a booking; repeated idempotency keys return the first result.

        Raises:
            UnauthenticatedError, PermissionDeniedError, ValidationFailedError,
            RateLimitedError.
        """
        async with self._request(Operation.CreateBooking, auth) as (caller, correlation_id):
            request = parse_request(CreateBookingInput, data)
            await self._rate_limiter.check(caller.caller_id)
            result, booking = await self._engine.create(
                caller.tenant_id, request, caller.caller_id, correlation_id
            )
            if booking is not None:
                self._notify("created", booking)
            return result

    async def transition_booking(
        self, auth: AuthContext | None, data: TransitionBookingInput | RequestData
    ) -> SuccessResult:
        """Move a booking to another status.

        Raises:
            NotFoundError: If the booking does not exist.
            InvalidTransitionError: If the edge is not allowed.
        """
        async with self._request(Operation.TransitionBooking, auth) as (caller, correlation_id):
            request = parse_request(TransitionBookingInput, data)
            await self._rate_limiter.check(caller.caller_id)
            booking = await self._engine.transition(
                caller.tenant_id,
                request.booking_id,
                request.new_status,
                request.note,
                caller.caller_id,
                correlation_id,
            )
            self._notify("transitioned", booking, {"note": request.note})
            return SuccessResult()

    async def complete_booking(
        self, auth: AuthContext | None, data: CompleteBookingInput | RequestData
    ) -> SuccessResult:
        """Complete an Active booking with payment."""
        async with self._request(Operation.CompleteBooking, auth) as (caller, correlation_id):
            request = parse_request(CompleteBookingInput, data)
            await self._rate_limiter.check(caller.caller_id)
            booking = await self._engine.complete(
                caller.tenant_id,
                request.booking_id,
                request.payment_method,
                request.payment_amount,
                caller.caller_id,
                correlation_id,
            )
            self._notify(
                "completed",
                booking,
                {
                    "payment_method": request.payment_method.value,
                    "payment_amount": request.payment_amount,
                },
            )
            return SuccessResult()

    async def cancel_booking(
        self, auth: AuthContext | None, data: CancelBookingInput | RequestData
    ) -> SuccessResult:
        """Cancel a booking and free its spot."""
        async with self._request(Operation.CancelBooking, auth) as (caller, correlation_id):
            request = parse_request(CancelBookingInput, data)
            await self._rate_limiter.check(caller.caller_id)
            booking = await self._engine.cancel(
                caller.tenant_id,
                request.booking_id,
                request.reason,
                caller.caller_id,
                correlation_id,
            )
            self._notify("cancelled", booking, {"reason": request.reason})
            return SuccessResult()

    async def list_bookings(
        self, auth: AuthContext | None, data: ListBookingsInput | RequestData = None
    ) -> BookingPage:
        """List the caller's tenant bookings, one page at a time."""
        async with self._request(Operation.ListBookings, auth) as (caller, _):
            if not isinstance(data, ListBookingsInput):
                data = {"limit": self._config.list_default_limit, **(data or {})}
            request = parse_request(ListBookingsInput, data)
            await self._rate_limiter.check(caller.caller_id)
            return await self._engine.list_bookings(caller.tenant_id, request)

    async def lock_spot(
        self, auth: AuthContext | None, data: LockSpotInput | RequestData
    ) -> SuccessResult:
        """Take a soft lock on a spot."""
        async with self._request(Operation.LockSpot, auth) as (caller, correlation_id):
            request = parse_request(LockSpotInput, data)
            await self._rate_limiter.check(caller.caller_id)
            await self._spot_manager.lock(
                caller.tenant_id,
                request.location_id,
                request.spot_id,
                caller.caller_id,
                correlation_id,
            )
            return SuccessResult()

    async def assign_spot(
        self, auth: AuthContext | None, data: AssignSpotInput | RequestData
    ) -> SuccessResult:
        """Bind a spot to a booking."""
        async with self._request(Operation.AssignSpot, auth) as (caller, correlation_id):
            request = parse_request(AssignSpotInput, data)
            await self._rate_limiter.check(caller.caller_id)
            await self._spot_manager.assign(
                caller.tenant_id,
                request.booking_id,
                request.location_id,
                request.spot_id,
                caller.caller_id,
                correlation_id,
            )
            return SuccessResult()

    async def release_spot(
        self, auth: AuthContext | None, data: ReleaseSpotInput | RequestData
    ) -> SuccessResult:
        """Release a soft lock; admins may release locks held by others."""
        async with self._request(Operation.ReleaseSpot, auth) as (caller, correlation_id):
            request = parse_request(ReleaseSpotInput, data)
            await self._rate_limiter.check(caller.caller_id)
            await self._spot_manager.release(
                caller.tenant_id,
                request.location_id,
                request.spot_id,
                caller.caller_id,
                elevated=caller.role.is_elevated,
                correlation_id=correlation_id,
            )
            return SuccessResult()

    async def sweep_expired_locks(self, auth: AuthContext | None, location_id: str) -> int:
        """Clear expired lock fields at one location. Admin only."""
        async with self._request(Operation.SweepExpiredLocks, auth) as (caller, _):
            request = parse_request(SweepLocksInput, {"location_id": location_id})
            await self._rate_limiter.check(caller.caller_id)
            return await self._spot_manager.sweep_expired_locks(
                caller.tenant_id, request.location_id
            )

    def _notify(
        self, event: str, booking: Booking, details: dict[str, Any] | None = None
    ) -> None:
        notification = BookingNotification(
            event=event,
            tenant_id=booking.tenant_id,
            booking_id=booking.id,
            ticket_number=booking.ticket_number,
            status=booking.status.value,
            customer_name=booking.customer_name,
            customer_phone=booking.customer_phone,
            customer_email=booking.customer_email,
            details={
                "vehicle_plate": booking.vehicle.plate,
                "vehicle_description": booking.vehicle.describe(),
                "flight_number": booking.flight_number,
                **(details or {}),
            },
        )
        task = asyncio.create_task(self._deliver(notification))
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)

    async def _log(self, level: str, message: str, context: dict[str, Any]) -> None:
        with contextlib.suppress(ObservabilityError):
            await self._observability_manager.log(level=level, message=message, context=context)

    async def _deliver(self, notification: BookingNotification) -> None:
        try:
            await self._notifier.notify(notification)
        except Exception as e:
            await self._log(
                level="WARNING",
                message="Notification delivery failed",
                context={
                    "tenant_id": notification.tenant_id,
                    "booking_id": notification.booking_id,
                    "event": notification.event,
                    "error": str(e),
                },
            )
