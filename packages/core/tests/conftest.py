"""Pytest configuration and shared fixtures."""

import random
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from valetflow.domain.components.booking_engine import BookingEngine
from valetflow.domain.components.idempotency_cache import IdempotencyCache
from valetflow.domain.components.spot_manager import SpotManager
from valetflow.domain.components.ticket_counter import ShardedTicketCounter
from valetflow.domain.document_paths import spot_path
from valetflow.domain.interfaces.audit_sink import AuditSink
from valetflow.domain.interfaces.document_store import DocumentStore
from valetflow.domain.interfaces.notifier import BookingNotification, NotificationService
from valetflow.domain.interfaces.observability_manager import ObservabilityManager
from valetflow.domain.models.audit_entry import AuditEntry
from valetflow.domain.models.auth_context import AuthContext, Role
from valetflow.infrastructure.state_store.memory_store import InMemoryDocumentStore
from valetflow.service import BookingService

# MONGODB_URL / REDIS_URL for the integration suites may live in a .env file.
project_root = Path(__file__).parent.parent.parent.parent
for env_path in (project_root / ".env", project_root / "packages" / "core" / ".env"):
    if env_path.exists():
        load_dotenv(env_path, override=False)

TENANT = "acme"
LOCATION = "terminal-1"


class FakeClock:
    """Controllable time source."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingObservabilityManager(ObservabilityManager):
    """ObservabilityManager that keeps everything in memory."""

    def __init__(self) -> None:
        self.logs: list[dict[str, Any]] = []
        self.events: list[dict[str, Any]] = []

    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.events.append({"event_type": event_type, "payload": payload, "metadata": metadata})

    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.logs.append({"level": level, "message": message, "context": context or {}})

    def messages(self, level: str | None = None) -> list[str]:
        return [entry["message"] for entry in self.logs if level is None or entry["level"] == level]


class RecordingAuditSink(AuditSink):
    """AuditSink that keeps entries in memory."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, AuditEntry]] = []

    async def append(self, tenant_id: str, entry: AuditEntry) -> None:
        self.entries.append((tenant_id, entry))

    def actions(self) -> list[str]:
        return [entry.action for _, entry in self.entries]


class RecordingNotifier(NotificationService):
    """NotificationService that keeps notifications in memory."""

    def __init__(self) -> None:
        self.sent: list[BookingNotification] = []

    async def notify(self, notification: BookingNotification) -> None:
        self.sent.append(notification)


async def _seed_spot(
    store: DocumentStore,
    spot_id: str,
    tenant_id: str = TENANT,
    location_id: str = LOCATION,
    **fields: Any,
) -> None:
    await store.set(
        spot_path(tenant_id, location_id, spot_id),
        {
            "location_id": location_id,
            "name": spot_id,
            "status": "available",
            "booking_id": None,
            "locked_by": None,
            "locked_at": None,
            **fields,
        },
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def observability() -> RecordingObservabilityManager:
    return RecordingObservabilityManager()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def spot_manager(store, observability, audit_sink, clock) -> SpotManager:
    return SpotManager(
        store=store,
        observability_manager=observability,
        audit_sink=audit_sink,
        lock_timeout=timedelta(seconds=30),
        clock=clock,
    )


@pytest.fixture
def idempotency_cache(store, observability, clock) -> IdempotencyCache:
    return IdempotencyCache(
        store=store,
        observability_manager=observability,
        ttl=timedelta(hours=24),
        clock=clock,
    )


@pytest.fixture
def engine(store, observability, audit_sink, spot_manager, idempotency_cache, clock) -> BookingEngine:
    return BookingEngine(
        store=store,
        observability_manager=observability,
        audit_sink=audit_sink,
        spot_manager=spot_manager,
        ticket_counter=ShardedTicketCounter(shard_count=5, base=1000, rng=random.Random(7)),
        idempotency_cache=idempotency_cache,
        clock=clock,
    )


@pytest.fixture
def operator() -> AuthContext:
    return AuthContext(caller_id="op-1", role=Role.Operator, tenant_id=TENANT)


@pytest.fixture
def other_operator() -> AuthContext:
    return AuthContext(caller_id="op-2", role=Role.Operator, tenant_id=TENANT)


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext(caller_id="admin-1", role=Role.Admin, tenant_id=TENANT)


@pytest.fixture
def viewer() -> AuthContext:
    return AuthContext(caller_id="viewer-1", role=Role.Viewer, tenant_id=TENANT)


@pytest.fixture
async def service(store, observability, notifier, clock):
    """BookingService on the in-memory store with a generous rate limit."""
    booking_service = BookingService(
        store=store,
        observability_manager=observability,
        notifier=notifier,
        config={"rate_limit_max_requests": 1000, "rate_limit_backend": "none"},
        clock=clock,
        rng=random.Random(11),
    )
    yield booking_service
    await booking_service.close()


@pytest.fixture
def tenant_id() -> str:
    return TENANT


@pytest.fixture
def location_id() -> str:
    return LOCATION


@pytest.fixture
def seed_spot(store):
    """Async helper provisioning an available spot in the test store."""

    async def seed(spot_id: str, **fields: Any) -> None:
        await _seed_spot(store, spot_id, **fields)

    return seed
