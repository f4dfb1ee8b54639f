"""Domain interfaces for dependency injection."""

from valetflow.domain.interfaces.audit_sink import AuditSink, NullAuditSink
from valetflow.domain.interfaces.document_store import (
    DocumentNotFoundError,
    DocumentQuery,
    DocumentSnapshot,
    DocumentStore,
    Increment,
    StateStoreError,
    Transaction,
    TransactionConflictError,
)
from valetflow.domain.interfaces.notifier import BookingNotification, NotificationService
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from valetflow.domain.interfaces.rate_limit_backend import RateLimitBackend

__all__ = [
    "AuditSink",
    "NullAuditSink",
    "BookingNotification",
    "NotificationService",
    "DocumentNotFoundError",
    "DocumentQuery",
    "DocumentSnapshot",
    "DocumentStore",
    "Increment",
    "StateStoreError",
    "Transaction",
    "TransactionConflictError",
    "ObservabilityError",
    "ObservabilityManager",
    "RateLimitBackend",
]
