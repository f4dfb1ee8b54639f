"""Domain models for valetflow."""

from valetflow.domain.models.audit_entry import AuditEntry
from valetflow.domain.models.auth_context import AuthContext, Role
from valetflow.domain.models.booking import (
    Booking,
    BookingStatus,
    HistoryEntry,
    Payment,
    PaymentMethod,
    PaymentStatus,
    SpotRef,
    Vehicle,
)
from valetflow.domain.models.errors import (
    ErrorCategory,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    SpotLockedError,
    SpotOccupiedError,
    UnauthenticatedError,
    ValetFlowError,
    ValidationFailedError,
)
from valetflow.domain.models.idempotency_record import IdempotencyRecord
from valetflow.domain.models.rate_limit_counter import RateLimitCounter
from valetflow.domain.models.requests import (
    AssignSpotInput,
    BookingOrderField,
    CancelBookingInput,
    CompleteBookingInput,
    CreateBookingInput,
    ListBookingsInput,
    LockSpotInput,
    ReleaseSpotInput,
    SortDirection,
    SweepLocksInput,
    TransitionBookingInput,
)
from valetflow.domain.models.responses import BookingPage, CreateBookingResult, SuccessResult
from valetflow.domain.models.spot import Spot, SpotStatus

__all__ = [
    "AuditEntry",
    "AuthContext",
    "Role",
    "Booking",
    "BookingStatus",
    "HistoryEntry",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "SpotRef",
    "Vehicle",
    "Spot",
    "SpotStatus",
    "IdempotencyRecord",
    "RateLimitCounter",
    "ErrorCategory",
    "ValetFlowError",
    "ValidationFailedError",
    "UnauthenticatedError",
    "PermissionDeniedError",
    "NotFoundError",
    "InvalidTransitionError",
    "SpotOccupiedError",
    "SpotLockedError",
    "RateLimitedError",
    "CreateBookingInput",
    "TransitionBookingInput",
    "CompleteBookingInput",
    "CancelBookingInput",
    "ListBookingsInput",
    "LockSpotInput",
    "AssignSpotInput",
    "ReleaseSpotInput",
    "SweepLocksInput",
    "BookingOrderField",
    "SortDirection",
    "CreateBookingResult",
    "SuccessResult",
    "BookingPage",
]
