"""Error taxonomy for booking and spot operations."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories of caller-visible errors."""

    ValidationFailed = "validation_failed"
    """Malformed input, rejected before any store access."""

    Unauthenticated = "unauthenticated"
    """No authenticated caller."""

    PermissionDenied = "permission_denied"
    """Role or ownership check failed."""

    NotFound = "not_found"
    """Referenced booking or spot does not exist."""

    InvalidTransition = "invalid_transition"
    """Booking state machine rejected the request."""

    Occupied = "occupied"
    """Spot is occupied by a booking."""

    Locked = "locked"
    """Spot holds a live soft lock owned by another caller."""

    RateLimited = "rate_limited"
    """Caller exceeded the request window."""


class ValetFlowError(Exception):
    """Base class for every caller-visible error.

    Carries a category plus a details mapping with enough context (current
    status, allowed statuses, lock owner, ...) for the caller to decide
    whether a retry makes sense.

    Example:
        ```python
        try:
            await engine.transition(tenant_id, booking_id, BookingStatus.Active, "", actor)
        except InvalidTransitionError as e:
            print(e.details["allowed"])
        ```
    """

    category: ErrorCategory = ErrorCategory.ValidationFailed

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        category: ErrorCategory | str | None = None,
    ) -> None:
        """Initialize ValetFlowError.

        Args:
            message: Human-readable error message.
            details: Additional structured error context.
            category: Overrides the class-level category when given.
        """
        if category is not None:
            self.category = ErrorCategory(category)
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(category={self.category.value}, message={self.message!r})"

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a transport layer."""
        return {
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailedError(ValetFlowError):
    """Raised when request input violates its schema."""

    category = ErrorCategory.ValidationFailed


class UnauthenticatedError(ValetFlowError):
    """Raised when a request carries no authenticated caller."""

    category = ErrorCategory.Unauthenticated


class PermissionDeniedError(ValetFlowError):
    """Raised when the caller's role or lock ownership is insufficient."""

    category = ErrorCategory.PermissionDenied


class NotFoundError(ValetFlowError):
    """Raised when a booking or spot does not exist."""

    category = ErrorCategory.NotFound


class InvalidTransitionError(ValetFlowError):
    """Raised when a status change is not allowed from the current status."""

    category = ErrorCategory.InvalidTransition


class SpotOccupiedError(ValetFlowError):
    """Raised when a spot is already occupied."""

    category = ErrorCategory.Occupied


class SpotLockedError(ValetFlowError):
    """Raised when another caller holds a live lock on a spot."""

    category = ErrorCategory.Locked


class RateLimitedError(ValetFlowError):
    """Raised when a caller exceeds the configured request rate."""

    category = ErrorCategory.RateLimited

    def __init__(
        self,
        message: str,
        retry_after: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize RateLimitedError.

        Args:
            message: Human-readable error message.
            retry_after: Seconds until the current window closes.
            details: Additional structured error context.
        """
        self.retry_after = retry_after
        super().__init__(message, details={**(details or {}), "retry_after": retry_after})
