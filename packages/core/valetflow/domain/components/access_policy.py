"""Role-based access checks applied at the service boundary."""

from enum import Enum

from valetflow.domain.models.auth_context import AuthContext, Role
from valetflow.domain.models.errors import PermissionDeniedError, UnauthenticatedError


class Operation(str, Enum):
    """Operations exposed by the booking service."""

    CreateBooking = "create_booking"
    TransitionBooking = "transition_booking"
    CompleteBooking = "complete_booking"
    CancelBooking = "cancel_booking"
    ListBookings = "list_bookings"
    LockSpot = "lock_spot"
    AssignSpot = "assign_spot"
    ReleaseSpot = "release_spot"
    SweepExpiredLocks = "sweep_expired_locks"


_MUTATORS = frozenset({Role.Admin, Role.Operator})

CAPABILITIES: dict[Operation, frozenset[Role]] = {
    Operation.CreateBooking: _MUTATORS,
    Operation.TransitionBooking: _MUTATORS,
    Operation.CompleteBooking: _MUTATORS,
    Operation.CancelBooking: _MUTATORS,
    Operation.ListBookings: frozenset({Role.Admin, Role.Operator, Role.Viewer}),
    Operation.LockSpot: _MUTATORS,
    Operation.AssignSpot: _MUTATORS,
    Operation.ReleaseSpot: _MUTATORS,
    Operation.SweepExpiredLocks: frozenset({Role.Admin}),
}


def authorize(auth: AuthContext | None, operation: Operation) -> AuthContext:
    """Check that ``auth`` may perform ``operation``.

    Returns:
        The same auth context, for chaining.

    Raises:
        UnauthenticatedError: If there is no caller.
        PermissionDeniedError: If the caller's role lacks the capability.
    """
    if auth is None:
        raise UnauthenticatedError("Authentication required.")
    allowed = CAPABILITIES.get(operation, frozenset())
    if auth.role not in allowed:
        raise PermissionDeniedError(
            f"Role '{auth.role.value}' is not allowed to {operation.value.replace('_', ' ')}.",
            details={
                "operation": operation.value,
                "role": auth.role.value,
                "allowed_roles": sorted(role.value for role in allowed),
            },
        )
    return auth
