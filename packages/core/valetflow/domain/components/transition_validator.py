"""Booking status state machine."""

from valetflow.domain.models.booking import BookingStatus

# Static edge table. Every non-terminal status can reach Cancelled directly
# and Completed by some path; no status lists itself.
VALID_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.New: frozenset(
        {BookingStatus.Booked, BookingStatus.CheckIn, BookingStatus.Cancelled}
    ),
    BookingStatus.Booked: frozenset({BookingStatus.CheckIn, BookingStatus.Cancelled}),
    BookingStatus.CheckIn: frozenset({BookingStatus.Parked, BookingStatus.Cancelled}),
    BookingStatus.Parked: frozenset({BookingStatus.Active, BookingStatus.Cancelled}),
    BookingStatus.Active: frozenset({BookingStatus.Completed, BookingStatus.Cancelled}),
    BookingStatus.Completed: frozenset(),
    BookingStatus.Cancelled: frozenset(),
}

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

# Statuses in which a booking may hold a spot.
SPOT_HOLDING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CheckIn, BookingStatus.Parked, BookingStatus.Active}
)


def allowed_next(status: BookingStatus) -> frozenset[BookingStatus]:
    """Statuses reachable from ``status`` in one step."""
    return VALID_TRANSITIONS.get(status, frozenset())


def can_transition(from_status: BookingStatus, to_status: BookingStatus) -> bool:
    return to_status in allowed_next(from_status)


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


def describe_allowed(status: BookingStatus) -> list[str]:
    """Allowed next statuses as sorted values, for error messages."""
    return sorted(target.value for target in allowed_next(status))
