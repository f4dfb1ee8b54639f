"""Domain components."""

from valetflow.domain.components.access_policy import CAPABILITIES, Operation, authorize
from valetflow.domain.components.booking_engine import BookingEngine
from valetflow.domain.components.idempotency_cache import IdempotencyCache
from valetflow.domain.components.rate_limiter import RateLimiter
from valetflow.domain.components.spot_manager import SpotManager
from valetflow.domain.components.ticket_counter import ShardedTicketCounter
from valetflow.domain.components.transition_validator import (
    VALID_TRANSITIONS,
    allowed_next,
    can_transition,
    is_terminal,
)

__all__ = [
    "BookingEngine",
    "IdempotencyCache",
    "RateLimiter",
    "SpotManager",
    "ShardedTicketCounter",
    "Operation",
    "CAPABILITIES",
    "authorize",
    "VALID_TRANSITIONS",
    "allowed_next",
    "can_transition",
    "is_terminal",
]
