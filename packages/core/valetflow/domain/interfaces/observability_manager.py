"""ObservabilityManager interface for structured logs and domain events."""

from abc import ABC, abstractmethod
from typing import Any


class ObservabilityManager(ABC):
    """Abstract interface for observability.

    Components log through this interface instead of configuring a logging
    backend themselves, which keeps them testable with a mock.
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit a domain event.

        Args:
            event_type: Type of event (e.g., "booking_created", "spot_assigned").
            payload: Event payload data.
            metadata: Optional metadata (correlation_id, tenant_id, ...).

        Raises:
            ObservabilityError: If event emission fails.
        """

    @abstractmethod
    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a message with structured context.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            message: Log message.
            context: Optional structured context data.

        Raises:
            ObservabilityError: If logging fails.
        """


class ObservabilityError(Exception):
    """Raised when observability operations fail."""

    pass
