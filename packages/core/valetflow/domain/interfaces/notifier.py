"""NotificationService interface for customer-facing booking updates."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BookingNotification(BaseModel):
    """Plain data payload describing a booking change.

    Attributes:
        event: What happened (created, transitioned, completed, cancelled).
        tenant_id: Tenant owning the booking.
        booking_id: Booking identifier.
        ticket_number: Human-facing ticket number.
        status: Booking status after the change.
        customer_name: Customer display name.
        customer_phone: Customer phone, may be empty.
        customer_email: Customer email, may be empty.
        details: Event-specific extras (payment amount, reason, ...).
    """

    event: str = Field(..., min_length=1)
    tenant_id: str
    booking_id: str
    ticket_number: int
    status: str
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class NotificationService(ABC):
    """Delivers booking notifications.

    Invoked fire-and-forget after a mutation has committed; a failure here
    is logged by the caller and never rolls the mutation back.
    """

    @abstractmethod
    async def notify(self, notification: BookingNotification) -> None:
        """Deliver one notification."""
