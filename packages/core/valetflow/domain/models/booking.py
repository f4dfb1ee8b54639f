"""Booking aggregate and its value objects."""

from datetime import datetime
from enum import Enum

from pydantic import ConfigDict, Field

from valetflow.domain.clock import utc_now
from valetflow.domain.models.document import DocumentModel


class BookingStatus(str, Enum):
    """Lifecycle states of a booking.

    Completed and Cancelled are terminal; every other state can still be
    cancelled.
    """

    New = "New"
    """Ticket issued, nothing else happened yet."""

    Booked = "Booked"
    """Reservation confirmed ahead of arrival."""

    CheckIn = "Check-In"
    """Customer handed over the vehicle."""

    Parked = "Parked"
    """Vehicle sits in its assigned spot."""

    Active = "Active"
    """Vehicle is being returned to the customer."""

    Completed = "Completed"
    """Vehicle returned and paid for."""

    Cancelled = "Cancelled"
    """Booking abandoned."""


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    Cash = "cash"
    Card = "card"
    Mobile = "mobile"
    Prepaid = "prepaid"
    Invoice = "invoice"


class PaymentStatus(str, Enum):
    """Payment capture state."""

    Pending = "pending"
    Paid = "paid"


class Vehicle(DocumentModel):
    """Vehicle description captured at creation."""

    make: str = ""
    model: str = ""
    color: str = ""
    plate: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def describe(self) -> str:
        """Human-readable description, e.g. "Red Toyota Corolla"."""
        return " ".join(part for part in (self.color, self.make, self.model) if part)


class Payment(DocumentModel):
    """Payment captured on completion."""

    method: PaymentMethod | None = None
    amount: float = Field(default=0.0, ge=0)
    status: PaymentStatus = PaymentStatus.Pending

    model_config = ConfigDict(frozen=True)


class SpotRef(DocumentModel):
    """Reference to the spot a booking currently holds."""

    location_id: str = Field(..., min_length=1)
    spot_id: str = Field(..., min_length=1)
    spot_name: str = ""

    model_config = ConfigDict(frozen=True)


class HistoryEntry(DocumentModel):
    """One status change in a booking's history."""

    status: BookingStatus
    timestamp: datetime = Field(default_factory=utc_now)
    actor: str = Field(..., min_length=1)
    note: str = ""

    model_config = ConfigDict(frozen=True)


class Booking(DocumentModel):
    """A valet booking occupying at most one spot.

    Bookings are never deleted; terminal bookings stay for audit. History is
    an immutable tuple: each change builds a new tuple with one more entry,
    oldest first.
    """

    id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    ticket_number: int
    status: BookingStatus = BookingStatus.New
    customer_name: str = Field(..., min_length=1)
    customer_phone: str = ""
    customer_email: str = ""
    vehicle: Vehicle
    flight_number: str = ""
    notes: str = ""
    spot_ref: SpotRef | None = None
    payment: Payment = Field(default_factory=Payment)
    history: tuple[HistoryEntry, ...] = ()
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    created_by: str = ""
    correlation_id: str = ""

    model_config = ConfigDict(frozen=True)

    def with_history(
        self,
        status: BookingStatus,
        actor: str,
        note: str,
        timestamp: datetime,
        **changes: object,
    ) -> "Booking":
        """Return a copy moved to ``status`` with one history entry appended."""
        entry = HistoryEntry(status=status, timestamp=timestamp, actor=actor, note=note)
        return self.model_copy(
            update={
                **changes,
                "status": status,
                "history": (*self.history, entry),
                "updated_at": timestamp,
            }
        )

    def to_document(self, exclude: set[str] | None = None) -> dict:
        # The id is the last path segment, not a stored field.
        return super().to_document(exclude={"id", *(exclude or set())})
