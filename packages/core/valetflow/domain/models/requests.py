"""Request models validated at the service boundary.

Every inbound call is parsed into one of these models before any store
access. Free-text fields are sanitized (angle brackets stripped, bare
ampersands escaped, whitespace trimmed) and length-bounded; identifiers,
plates, phone numbers and flight numbers are normalized.
"""

import re
from enum import Enum
from typing import Annotated, Any, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationError,
)

from valetflow.domain.models.booking import BookingStatus, PaymentMethod
from valetflow.domain.models.errors import ValidationFailedError

ModelT = TypeVar("ModelT", bound=BaseModel)

_BARE_AMPERSAND = re.compile(r"&(?!amp;|lt;|gt;|quot;)")
_PLATE_DISALLOWED = re.compile(r"[^a-zA-Z0-9\- ]")
_PHONE_DISALLOWED = re.compile(r"[^0-9+\-() ]")
_FLIGHT_DISALLOWED = re.compile(r"[^A-Za-z0-9]")


def sanitize_text(value: Any) -> Any:
    """Strip HTML brackets and escape bare ampersands."""
    if not isinstance(value, str):
        return value
    return _BARE_AMPERSAND.sub("&amp;", value.replace("<", "").replace(">", "")).strip()


def normalize_plate(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return _PLATE_DISALLOWED.sub("", value).strip().upper()


def normalize_phone(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return _PHONE_DISALLOWED.sub("", value).strip()


def normalize_flight_number(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return _FLIGHT_DISALLOWED.sub("", value).strip().upper()


def _required(value: str) -> str:
    if not value:
        raise ValueError("is required")
    return value


def _empty_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _text(max_length: int) -> Any:
    return Annotated[str, StringConstraints(max_length=max_length), BeforeValidator(sanitize_text)]


def _required_text(max_length: int) -> Any:
    return Annotated[_text(max_length), AfterValidator(_required)]


def _optional(max_length: int) -> Any:
    return Annotated[
        Annotated[str, StringConstraints(max_length=max_length)] | None,
        BeforeValidator(_empty_to_none),
    ]


Identifier = _required_text(100)
CustomerName = _required_text(100)
VehicleText = _text(50)
VehicleColor = _text(30)
Notes = _text(1000)
Remark = _text(500)
Plate = Annotated[
    str,
    StringConstraints(max_length=20),
    BeforeValidator(normalize_plate),
    AfterValidator(_required),
]
Phone = Annotated[str, StringConstraints(max_length=20), BeforeValidator(normalize_phone)]
FlightNumber = Annotated[
    str, StringConstraints(max_length=20), BeforeValidator(normalize_flight_number)
]
Email = Annotated[EmailStr | None, BeforeValidator(_empty_to_none)]
IdempotencyKey = _optional(64)
Cursor = _optional(200)


class _RequestModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CreateBookingInput(_RequestModel):
    """Input for creating a booking."""

    customer_name: CustomerName
    customer_phone: Phone = ""
    customer_email: Email = None
    vehicle_plate: Plate
    vehicle_make: VehicleText = ""
    vehicle_model: VehicleText = ""
    vehicle_color: VehicleColor = ""
    flight_number: FlightNumber = ""
    notes: Notes = ""
    idempotency_key: IdempotencyKey = None


class TransitionBookingInput(_RequestModel):
    """Input for moving a booking to another status."""

    booking_id: Identifier
    new_status: BookingStatus
    note: Remark = ""


class CompleteBookingInput(_RequestModel):
    """Input for completing an Active booking with payment."""

    booking_id: Identifier
    payment_method: PaymentMethod = PaymentMethod.Cash
    payment_amount: float = Field(default=0.0, ge=0, le=100_000)


class CancelBookingInput(_RequestModel):
    """Input for cancelling a booking."""

    booking_id: Identifier
    reason: Remark = ""


class BookingOrderField(str, Enum):
    """Fields bookings may be ordered by."""

    CreatedAt = "created_at"
    UpdatedAt = "updated_at"
    TicketNumber = "ticket_number"


class SortDirection(str, Enum):
    Asc = "asc"
    Desc = "desc"


class ListBookingsInput(_RequestModel):
    """Filters and pagination for listing bookings."""

    status: BookingStatus | None = None
    limit: int = Field(default=25, ge=1, le=100)
    start_after: Cursor = None
    order_by: BookingOrderField = BookingOrderField.CreatedAt
    direction: SortDirection = SortDirection.Desc


class LockSpotInput(_RequestModel):
    """Input for taking a soft lock on a spot."""

    location_id: Identifier
    spot_id: Identifier


class ReleaseSpotInput(_RequestModel):
    """Input for releasing a soft lock on a spot."""

    location_id: Identifier
    spot_id: Identifier


class AssignSpotInput(_RequestModel):
    """Input for binding a spot to a booking."""

    booking_id: Identifier
    location_id: Identifier
    spot_id: Identifier


class SweepLocksInput(_RequestModel):
    """Input for clearing expired locks at one location."""

    location_id: Identifier


def parse_request(model: type[ModelT], data: ModelT | dict[str, Any] | None) -> ModelT:
    """Validate raw request data into ``model``.

    Args:
        model: Request model class.
        data: Raw mapping, an already-built model instance, or None.

    Returns:
        The validated model instance.

    Raises:
        ValidationFailedError: If any field fails validation. The message
            lists every failing field.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        messages = "; ".join(f"{error['field']}: {error['message']}" for error in errors)
        raise ValidationFailedError(
            f"Validation failed: {messages}",
            details={"errors": errors},
        ) from e
