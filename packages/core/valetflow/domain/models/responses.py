"""Response models returned by the booking service."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from valetflow.domain.models.booking import Booking


class CreateBookingResult(BaseModel):
    """Identity of a newly created booking.

    This is also the payload cached under an idempotency key, so it must
    round-trip through ``model_dump()`` / ``model_validate()``.
    """

    id: str
    ticket_number: int

    model_config = ConfigDict(frozen=True)


class SuccessResult(BaseModel):
    """Acknowledgement of a mutation."""

    success: Literal[True] = True

    model_config = ConfigDict(frozen=True)


class BookingPage(BaseModel):
    """One page of bookings.

    ``has_more`` is derived from fetching one booking past ``limit``; the
    extra booking is never included in ``bookings``.
    """

    bookings: list[Booking] = Field(default_factory=list)
    has_more: bool = False
    last_id: str | None = None

    model_config = ConfigDict(frozen=True)
