"""Typed reads of booking and spot documents."""

from typing import Any, Protocol

from valetflow.domain.document_paths import booking_path, spot_path
from valetflow.domain.models.booking import Booking
from valetflow.domain.models.errors import NotFoundError
from valetflow.domain.models.spot import Spot


class DocumentReader(Protocol):
    """Anything that can read a document: a store or a transaction."""

    async def get(self, path: str) -> dict[str, Any] | None: ...


async def read_booking(reader: DocumentReader, tenant_id: str, booking_id: str) -> Booking:
    """Load a booking.

    Raises:
        NotFoundError: If the booking does not exist.
    """
    data = await reader.get(booking_path(tenant_id, booking_id))
    if data is None:
        raise NotFoundError("Booking not found.", details={"booking_id": booking_id})
    return Booking.from_document(data, id=booking_id, tenant_id=tenant_id)


async def read_spot(
    reader: DocumentReader, tenant_id: str, location_id: str, spot_id: str
) -> Spot:
    """Load a spot.

    Raises:
        NotFoundError: If the spot does not exist.
    """
    data = await reader.get(spot_path(tenant_id, location_id, spot_id))
    if data is None:
        raise NotFoundError(
            "Spot not found.", details={"location_id": location_id, "spot_id": spot_id}
        )
    return Spot.from_document(data, id=spot_id, location_id=location_id)
