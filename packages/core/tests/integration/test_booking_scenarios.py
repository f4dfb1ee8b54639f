"""End-to-end booking scenarios on the in-memory store."""

import asyncio

import pytest

from valetflow import BookingService
from valetflow.domain.document_paths import booking_path, spot_path
from valetflow.domain.models.booking import BookingStatus
from valetflow.domain.models.errors import InvalidTransitionError, SpotLockedError
from valetflow.domain.models.responses import SuccessResult

NEW_BOOKING = {
    "customer_name": "Grace Hopper",
    "customer_phone": "+1 555 0199",
    "vehicle_plate": "NAVY-1",
    "vehicle_make": "Ford",
    "vehicle_model": "Mustang",
    "flight_number": "ua 100",
}


async def walk(service: BookingService, auth, booking_id: str, *statuses: str) -> None:
    for status in statuses:
        await service.transition_booking(auth, {"booking_id": booking_id, "new_status": status})


@pytest.mark.asyncio
async def test_walk_up_booking_assign_and_cancel(
    service: BookingService, store, seed_spot, operator, tenant_id, location_id
):
    """Test the walk-up path: check in, park in A1, cancel, spot freed."""
    await seed_spot("A1")

    created = await service.create_booking(operator, NEW_BOOKING)
    assert isinstance(created.ticket_number, int)
    booking = await store.get(booking_path(tenant_id, created.id))
    assert booking["status"] == BookingStatus.New.value

    with pytest.raises(InvalidTransitionError):
        await service.transition_booking(
            operator, {"booking_id": created.id, "new_status": "Active"}
        )
    await walk(service, operator, created.id, "Check-In")

    await service.lock_spot(operator, {"location_id": location_id, "spot_id": "A1"})
    await service.assign_spot(
        operator, {"booking_id": created.id, "location_id": location_id, "spot_id": "A1"}
    )
    spot = await store.get(spot_path(tenant_id, location_id, "A1"))
    assert spot["status"] == "occupied"
    assert spot["booking_id"] == created.id

    assert await service.cancel_booking(
        operator, {"booking_id": created.id, "reason": "Customer left"}
    ) == SuccessResult()

    spot = await store.get(spot_path(tenant_id, location_id, "A1"))
    assert spot["status"] == "available"
    assert spot["booking_id"] is None
    booking = await store.get(booking_path(tenant_id, created.id))
    assert booking["status"] == "Cancelled"
    assert booking["history"][-1]["note"] == "Customer left"


@pytest.mark.asyncio
async def test_full_lifecycle_frees_spot_and_records_payment(
    service: BookingService, store, seed_spot, operator, tenant_id, location_id
):
    await seed_spot("B7")
    created = await service.create_booking(operator, NEW_BOOKING)
    await walk(service, operator, created.id, "Booked", "Check-In")
    await service.assign_spot(
        operator, {"booking_id": created.id, "location_id": location_id, "spot_id": "B7"}
    )
    await walk(service, operator, created.id, "Parked", "Active")

    await service.complete_booking(
        operator, {"booking_id": created.id, "payment_method": "mobile", "payment_amount": 42}
    )

    booking = await store.get(booking_path(tenant_id, created.id))
    assert booking["status"] == "Completed"
    assert booking["spot_ref"] is None
    assert booking["payment"] == {"method": "mobile", "amount": 42.0, "status": "paid"}
    assert [entry["status"] for entry in booking["history"]] == [
        "New",
        "Booked",
        "Check-In",
        "Parked",
        "Active",
        "Completed",
    ]
    spot = await store.get(spot_path(tenant_id, location_id, "B7"))
    assert spot == {
        "location_id": location_id,
        "name": "B7",
        "status": "available",
        "booking_id": None,
        "locked_by": None,
        "locked_at": None,
    }


@pytest.mark.asyncio
async def test_concurrent_complete_and_cancel(
    service: BookingService, store, seed_spot, operator, other_operator, tenant_id, location_id
):
    """Test that exactly one of two racing terminal transitions wins."""
    await seed_spot("A1")
    created = await service.create_booking(operator, NEW_BOOKING)
    await walk(service, operator, created.id, "Check-In")
    await service.assign_spot(
        operator, {"booking_id": created.id, "location_id": location_id, "spot_id": "A1"}
    )
    await walk(service, operator, created.id, "Parked", "Active")

    outcomes = await asyncio.gather(
        service.complete_booking(operator, {"booking_id": created.id, "payment_amount": 10}),
        service.cancel_booking(other_operator, {"booking_id": created.id}),
        return_exceptions=True,
    )

    successes = [o for o in outcomes if isinstance(o, SuccessResult)]
    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidTransitionError)

    booking = await store.get(booking_path(tenant_id, created.id))
    assert booking["status"] in ("Completed", "Cancelled")
    assert failures[0].details["current"] == booking["status"]
    assert [entry["status"] for entry in booking["history"]].count(booking["status"]) == 1
    spot = await store.get(spot_path(tenant_id, location_id, "A1"))
    assert spot["status"] == "available"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path",
    [
        (),
        ("Booked",),
        ("Check-In",),
        ("Check-In", "Parked"),
        ("Cancelled",),
    ],
)
async def test_complete_outside_active_mentions_active(
    service: BookingService, operator, path
):
    created = await service.create_booking(operator, NEW_BOOKING)
    await walk(service, operator, created.id, *path)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await service.complete_booking(operator, {"booking_id": created.id})

    assert "Active" in exc_info.value.message


@pytest.mark.asyncio
async def test_complete_twice_mentions_active(service: BookingService, operator):
    created = await service.create_booking(operator, NEW_BOOKING)
    await walk(service, operator, created.id, "Check-In", "Parked", "Active")
    await service.complete_booking(operator, {"booking_id": created.id})

    with pytest.raises(InvalidTransitionError, match="Active"):
        await service.complete_booking(operator, {"booking_id": created.id})


@pytest.mark.asyncio
async def test_lock_takeover_after_timeout(
    service: BookingService, seed_spot, operator, other_operator, location_id, clock
):
    """Test that an expired lock is takeable by anyone, the original owner included."""
    await seed_spot("C3")
    spot = {"location_id": location_id, "spot_id": "C3"}

    await service.lock_spot(operator, spot)
    clock.advance(29)
    with pytest.raises(SpotLockedError):
        await service.lock_spot(other_operator, spot)

    clock.advance(1)
    await service.lock_spot(other_operator, spot)

    clock.advance(30)
    await service.lock_spot(operator, spot)


@pytest.mark.asyncio
async def test_idempotent_create_under_retry(service: BookingService, store, operator, tenant_id):
    """Test that a client retrying with one key gets one booking."""
    data = {**NEW_BOOKING, "idempotency_key": "kiosk-42"}

    results = [await service.create_booking(operator, data) for _ in range(3)]

    assert len({(r.id, r.ticket_number) for r in results}) == 1
    page = await service.list_bookings(operator)
    assert [b.id for b in page.bookings] == [results[0].id]
