"""Unit tests for the capacity manager."""

from uuid import uuid4

import pytest

from trip_engine.core.exceptions import CapacityExhaustedError, NotFoundError, ValidationError
from trip_engine.models.trip import TripStatus
from trip_engine.services.capacity_service import CapacityConflictError, CapacityService
from trip_engine.services.trip_service import TripService


@pytest.mark.asyncio
async def test_reserve_spot_decrements(test_session, make_trip):
    trip = await make_trip(capacity=3)
    service = CapacityService(test_session)

    remaining = await service.reserve_spot(trip.id)
    await test_session.commit()

    assert remaining == 2
    refreshed = await TripService(test_session).get_trip_by_id(trip.id)
    assert refreshed.available_spots == 2
    assert refreshed.capacity == 3


@pytest.mark.asyncio
async def test_taking_last_seat_changes_only_the_counter(test_session, make_trip):
    trip = await make_trip(capacity=1)
    service = CapacityService(test_session)

    await service.reserve_spot(trip.id)
    await test_session.commit()
    full = await TripService(test_session).get_trip_by_id(trip.id)
    assert (full.available_spots, full.status) == (0, TripStatus.OPEN)

    await service.release_spot(trip.id)
    await test_session.commit()
    reopened = await TripService(test_session).get_trip_by_id(trip.id)
    assert (reopened.available_spots, reopened.status) == (1, TripStatus.OPEN)


@pytest.mark.asyncio
async def test_reserve_spot_on_full_trip(test_session, make_trip):
    trip = await make_trip(capacity=1, available_spots=0)
    trip_id = trip.id

    with pytest.raises(CapacityExhaustedError) as exc_info:
        await CapacityService(test_session).reserve_spot(trip_id)
    await test_session.rollback()

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "FULL"
    assert exc_info.value.problem_details["capacity"] == 1

    refreshed = await TripService(test_session).get_trip_by_id(trip_id)
    assert refreshed.available_spots == 0


@pytest.mark.asyncio
async def test_reserve_spot_unknown_trip(test_session):
    with pytest.raises(NotFoundError):
        await CapacityService(test_session).reserve_spot(uuid4())


@pytest.mark.asyncio
async def test_release_spot_increments(test_session, make_trip):
    trip = await make_trip(capacity=10, available_spots=0)

    available = await CapacityService(test_session).release_spot(trip.id)
    await test_session.commit()

    assert available == 1


@pytest.mark.asyncio
async def test_release_spot_is_clamped_at_capacity(test_session, make_trip):
    trip = await make_trip(capacity=4)

    available = await CapacityService(test_session).release_spot(trip.id)
    await test_session.commit()

    assert available == 4
    refreshed = await TripService(test_session).get_trip_by_id(trip.id)
    assert refreshed.available_spots == 4


@pytest.mark.asyncio
async def test_adjust_capacity_grows_both_counters(test_session, make_trip):
    trip = await make_trip(capacity=10, available_spots=3)

    adjustment = await CapacityService(test_session).adjust_capacity(trip.id, 5, "Second bus", "ops@example.org")

    assert adjustment.capacity_before == 10
    assert adjustment.capacity_after == 15
    assert adjustment.available_before == 3
    assert adjustment.available_after == 8
    assert adjustment.actor == "ops@example.org"

    refreshed = await TripService(test_session).get_trip_by_id(trip.id)
    assert (refreshed.available_spots, refreshed.capacity) == (8, 15)


@pytest.mark.asyncio
async def test_adjust_capacity_cannot_remove_reserved_seats(test_session, make_trip):
    trip = await make_trip(capacity=10, available_spots=2)
    trip_id = trip.id

    with pytest.raises(CapacityConflictError) as exc_info:
        await CapacityService(test_session).adjust_capacity(trip_id, -3, "Smaller hotel", "ops")

    assert exc_info.value.code == "CAPACITY_CONFLICT"
    refreshed = await TripService(test_session).get_trip_by_id(trip_id)
    assert (refreshed.available_spots, refreshed.capacity) == (2, 10)


@pytest.mark.asyncio
async def test_adjust_capacity_removes_unreserved_seats(test_session, make_trip):
    trip = await make_trip(capacity=10, available_spots=2)

    adjustment = await CapacityService(test_session).adjust_capacity(trip.id, -2, "Smaller hotel", "ops")

    assert adjustment.capacity_after == 8
    assert adjustment.available_after == 0

    history = await CapacityService(test_session).get_adjustments_for_trip(trip.id)
    assert [a.delta for a in history] == [-2]


@pytest.mark.asyncio
async def test_adjust_capacity_rejects_zero_delta(test_session, make_trip):
    trip = await make_trip()

    with pytest.raises(ValidationError):
        await CapacityService(test_session).adjust_capacity(trip.id, 0, "noop", "ops")


@pytest.mark.asyncio
async def test_adjust_capacity_unknown_trip(test_session):
    with pytest.raises(NotFoundError):
        await CapacityService(test_session).adjust_capacity(uuid4(), 1, "more", "ops")
    await test_session.rollback()
