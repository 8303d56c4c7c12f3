"""Unit tests for trip service."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from trip_engine.core.exceptions import NotFoundError, ValidationError
from trip_engine.models.trip import TripStatus
from trip_engine.schemas.trip import CreateTripRequest, SearchTripsRequest, UpdateTripRequest
from trip_engine.services.trip_service import TripService, decode_cursor, encode_cursor


def _trip_request(organization_id, **overrides) -> CreateTripRequest:
    start = date.today() + timedelta(days=30)
    values = {
        "organization_id": organization_id,
        "name": "Autumn Ziyarat",
        "code": "ZY24",
        "start_date": start,
        "end_date": start + timedelta(days=10),
        "capacity": 20,
        "price": Decimal("1500.00"),
        "deposit_amount": Decimal("300.00"),
    }
    values.update(overrides)
    return CreateTripRequest(**values)


@pytest.mark.asyncio
async def test_create_trip(test_session, organization_id):
    """A new trip starts with every seat available."""
    trip = await TripService(test_session).create_trip(_trip_request(organization_id))

    assert trip.id is not None
    assert trip.capacity == 20
    assert trip.available_spots == 20
    assert trip.currency == "USD"
    assert trip.waitlist_capacity == 10
    assert trip.status == TripStatus.DRAFT
    assert trip.created_at is not None


@pytest.mark.asyncio
async def test_create_trip_rejects_inverted_dates(test_session, organization_id):
    start = date.today() + timedelta(days=30)

    with pytest.raises(ValidationError) as exc_info:
        await TripService(test_session).create_trip(
            _trip_request(organization_id, start_date=start, end_date=start - timedelta(days=1))
        )

    assert "end_date" in exc_info.value.problem_details["errors"]


@pytest.mark.asyncio
async def test_create_trip_rejects_deposit_above_price(test_session, organization_id):
    with pytest.raises(ValidationError) as exc_info:
        await TripService(test_session).create_trip(
            _trip_request(organization_id, price=Decimal("100.00"), deposit_amount=Decimal("200.00"))
        )

    assert "deposit_amount" in exc_info.value.problem_details["errors"]


@pytest.mark.asyncio
async def test_get_trip_by_id_or_raise(test_session, trip):
    found = await TripService(test_session).get_trip_by_id_or_raise(trip.id)
    assert found.id == trip.id

    with pytest.raises(NotFoundError):
        await TripService(test_session).get_trip_by_id_or_raise(uuid4())


@pytest.mark.asyncio
async def test_search_filters(test_session, make_trip, organization_id):
    await make_trip(name="Hajj 2025", code="HJ25", destination="Makkah", price=Decimal("8000.00"),
                    deposit_amount=Decimal("1000.00"))
    await make_trip(name="Istanbul Heritage", code="IST", destination="Istanbul", available_spots=0)
    await make_trip(organization_id=uuid4(), name="Other org trip")
    service = TripService(test_session)

    by_text, _ = await service.search_trips(SearchTripsRequest(organization_id=organization_id, search="hajj"))
    available, _ = await service.search_trips(
        SearchTripsRequest(organization_id=organization_id, has_availability=True)
    )
    expensive, _ = await service.search_trips(
        SearchTripsRequest(organization_id=organization_id, price_min=Decimal("5000"))
    )
    everything, _ = await service.search_trips(SearchTripsRequest(organization_id=organization_id))

    assert [t.code for t in by_text] == ["HJ25"]
    assert [t.code for t in available] == ["HJ25"]
    assert [t.code for t in expensive] == ["HJ25"]
    assert len(everything) == 2


@pytest.mark.asyncio
async def test_search_paginates_by_cursor(test_session, make_trip, organization_id):
    base = date.today() + timedelta(days=10)
    for i in range(5):
        await make_trip(code=f"T{i}", start_date=base + timedelta(days=i), end_date=base + timedelta(days=i + 3))
    service = TripService(test_session)

    first_page, cursor = await service.search_trips(SearchTripsRequest(organization_id=organization_id, limit=3))
    second_page, last_cursor = await service.search_trips(
        SearchTripsRequest(organization_id=organization_id, limit=3, cursor=cursor)
    )

    assert [t.code for t in first_page] == ["T4", "T3", "T2"]
    assert [t.code for t in second_page] == ["T1", "T0"]
    assert cursor is not None
    assert last_cursor is None


@pytest.mark.asyncio
async def test_cursor_round_trip(trip):
    start, trip_id = decode_cursor(encode_cursor(trip))
    assert (start, trip_id) == (trip.start_date, trip.id)


def test_malformed_cursor_is_rejected():
    with pytest.raises(ValidationError):
        decode_cursor("not-a-cursor")


@pytest.mark.asyncio
async def test_upcoming_and_in_progress(test_session, make_trip, organization_id):
    today = date.today()
    await make_trip(code="SOON", start_date=today + timedelta(days=5), end_date=today + timedelta(days=9))
    await make_trip(code="DRAFT", status=TripStatus.DRAFT.value)
    await make_trip(
        code="NOW",
        status=TripStatus.IN_PROGRESS.value,
        start_date=today - timedelta(days=2),
        end_date=today + timedelta(days=2),
    )
    service = TripService(test_session)

    upcoming = await service.get_upcoming_trips(organization_id)
    in_progress = await service.get_trips_in_progress(organization_id)

    assert [t.code for t in upcoming] == ["SOON"]
    assert [t.code for t in in_progress] == ["NOW"]


@pytest.mark.asyncio
async def test_update_trip_status(test_session, trip):
    updated = await TripService(test_session).update_trip_status(trip.id, TripStatus.CLOSED)
    assert updated.status == TripStatus.CLOSED

    with pytest.raises(NotFoundError):
        await TripService(test_session).update_trip_status(uuid4(), TripStatus.CLOSED)


@pytest.mark.asyncio
async def test_update_trip_details(test_session, make_trip):
    trip = await make_trip(code="UMR", capacity=10, available_spots=7)

    updated = await TripService(test_session).update_trip(
        UpdateTripRequest(trip_id=trip.id, name="Ramadan Umrah", price=Decimal("1250.00"), notes="Hotel upgraded")
    )

    assert updated.name == "Ramadan Umrah"
    assert updated.price == Decimal("1250.00")
    assert updated.notes == "Hotel upgraded"
    assert updated.deposit_amount == Decimal("200.00")
    assert updated.code == "UMR"
    assert updated.capacity == 10
    assert updated.available_spots == 7


@pytest.mark.asyncio
async def test_update_trip_checks_deposit_against_stored_price(test_session, trip):
    with pytest.raises(ValidationError) as exc_info:
        await TripService(test_session).update_trip(
            UpdateTripRequest(trip_id=trip.id, deposit_amount=Decimal("1500.00"))
        )

    assert "deposit_amount" in exc_info.value.problem_details["errors"]


@pytest.mark.asyncio
async def test_update_trip_price_below_deposit(test_session, trip):
    with pytest.raises(ValidationError):
        await TripService(test_session).update_trip(UpdateTripRequest(trip_id=trip.id, price=Decimal("100.00")))


@pytest.mark.asyncio
async def test_update_trip_rejects_inverted_dates(test_session, trip):
    with pytest.raises(ValidationError):
        await TripService(test_session).update_trip(
            UpdateTripRequest(trip_id=trip.id, end_date=trip.start_date - timedelta(days=1))
        )


@pytest.mark.asyncio
async def test_update_trip_cannot_clear_required_fields(test_session, trip):
    with pytest.raises(ValidationError) as exc_info:
        await TripService(test_session).update_trip(UpdateTripRequest(trip_id=trip.id, name=None, price=None))

    assert {"name", "price"} <= set(exc_info.value.problem_details["errors"])


@pytest.mark.asyncio
async def test_update_unknown_trip(test_session):
    with pytest.raises(NotFoundError):
        await TripService(test_session).update_trip(UpdateTripRequest(trip_id=uuid4(), name="Nobody"))
