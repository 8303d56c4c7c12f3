"""Unit tests for registration number generation."""

from datetime import date
from decimal import Decimal

import pytest

from trip_engine.models import Registration
from trip_engine.services.sequence_service import (
    SequenceService,
    format_registration_number,
    next_sequence,
    registration_prefix,
    year_suffix,
)

TODAY = date(2024, 3, 15)


def test_format_zero_pads_sequence():
    assert format_registration_number("UR2024", "24", 7) == "UR2024-24-0007"


def test_format_keeps_sequences_wider_than_padding():
    assert format_registration_number("REG", "24", 12345) == "REG-24-12345"


def test_prefix_defaults_when_trip_has_no_code():
    assert registration_prefix(None) == "REG"
    assert registration_prefix("") == "REG"
    assert registration_prefix("HJ25") == "HJ25"


def test_year_suffix_is_two_digits():
    assert year_suffix(date(2009, 1, 1)) == "09"


@pytest.mark.parametrize(
    "latest,expected",
    [
        (None, 1),
        ("UR2024-24-0005", 6),
        ("A-B-C-24-0099", 100),
        ("UR2024-24-abcd", 1),
    ],
)
def test_next_sequence(latest, expected):
    assert next_sequence(latest) == expected


async def _add_registration(session, trip, member, number):
    session.add(Registration(
        organization_id=trip.organization_id,
        trip_id=trip.id,
        member_id=member.id,
        registration_number=number,
        total_amount=Decimal("1000.00"),
        balance_due=Decimal("1000.00"),
    ))
    await session.commit()


@pytest.mark.asyncio
async def test_first_number_for_trip(test_session, make_trip):
    trip = await make_trip(code="UR2024")
    service = SequenceService(test_session)

    number = await service.generate_registration_number(trip.id, trip.code, today=TODAY)

    assert number == "UR2024-24-0001"


@pytest.mark.asyncio
async def test_number_follows_latest(test_session, seed_session, make_trip, member):
    trip = await make_trip(code="UR2024")
    await _add_registration(seed_session, trip, member, "UR2024-24-0005")

    number = await SequenceService(test_session).generate_registration_number(trip.id, trip.code, today=TODAY)

    assert number == "UR2024-24-0006"


@pytest.mark.asyncio
async def test_sequence_restarts_each_year(test_session, seed_session, make_trip, member):
    trip = await make_trip(code="UR2024")
    await _add_registration(seed_session, trip, member, "UR2024-23-0042")

    number = await SequenceService(test_session).generate_registration_number(trip.id, trip.code, today=TODAY)

    assert number == "UR2024-24-0001"


@pytest.mark.asyncio
async def test_sequence_is_scoped_to_trip(test_session, seed_session, make_trip, member):
    first = await make_trip(code="UR2024")
    second = await make_trip(code="UR2024", name="Second departure")
    await _add_registration(seed_session, first, member, "UR2024-24-0009")

    number = await SequenceService(test_session).generate_registration_number(second.id, second.code, today=TODAY)

    assert number == "UR2024-24-0001"


@pytest.mark.asyncio
async def test_trip_without_code_uses_default_prefix(test_session, make_trip):
    trip = await make_trip(code=None)

    number = await SequenceService(test_session).generate_registration_number(trip.id, trip.code, today=TODAY)

    assert number == "REG-24-0001"


@pytest.mark.asyncio
async def test_like_wildcards_in_code_are_literal(test_session, seed_session, make_trip, member):
    trip = await make_trip(code="U_R")
    await _add_registration(seed_session, trip, member, "UXR-24-0050")

    number = await SequenceService(test_session).generate_registration_number(trip.id, trip.code, today=TODAY)

    assert number == "U_R-24-0001"


@pytest.mark.asyncio
async def test_number_past_padding_width_keeps_counting(test_session, seed_session, make_trip, make_member):
    trip = await make_trip(code="UR2024")
    await _add_registration(seed_session, trip, await make_member(), "UR2024-24-9999")
    await _add_registration(seed_session, trip, await make_member(), "UR2024-24-10000")

    number = await SequenceService(test_session).generate_registration_number(trip.id, trip.code, today=TODAY)

    assert number == "UR2024-24-10001"
