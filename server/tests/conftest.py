"""Test configuration and fixtures."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trip_engine.core.database import Base, build_engine, get_db
from trip_engine.models import *  # noqa: F403 - Import all models
from trip_engine.models import Member, Trip
from trip_engine.models.trip import TripStatus

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Session handed to services under test."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def seed_session(session_factory):
    """
    Separate session for fixture data.

    Fixture objects live here so that a rollback in the session under test
    never expires them.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory):
    """Create the application with its database dependency pointed at the test engine."""
    from trip_engine.main import create_app

    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def organization_id():
    return uuid4()


@pytest.fixture
def make_member(seed_session, organization_id):
    """Factory that persists a member of the test organization."""
    counter = {"n": 0}

    async def _make(**overrides) -> Member:
        counter["n"] += 1
        values = {
            "organization_id": organization_id,
            "first_name": "Member",
            "last_name": f"No{counter['n']}",
            "email": f"member{counter['n']}@example.org",
        }
        values.update(overrides)
        member = Member(**values)
        seed_session.add(member)
        await seed_session.commit()
        return member

    return _make


@pytest.fixture
def make_trip(seed_session, organization_id):
    """Factory that persists a trip of the test organization; every seat is free unless overridden."""

    async def _make(**overrides) -> Trip:
        capacity = overrides.pop("capacity", 10)
        values = {
            "organization_id": organization_id,
            "name": "Spring Umrah",
            "code": "UMR",
            "start_date": date.today() + timedelta(days=60),
            "end_date": date.today() + timedelta(days=74),
            "price": Decimal("1000.00"),
            "deposit_amount": Decimal("200.00"),
            "currency": "USD",
            "capacity": capacity,
            "available_spots": capacity,
            "waitlist_capacity": 10,
            "status": TripStatus.OPEN.value,
        }
        values.update(overrides)
        trip = Trip(**values)
        seed_session.add(trip)
        await seed_session.commit()
        return trip

    return _make


@pytest_asyncio.fixture
async def member(make_member):
    return await make_member()


@pytest_asyncio.fixture
async def trip(make_trip):
    return await make_trip()


@pytest.fixture
def sample_trip_data(organization_id):
    """Sample trip creation payload."""
    start = date.today() + timedelta(days=90)
    return {
        "organization_id": str(organization_id),
        "name": "Ramadan Umrah",
        "code": "UR2024",
        "trip_type": "umrah",
        "destination": "Makkah",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=12)).isoformat(),
        "capacity": 2,
        "price": "1000.00",
        "deposit_amount": "200.00",
        "currency": "USD",
        "status": "open",
    }
