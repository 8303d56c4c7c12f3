"""Trip catalogue service."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import and_, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationError
from ..models.trip import Trip, TripStatus
from ..schemas.trip import CreateTripRequest, SearchTripsRequest, UpdateTripRequest

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = (TripStatus.OPEN.value, TripStatus.FULL.value)

# Columns an update may change but never clear
REQUIRED_TRIP_FIELDS = (
    "name", "trip_type", "start_date", "end_date", "price", "deposit_amount", "currency", "waitlist_capacity"
)


def encode_cursor(trip: Trip) -> str:
    return f"{trip.start_date.isoformat()}_{trip.id}"


def decode_cursor(cursor: str) -> tuple[date, UUID]:
    """Split a search cursor into its (start_date, id) keyset."""
    try:
        start, trip_id = cursor.split("_", 1)
        return date.fromisoformat(start), UUID(trip_id)
    except ValueError:
        raise ValidationError(
            detail="Invalid pagination cursor",
            errors={"cursor": cursor}
        )


class TripService:
    """Service for trip-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_trip(self, request: CreateTripRequest) -> Trip:
        """
        Create a new trip with every seat available.

        Args:
            request: Trip creation request

        Returns:
            Created trip entity

        Raises:
            ValidationError: If dates or pricing are inconsistent
        """
        errors = {}
        if request.end_date < request.start_date:
            errors["end_date"] = "end_date must not be before start_date"
        if request.deposit_amount > request.price:
            errors["deposit_amount"] = "deposit_amount must not exceed price"
        if request.registration_deadline and request.registration_deadline > request.end_date:
            errors["registration_deadline"] = "registration_deadline must not be after end_date"
        if errors:
            logger.warning(
                "Trip creation rejected",
                extra={"organization_id": str(request.organization_id), "errors": errors}
            )
            raise ValidationError(detail="Trip data failed validation", errors=errors)

        trip = Trip(
            organization_id=request.organization_id,
            name=request.name,
            code=request.code,
            description=request.description,
            trip_type=request.trip_type.value,
            destination=request.destination,
            start_date=request.start_date,
            end_date=request.end_date,
            registration_deadline=request.registration_deadline,
            price=request.price,
            deposit_amount=request.deposit_amount,
            currency=request.currency or settings.default_currency,
            capacity=request.capacity,
            available_spots=request.capacity,
            waitlist_capacity=(
                request.waitlist_capacity
                if request.waitlist_capacity is not None
                else settings.default_waitlist_capacity
            ),
            status=request.status.value,
            notes=request.notes,
        )

        self.db.add(trip)
        await self.db.commit()
        await self.db.refresh(trip)

        logger.info(
            "Trip created successfully",
            extra={
                "trip_id": str(trip.id),
                "organization_id": str(trip.organization_id),
                "code": trip.code,
                "capacity": trip.capacity
            }
        )

        return trip

    async def search_trips(self, request: SearchTripsRequest) -> tuple[list[Trip], str | None]:
        """
        Search an organization's trips, newest start date first.

        Returns:
            The page of trips and the cursor of the next page, if any
        """
        conditions = [Trip.organization_id == request.organization_id]

        if request.search:
            pattern = f"%{request.search}%"
            conditions.append(or_(
                Trip.name.ilike(pattern),
                Trip.code.ilike(pattern),
                Trip.destination.ilike(pattern),
            ))
        if request.trip_type:
            conditions.append(Trip.trip_type == request.trip_type.value)
        if request.status:
            conditions.append(Trip.status == request.status.value)
        if request.destination:
            conditions.append(Trip.destination.ilike(f"%{request.destination}%"))
        if request.start_date_from:
            conditions.append(Trip.start_date >= request.start_date_from)
        if request.start_date_to:
            conditions.append(Trip.start_date <= request.start_date_to)
        if request.has_availability:
            conditions.append(Trip.available_spots > 0)
        if request.price_min is not None:
            conditions.append(Trip.price >= request.price_min)
        if request.price_max is not None:
            conditions.append(Trip.price <= request.price_max)

        if request.cursor:
            cursor_date, cursor_id = decode_cursor(request.cursor)
            conditions.append(or_(
                Trip.start_date < cursor_date,
                and_(Trip.start_date == cursor_date, Trip.id < cursor_id),
            ))

        stmt = (
            select(Trip)
            .where(and_(*conditions))
            .order_by(Trip.start_date.desc(), Trip.id.desc())
            .limit(request.limit + 1)
        )
        result = await self.db.execute(stmt)
        trips = list(result.scalars())

        has_next_page = len(trips) > request.limit
        if has_next_page:
            trips = trips[:-1]
        next_cursor = encode_cursor(trips[-1]) if has_next_page and trips else None

        logger.info(
            "Trip search completed",
            extra={
                "organization_id": str(request.organization_id),
                "total_found": len(trips),
                "has_next_page": has_next_page
            }
        )

        return trips, next_cursor

    async def get_upcoming_trips(self, organization_id: UUID, today: date | None = None) -> list[Trip]:
        """Trips open for registration that have not started yet, soonest first."""
        stmt = (
            select(Trip)
            .where(
                Trip.organization_id == organization_id,
                Trip.start_date > (today or date.today()),
                Trip.status.in_(UPCOMING_STATUSES),
            )
            .order_by(Trip.start_date.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_trips_in_progress(self, organization_id: UUID) -> list[Trip]:
        stmt = (
            select(Trip)
            .where(
                Trip.organization_id == organization_id,
                Trip.status == TripStatus.IN_PROGRESS.value,
            )
            .order_by(Trip.start_date.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_trip_by_id(self, trip_id: UUID) -> Trip | None:
        """
        Get trip by ID.

        Args:
            trip_id: Trip ID to search for

        Returns:
            Trip if found, None otherwise
        """
        stmt = select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_trip_by_id_or_raise(self, trip_id: UUID) -> Trip:
        """
        Get trip by ID or raise NotFoundError.

        Raises:
            NotFoundError: If trip not found
        """
        trip = await self.get_trip_by_id(trip_id)
        if not trip:
            logger.warning("Trip not found", extra={"trip_id": str(trip_id)})
            raise NotFoundError(resource_type="trip", resource_id=str(trip_id))
        return trip

    async def lock_trip(self, trip_id: UUID) -> None:
        """
        Serialize writers on a trip for the rest of the current transaction.

        PostgreSQL takes a transaction-scoped advisory lock keyed on the trip.
        SQLite has no row locks, so the transaction is upgraded to a write
        transaction up front; this must be the first write of the unit.
        """
        dialect = self.db.bind.dialect.name if self.db.bind else ""
        if dialect == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:trip_id))"),
                {"trip_id": str(trip_id)}
            )
        elif dialect == "sqlite":
            await self.db.execute(text("BEGIN IMMEDIATE"))

    async def get_trip_with_lock(self, trip_id: UUID) -> Trip:
        """
        Lock a trip for capacity work and load it.

        Raises:
            NotFoundError: If trip not found
        """
        await self.lock_trip(trip_id)
        trip = await self.get_trip_by_id_or_raise(trip_id)

        logger.debug("Acquired trip lock", extra={"trip_id": str(trip_id)})
        return trip

    async def update_trip_status(self, trip_id: UUID, status: TripStatus) -> Trip:
        """
        Change a trip's lifecycle status.

        Raises:
            NotFoundError: If trip not found
        """
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id)
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(resource_type="trip", resource_id=str(trip_id))

        await self.db.commit()
        trip = await self.get_trip_by_id_or_raise(trip_id)

        logger.info(
            "Trip status updated",
            extra={"trip_id": str(trip_id), "status": status.value}
        )
        return trip

    async def update_trip(self, request: UpdateTripRequest) -> Trip:
        """
        Edit trip details; only fields present in the request change.

        Dates and pricing are re-validated against the merged values.

        Raises:
            NotFoundError: If trip not found
            ValidationError: If a required field is cleared or the merged values are inconsistent
        """
        trip = await self.get_trip_by_id_or_raise(request.trip_id)
        changes = request.model_dump(exclude_unset=True, exclude={"trip_id"})

        errors = {
            field: f"{field} cannot be cleared"
            for field in REQUIRED_TRIP_FIELDS
            if field in changes and changes[field] is None
        }

        start_date = changes.get("start_date") or trip.start_date
        end_date = changes.get("end_date") or trip.end_date
        price = changes["price"] if changes.get("price") is not None else trip.price
        deposit_amount = (
            changes["deposit_amount"] if changes.get("deposit_amount") is not None else trip.deposit_amount
        )
        deadline = changes.get("registration_deadline", trip.registration_deadline)

        if end_date < start_date:
            errors["end_date"] = "end_date must not be before start_date"
        if deposit_amount > price:
            errors["deposit_amount"] = "deposit_amount must not exceed price"
        if deadline and deadline > end_date:
            errors["registration_deadline"] = "registration_deadline must not be after end_date"
        if errors:
            logger.warning(
                "Trip update rejected",
                extra={"trip_id": str(trip.id), "errors": errors}
            )
            raise ValidationError(detail="Trip data failed validation", errors=errors)

        if "trip_type" in changes:
            changes["trip_type"] = changes["trip_type"].value
        for field, value in changes.items():
            setattr(trip, field, value)

        await self.db.commit()

        logger.info(
            "Trip updated",
            extra={"trip_id": str(trip.id), "fields": sorted(changes)}
        )
        return await self.get_trip_by_id_or_raise(trip.id)
