"""Capacity manager: the only writer of a trip's seat counters."""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import CapacityExhaustedError, ConflictError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.capacity import CapacityAdjustment
from ..models.trip import Trip
from .trip_service import TripService

logger = logging.getLogger(__name__)


class CapacityConflictError(ConflictError):
    """Exception when a capacity reduction would take back seats that are already reserved."""

    def __init__(self, trip_id: str, requested_delta: int, available_spots: int, capacity: int):
        super().__init__(
            detail=f"Cannot reduce capacity by {abs(requested_delta)} seats. "
                   f"Trip {trip_id} has only {available_spots} of {capacity} seats unreserved",
            code="CAPACITY_CONFLICT",
            conflicting_resource={
                "trip_id": trip_id,
                "requested_delta": requested_delta,
                "available_spots": available_spots,
                "capacity": capacity
            }
        )


class CapacityService:
    """
    Maintains ``0 <= available_spots <= capacity`` for every trip.

    Seat counters are changed with conditional UPDATE statements so that
    the guard and the write happen in one statement; a zero rowcount means
    the guard failed. None of the seat operations commit: they join the
    caller's transaction. ``adjust_capacity`` is a complete unit of work
    and commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.trip_service = TripService(db)

    async def _current_spots(self, trip_id: UUID) -> tuple[int, int] | None:
        stmt = select(Trip.available_spots, Trip.capacity).where(Trip.id == trip_id)
        result = await self.db.execute(stmt)
        row = result.one_or_none()
        return (row.available_spots, row.capacity) if row else None

    async def reserve_spot(self, trip_id: UUID) -> int:
        """
        Take one seat from a trip.

        Args:
            trip_id: Trip to reserve on

        Returns:
            Remaining available spots

        Raises:
            NotFoundError: If trip not found
            CapacityExhaustedError: If no spots are left
        """
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id, Trip.available_spots > 0)
            .values(available_spots=Trip.available_spots - 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        spots = await self._current_spots(trip_id)
        if spots is None:
            raise NotFoundError(resource_type="trip", resource_id=str(trip_id))

        available, capacity = spots
        if result.rowcount == 0:
            logger.warning(
                "Capacity exhausted",
                extra={"trip_id": str(trip_id), "capacity": capacity}
            )
            metrics_collector.record_capacity_exhausted(str(trip_id))
            raise CapacityExhaustedError(trip_id=str(trip_id), capacity=capacity)

        metrics_collector.set_available_spots(str(trip_id), available)
        logger.debug(
            "Spot reserved",
            extra={"trip_id": str(trip_id), "available_spots": available, "capacity": capacity}
        )
        return available

    async def release_spot(self, trip_id: UUID) -> int:
        """
        Return one seat to a trip, never exceeding its capacity.

        Returns:
            Available spots after the release

        Raises:
            NotFoundError: If trip not found
        """
        stmt = (
            update(Trip)
            .where(Trip.id == trip_id, Trip.available_spots < Trip.capacity)
            .values(available_spots=Trip.available_spots + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        spots = await self._current_spots(trip_id)
        if spots is None:
            raise NotFoundError(resource_type="trip", resource_id=str(trip_id))

        available, capacity = spots
        if result.rowcount == 0:
            logger.warning(
                "Spot release clamped at capacity",
                extra={"trip_id": str(trip_id), "capacity": capacity}
            )
        else:
            logger.debug(
                "Spot released",
                extra={"trip_id": str(trip_id), "available_spots": available, "capacity": capacity}
            )

        metrics_collector.set_available_spots(str(trip_id), available)
        return available

    async def adjust_capacity(self, trip_id: UUID, delta: int, reason: str, actor: str) -> CapacityAdjustment:
        """
        Explicitly grow or shrink a trip's capacity.

        Growth adds seats to both ``capacity`` and ``available_spots``. A
        reduction may only remove seats that are currently unreserved.

        Args:
            trip_id: Trip to adjust
            delta: Seats to add (positive) or remove (negative)
            reason: Why the capacity changed
            actor: Who changed it

        Returns:
            Created capacity adjustment record

        Raises:
            ValidationError: If delta is zero
            NotFoundError: If trip not found
            CapacityConflictError: If the reduction exceeds the unreserved seats
        """
        if delta == 0:
            raise ValidationError(
                detail="Capacity adjustment delta must not be zero",
                errors={"delta": delta}
            )

        trip = await self.trip_service.get_trip_with_lock(trip_id)
        capacity_before = trip.capacity
        available_before = trip.available_spots

        stmt = (
            update(Trip)
            .where(Trip.id == trip_id, Trip.available_spots + delta >= 0)
            .values(
                capacity=Trip.capacity + delta,
                available_spots=Trip.available_spots + delta,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            logger.warning(
                "Capacity adjustment conflicts with reserved seats",
                extra={
                    "trip_id": str(trip_id),
                    "requested_delta": delta,
                    "available_spots": available_before,
                    "actor": actor
                }
            )
            raise CapacityConflictError(
                trip_id=str(trip_id),
                requested_delta=delta,
                available_spots=available_before,
                capacity=capacity_before
            )

        adjustment = CapacityAdjustment(
            trip_id=trip_id,
            delta=delta,
            reason=reason,
            actor=actor,
            capacity_before=capacity_before,
            capacity_after=capacity_before + delta,
            available_before=available_before,
            available_after=available_before + delta,
        )
        self.db.add(adjustment)

        await self.db.commit()
        await self.db.refresh(adjustment)
        metrics_collector.set_available_spots(str(trip_id), adjustment.available_after)

        logger.info(
            "Capacity adjustment completed successfully",
            extra={
                "adjustment_id": str(adjustment.id),
                "trip_id": str(trip_id),
                "delta": delta,
                "reason": reason,
                "actor": actor,
                "capacity_before": f"{available_before}/{capacity_before}",
                "capacity_after": f"{adjustment.available_after}/{adjustment.capacity_after}"
            }
        )

        return adjustment

    async def get_adjustments_for_trip(self, trip_id: UUID) -> list[CapacityAdjustment]:
        """Get all capacity adjustments for a trip, newest first."""
        stmt = (
            select(CapacityAdjustment)
            .where(CapacityAdjustment.trip_id == trip_id)
            .order_by(CapacityAdjustment.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())
