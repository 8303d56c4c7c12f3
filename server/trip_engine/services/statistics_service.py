"""Read-only trip and registration rollups."""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.registration import Registration, RegistrationStatus
from ..models.trip import Trip, TripStatus
from ..schemas.statistics import TripStatistics

logger = logging.getLogger(__name__)

ACTIVE_TRIP_STATUSES = (TripStatus.OPEN.value, TripStatus.CLOSED.value, TripStatus.FULL.value)


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


class StatisticsService:
    """Aggregates an organization's trips and registrations; never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_statistics(self, organization_id: UUID, today: date | None = None) -> TripStatistics:
        """
        Compute trip counts and revenue totals for an organization.

        Empty organizations yield zeros everywhere.

        Args:
            organization_id: Organization to summarize
            today: Reference date for "upcoming"

        Returns:
            Aggregated statistics
        """
        today = today or date.today()

        trip_stmt = select(
            func.count(Trip.id).label("total"),
            _count_where(Trip.status.in_(ACTIVE_TRIP_STATUSES)).label("active"),
            _count_where(
                (Trip.start_date > today) & (Trip.status != TripStatus.CANCELLED.value)
            ).label("upcoming"),
            _count_where(Trip.status == TripStatus.COMPLETED.value).label("completed"),
        ).where(Trip.organization_id == organization_id)

        registration_stmt = select(
            func.count(Registration.id).label("total"),
            _count_where(Registration.status == RegistrationStatus.CONFIRMED.value).label("confirmed"),
            func.sum(Registration.total_amount).label("total_revenue"),
            func.sum(Registration.amount_paid).label("collected_revenue"),
            func.sum(Registration.balance_due).label("pending_revenue"),
        ).where(Registration.organization_id == organization_id)

        trips = (await self.db.execute(trip_stmt)).one()
        registrations = (await self.db.execute(registration_stmt)).one()

        statistics = TripStatistics(
            total_trips=trips.total or 0,
            active_trips=trips.active,
            upcoming_trips=trips.upcoming,
            completed_trips=trips.completed,
            total_registrations=registrations.total or 0,
            confirmed_registrations=registrations.confirmed,
            total_revenue=_money(registrations.total_revenue),
            collected_revenue=_money(registrations.collected_revenue),
            pending_revenue=_money(registrations.pending_revenue),
        )

        logger.info(
            "Statistics computed",
            extra={
                "organization_id": str(organization_id),
                "total_trips": statistics.total_trips,
                "total_registrations": statistics.total_registrations
            }
        )
        return statistics
