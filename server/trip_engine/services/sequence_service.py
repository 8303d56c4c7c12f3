"""Registration number generation."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.registration import Registration

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 4


def registration_prefix(trip_code: str | None) -> str:
    """Prefix for a trip's registration numbers: its code, or the configured default."""
    return trip_code or settings.registration_prefix


def year_suffix(today: date | None = None) -> str:
    return (today or date.today()).strftime("%y")


def format_registration_number(prefix: str, yy: str, sequence: int) -> str:
    return f"{prefix}-{yy}-{sequence:0{SEQUENCE_WIDTH}d}"


def next_sequence(latest_number: str | None) -> int:
    """
    Sequence that follows ``latest_number``.

    The trailing dash-separated group is parsed as an integer; an absent or
    unparseable number restarts the sequence at 1.
    """
    if not latest_number:
        return 1
    try:
        return int(latest_number.rsplit("-", 1)[-1]) + 1
    except ValueError:
        logger.warning(
            "Unparseable registration number, restarting sequence",
            extra={"registration_number": latest_number}
        )
        return 1


class SequenceService:
    """
    Generates ``{PREFIX}-{YY}-{NNNN}`` registration numbers scoped to a trip.

    The next number is derived from the greatest existing number for the
    trip's prefix and year. Callers must run this inside the same
    transaction that holds the trip lock and inserts the registration; the
    ``(trip_id, registration_number)`` unique constraint rejects any
    duplicate that slips through.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_latest_number(self, trip_id: UUID, prefix: str, yy: str) -> str | None:
        """
        Highest registration number for the trip, prefix and year.

        Longer numbers sort first so that sequences past the padding width
        still win over padded ones.
        """
        stmt = (
            select(Registration.registration_number)
            .where(
                Registration.trip_id == trip_id,
                Registration.registration_number.startswith(f"{prefix}-{yy}-", autoescape=True),
            )
            .order_by(func.length(Registration.registration_number).desc(), Registration.registration_number.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def generate_registration_number(
        self,
        trip_id: UUID,
        trip_code: str | None,
        today: date | None = None,
    ) -> str:
        """
        Produce the next registration number for a trip.

        Args:
            trip_id: Trip the registration belongs to
            trip_code: Trip code used as prefix (``REG`` when absent)
            today: Date that determines the two-digit year

        Returns:
            The next unused registration number
        """
        prefix = registration_prefix(trip_code)
        yy = year_suffix(today)

        latest = await self.get_latest_number(trip_id, prefix, yy)
        number = format_registration_number(prefix, yy, next_sequence(latest))

        logger.debug(
            "Generated registration number",
            extra={"trip_id": str(trip_id), "latest": latest, "registration_number": number}
        )
        return number
