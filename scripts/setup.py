#!/usr/bin/env python3
"""Setup script for the trip registration API."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import UUID

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select
from trip_engine.core.database import async_session_factory, close_db
from trip_engine.models import Member, Trip
from trip_engine.models.trip import TripStatus
from trip_engine.schemas.trip import CreateTripRequest
from trip_engine.services.trip_service import TripService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_ORGANIZATION_ID = UUID("00000000-0000-4000-8000-000000000001")


def setup_database():
    """Bring the schema up to the latest migration."""
    logger.info("Setting up database...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a demo organization's members and trips."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = await db.scalar(
            select(func.count(Trip.id)).where(Trip.organization_id == DEMO_ORGANIZATION_ID)
        )
        if existing:
            logger.info("Sample data already exists, skipping...")
            return

        try:
            for first_name, last_name in [("Amina", "Yusuf"), ("Omar", "Haddad"), ("Layla", "Rahman")]:
                db.add(Member(
                    organization_id=DEMO_ORGANIZATION_ID,
                    first_name=first_name,
                    last_name=last_name,
                    email=f"{first_name.lower()}@example.org",
                ))
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample members: {e}")
            raise

        trip_service = TripService(db)
        base_date = date.today() + timedelta(days=60)
        for i, code in enumerate(["UMR", "ZYR"]):
            await trip_service.create_trip(CreateTripRequest(
                organization_id=DEMO_ORGANIZATION_ID,
                name=f"Spring Program {code}",
                code=code,
                start_date=base_date + timedelta(days=i * 30),
                end_date=base_date + timedelta(days=i * 30 + 14),
                capacity=40,
                price=Decimal("2500.00"),
                deposit_amount=Decimal("500.00"),
                status=TripStatus.OPEN,
            ))

    logger.info("Sample data created successfully!")


async def main():
    """Main setup function."""
    logger.info("Starting trip registration API setup...")

    # Alembic's async env runs its own event loop
    await asyncio.to_thread(setup_database)

    await create_sample_data()
    await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn trip_engine.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
