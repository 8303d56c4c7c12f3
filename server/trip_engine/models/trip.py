"""Trip model definition."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .capacity import CapacityAdjustment
    from .registration import Registration


class TripStatus(str, Enum):
    """Trip lifecycle status."""
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"
    FULL = "full"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TripType(str, Enum):
    UMRAH = "umrah"
    HAJJ = "hajj"
    ZIYARAT = "ziyarat"
    EDUCATIONAL = "educational"
    OTHER = "other"


class Trip(Base):
    """Trip entity: one bookable group-travel program with a fixed seat capacity."""

    __tablename__ = "trips"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trip_type: Mapped[TripType] = mapped_column(String(20), nullable=False, default=TripType.UMRAH)
    destination: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    registration_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Capacity; available_spots is only written by the capacity service
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    waitlist_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    status: Mapped[TripStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TripStatus.DRAFT,
        index=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_trip_capacity_non_negative"),
        CheckConstraint("available_spots >= 0", name="ck_trip_available_spots_non_negative"),
        CheckConstraint("available_spots <= capacity", name="ck_trip_available_spots_lte_capacity"),
        CheckConstraint("waitlist_capacity >= 0", name="ck_trip_waitlist_capacity_non_negative"),
        CheckConstraint("price >= 0", name="ck_trip_price_non_negative"),
        CheckConstraint("deposit_amount >= 0", name="ck_trip_deposit_non_negative"),
        CheckConstraint("deposit_amount <= price", name="ck_trip_deposit_lte_price"),
        CheckConstraint("start_date <= end_date", name="ck_trip_dates_ordered"),
        CheckConstraint("length(currency) = 3", name="ck_trip_currency_length"),
        Index("ix_trips_organization_start_date", "organization_id", "start_date"),
    )

    # Relationships
    registrations: Mapped[list["Registration"]] = relationship(
        "Registration",
        back_populates="trip",
    )
    capacity_adjustments: Mapped[list["CapacityAdjustment"]] = relationship(
        "CapacityAdjustment",
        back_populates="trip",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id}, code={self.code!r}, status={self.status}, "
            f"spots={self.available_spots}/{self.capacity})>"
        )
