"""Capacity adjustment model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .trip import Trip


class CapacityAdjustment(Base):
    """Audit record of an explicit change to a trip's seat capacity."""

    __tablename__ = "capacity_adjustments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Adjustment details
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)

    # Previous and new values
    capacity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    available_before: Mapped[int] = mapped_column(Integer, nullable=False)
    available_after: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("delta != 0", name="ck_capacity_adjustment_delta_nonzero"),
        CheckConstraint("length(reason) > 0", name="ck_capacity_adjustment_reason_not_empty"),
        CheckConstraint("length(actor) > 0", name="ck_capacity_adjustment_actor_not_empty"),
        CheckConstraint("available_after >= 0", name="ck_capacity_adjustment_available_after_non_negative"),
        CheckConstraint("available_after <= capacity_after", name="ck_capacity_adjustment_available_lte_capacity"),
        CheckConstraint(
            "capacity_after = capacity_before + delta",
            name="ck_capacity_adjustment_delta_consistency"
        ),
    )

    trip: Mapped["Trip"] = relationship("Trip", back_populates="capacity_adjustments")

    def __repr__(self) -> str:
        return (
            f"<CapacityAdjustment(id={self.id}, trip_id={self.trip_id}, "
            f"delta={self.delta}, actor='{self.actor}')>"
        )
