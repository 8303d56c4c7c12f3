"""Registration and payment ledger model definitions."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .member import Member
    from .trip import Trip


class RegistrationStatus(str, Enum):
    """Registration status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    PARTIAL = "partial"
    PAID = "paid"


class VisaStatus(str, Enum):
    """Visa processing status enumeration."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


class RoomType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    QUAD = "quad"
    FAMILY = "family"


# Statuses whose registrations occupy a reserved seat on the trip
SEAT_HOLDING_STATUSES = (RegistrationStatus.PENDING.value, RegistrationStatus.CONFIRMED.value)


class Registration(Base):
    """Registration entity: one member's booking against one trip."""

    __tablename__ = "registrations"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    trip_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("trips.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    member_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    registration_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    registration_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)

    # Status fields
    status: Mapped[RegistrationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RegistrationStatus.PENDING,
        index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True
    )

    # Financial
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    deposit_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    balance_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Travel details
    room_type: Mapped[RoomType | None] = mapped_column(String(20), nullable=True)
    passport_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Visa tracking
    visa_status: Mapped[VisaStatus] = mapped_column(
        String(20),
        nullable=False,
        default=VisaStatus.NOT_STARTED
    )
    visa_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    visa_issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    visa_expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    visa_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Cancellation; written once when the registration is cancelled
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    refund_date: Mapped[date | None] = mapped_column(Date, nullable=True)

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
        UniqueConstraint("trip_id", "registration_number", name="uq_registration_trip_number"),
        CheckConstraint("total_amount >= 0", name="ck_registration_total_non_negative"),
        CheckConstraint("amount_paid >= 0", name="ck_registration_amount_paid_non_negative"),
        CheckConstraint("deposit_paid >= 0", name="ck_registration_deposit_paid_non_negative"),
        CheckConstraint("balance_due >= 0", name="ck_registration_balance_non_negative"),
        CheckConstraint("refund_amount IS NULL OR refund_amount >= 0", name="ck_registration_refund_non_negative"),
        CheckConstraint("length(registration_number) > 0", name="ck_registration_number_not_empty"),
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="registrations")
    member: Mapped["Member"] = relationship("Member")
    payments: Mapped[list["RegistrationPayment"]] = relationship(
        "RegistrationPayment",
        back_populates="registration",
        cascade="all, delete-orphan",
        order_by="RegistrationPayment.created_at"
    )

    @property
    def holds_seat(self) -> bool:
        return self.status in SEAT_HOLDING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id}, number='{self.registration_number}', "
            f"status={self.status}, payment_status={self.payment_status})>"
        )


class RegistrationPayment(Base):
    """Payment ledger row; one per recorded payment."""

    __tablename__ = "registration_payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    registration_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("registrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Running totals for the audit trail; after = before + amount is kept by the writer
    amount_paid_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_paid_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_status_after: Mapped[PaymentStatus] = mapped_column(String(20), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_registration_payment_amount_positive"),
        CheckConstraint("length(method) > 0", name="ck_registration_payment_method_not_empty"),
    )

    registration: Mapped["Registration"] = relationship("Registration", back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<RegistrationPayment(id={self.id}, registration_id={self.registration_id}, "
            f"amount={self.amount}, method='{self.method}')>"
        )
