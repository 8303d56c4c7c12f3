"""Registration-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.registration import PaymentStatus, RegistrationStatus, RoomType, VisaStatus
from ..models.trip import TripStatus
from .common import MoneyAmount


class CreateRegistrationRequest(BaseModel):
    """Request schema for registering a member on a trip."""

    organization_id: UUID = Field(..., description="Owning organization")
    trip_id: UUID = Field(..., description="Trip to register for")
    member_id: UUID = Field(..., description="Member being registered")
    room_type: RoomType | None = Field(None, description="Room preference")
    total_amount_override: MoneyAmount | None = Field(
        None, ge=0, description="Amount owed; defaults to the trip price"
    )
    passport_number: str | None = Field(None, max_length=50)
    special_requests: str | None = Field(None)
    notes: str | None = Field(None)


class RecordPaymentRequest(BaseModel):
    """Request schema for recording a payment against a registration."""

    registration_id: UUID = Field(..., description="Registration being paid")
    amount: MoneyAmount = Field(..., description="Payment amount; must be positive")
    method: str = Field(..., min_length=1, max_length=50, description="Payment method (cash, card, transfer, ...)")
    reference_number: str | None = Field(None, max_length=100)
    notes: str | None = Field(None)


class UpdateVisaStatusRequest(BaseModel):
    """Request schema for updating visa tracking fields."""

    registration_id: UUID = Field(..., description="Registration to update")
    visa_status: VisaStatus = Field(..., description="New visa status")
    visa_number: str | None = Field(None, max_length=100)
    visa_issue_date: date | None = Field(None)
    visa_expiry_date: date | None = Field(None)
    visa_notes: str | None = Field(None)


class UpdateRegistrationRequest(BaseModel):
    """
    Request schema for editing a registration's travel details.

    Status, money and visa fields have their own operations and are
    rejected here.
    """

    model_config = ConfigDict(extra="forbid")

    registration_id: UUID = Field(..., description="Registration to update")
    room_type: RoomType | None = None
    passport_number: str | None = Field(None, max_length=50)
    special_requests: str | None = None
    notes: str | None = None


class CancelRegistrationRequest(BaseModel):
    """Request schema for cancelling a registration."""

    registration_id: UUID = Field(..., description="Registration to cancel")
    reason: str = Field(..., min_length=1, max_length=1000, description="Cancellation reason")
    refund_amount: MoneyAmount | None = Field(None, ge=0, description="Amount refunded, if any")


class GetRegistrationRequest(BaseModel):
    registration_id: UUID = Field(..., description="Registration to retrieve")


class ListRegistrationsRequest(BaseModel):
    """Request schema for listing a trip's registrations."""

    trip_id: UUID = Field(..., description="Trip whose registrations are listed")
    status: RegistrationStatus | None = None
    payment_status: PaymentStatus | None = None
    visa_status: VisaStatus | None = None
    room_type: RoomType | None = None
    has_balance: bool | None = Field(None, description="Only registrations with (or without) a balance due")
    search: str | None = Field(None, description="Match registration number or passport number")


class ListOrganizationRegistrationsRequest(BaseModel):
    """Request schema for listing every registration of an organization."""

    organization_id: UUID = Field(..., description="Organization whose registrations are listed")
    trip_id: UUID | None = Field(None, description="Only registrations on this trip")
    member_id: UUID | None = Field(None, description="Only registrations of this member")
    status: list[RegistrationStatus] | None = Field(None, description="Only registrations in these statuses")


class ListMemberRegistrationsRequest(BaseModel):
    member_id: UUID = Field(..., description="Member whose registrations are listed")


class TripSummary(BaseModel):
    """Trip fields embedded in a registration response."""

    id: UUID
    name: str
    code: str | None
    start_date: date
    end_date: date
    status: TripStatus


class MemberSummary(BaseModel):
    """Member fields embedded in a registration response."""

    id: UUID
    first_name: str
    last_name: str
    email: str | None


class Registration(BaseModel):
    """Registration response schema."""

    id: UUID
    organization_id: UUID
    trip_id: UUID
    member_id: UUID
    registration_number: str
    registration_date: date
    status: RegistrationStatus
    payment_status: PaymentStatus
    total_amount: MoneyAmount
    amount_paid: MoneyAmount
    deposit_paid: MoneyAmount
    balance_due: MoneyAmount
    currency: str
    room_type: RoomType | None
    passport_number: str | None
    special_requests: str | None
    notes: str | None
    visa_status: VisaStatus
    visa_number: str | None
    visa_issue_date: date | None
    visa_expiry_date: date | None
    visa_notes: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    refund_amount: MoneyAmount | None
    refund_date: date | None
    created_at: datetime
    updated_at: datetime
    trip: TripSummary | None = None
    member: MemberSummary | None = None


class RegistrationList(BaseModel):
    items: list[Registration] = Field(..., description="Matching registrations")
