"""Trip-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.trip import TripStatus, TripType
from .common import MoneyAmount, PaginatedResponse


class CreateTripRequest(BaseModel):
    """Request schema for creating a trip."""

    organization_id: UUID = Field(..., description="Owning organization")
    name: str = Field(..., min_length=1, max_length=255, description="Trip name")
    code: str | None = Field(None, max_length=20, description="Short trip code used as registration number prefix")
    description: str | None = Field(None, description="Trip description")
    trip_type: TripType = Field(TripType.UMRAH, description="Kind of program")
    destination: str | None = Field(None, max_length=255, description="Destination")
    start_date: date = Field(..., description="First day of the trip")
    end_date: date = Field(..., description="Last day of the trip")
    registration_deadline: date | None = Field(None, description="Last day registrations are accepted")
    capacity: int = Field(..., ge=0, le=10000, description="Total seats")
    waitlist_capacity: int | None = Field(None, ge=0, description="Waitlist size (defaults from settings)")
    price: MoneyAmount = Field(..., ge=0, description="Price per registration")
    deposit_amount: MoneyAmount = Field(0, ge=0, description="Deposit required to hold a registration")
    currency: str | None = Field(None, pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code")
    status: TripStatus = Field(TripStatus.DRAFT, description="Initial status")
    notes: str | None = Field(None, description="Internal notes")


class SearchTripsRequest(BaseModel):
    """Request schema for searching trips."""

    organization_id: UUID = Field(..., description="Organization to search")
    search: str | None = Field(None, description="Match against name, code or destination")
    trip_type: TripType | None = Field(None, description="Filter by trip type")
    status: TripStatus | None = Field(None, description="Filter by status")
    destination: str | None = Field(None, description="Filter by destination")
    start_date_from: date | None = Field(None, description="Earliest start date")
    start_date_to: date | None = Field(None, description="Latest start date")
    has_availability: bool = Field(False, description="Only show trips with available spots")
    price_min: MoneyAmount | None = Field(None, ge=0, description="Minimum price")
    price_max: MoneyAmount | None = Field(None, ge=0, description="Maximum price")
    cursor: str | None = Field(None, description="Pagination cursor")
    limit: int = Field(20, ge=1, le=100, description="Results per page")


class GetTripRequest(BaseModel):
    """Request schema for fetching one trip."""

    trip_id: UUID = Field(..., description="Trip to retrieve")


class OrganizationTripsRequest(BaseModel):
    organization_id: UUID = Field(..., description="Organization whose trips are listed")


class UpdateTripRequest(BaseModel):
    """
    Request schema for editing trip details.

    Only fields present in the body change. Seat counts are not editable
    here; capacity goes through the capacity adjustment endpoint and status
    through the status endpoint.
    """

    model_config = ConfigDict(extra="forbid")

    trip_id: UUID = Field(..., description="Trip to update")
    name: str | None = Field(None, min_length=1, max_length=255)
    code: str | None = Field(None, max_length=20)
    description: str | None = None
    trip_type: TripType | None = None
    destination: str | None = Field(None, max_length=255)
    start_date: date | None = None
    end_date: date | None = None
    registration_deadline: date | None = None
    price: MoneyAmount | None = Field(None, ge=0)
    deposit_amount: MoneyAmount | None = Field(None, ge=0)
    currency: str | None = Field(None, pattern=r"^[A-Z]{3}$")
    waitlist_capacity: int | None = Field(None, ge=0)
    notes: str | None = None


class UpdateTripStatusRequest(BaseModel):
    trip_id: UUID = Field(..., description="Trip to update")
    status: TripStatus = Field(..., description="New status")


class Trip(BaseModel):
    """Trip response schema."""

    id: UUID
    organization_id: UUID
    name: str
    code: str | None
    description: str | None
    trip_type: TripType
    destination: str | None
    start_date: date
    end_date: date
    registration_deadline: date | None
    capacity: int = Field(..., ge=0)
    available_spots: int = Field(..., ge=0)
    waitlist_capacity: int
    price: MoneyAmount
    deposit_amount: MoneyAmount
    currency: str
    status: TripStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime


class SearchTripsResponse(PaginatedResponse):
    """Response schema for trip search."""

    items: list[Trip] = Field(..., description="Found trips")
