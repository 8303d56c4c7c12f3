"""Statistics Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from .common import MoneyAmount


class GetStatisticsRequest(BaseModel):
    organization_id: UUID = Field(..., description="Organization to summarize")


class TripStatistics(BaseModel):
    """Organization-wide trip and registration rollup."""

    total_trips: int = Field(..., ge=0)
    active_trips: int = Field(..., ge=0, description="Trips that are open, closed or full")
    upcoming_trips: int = Field(..., ge=0, description="Trips starting after today and not cancelled")
    completed_trips: int = Field(..., ge=0)
    total_registrations: int = Field(..., ge=0)
    confirmed_registrations: int = Field(..., ge=0)
    total_revenue: MoneyAmount
    collected_revenue: MoneyAmount
    pending_revenue: MoneyAmount
