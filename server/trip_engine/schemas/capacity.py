"""Capacity adjustment Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class AdjustCapacityRequest(BaseModel):
    """Request schema for an explicit capacity change."""

    trip_id: UUID = Field(..., description="Trip whose capacity changes")
    delta: int = Field(..., ge=-1000, le=1000, description="Seats to add (positive) or remove (negative)")
    reason: str = Field(..., min_length=1, max_length=500, description="Reason for the adjustment")


class CapacityAdjustment(BaseModel):
    """Capacity adjustment response schema."""

    id: UUID
    trip_id: UUID
    delta: int
    reason: str
    actor: str
    capacity_before: int
    capacity_after: int
    available_before: int
    available_after: int
    created_at: datetime
