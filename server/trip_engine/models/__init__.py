"""Models module exporting all database models."""

from .capacity import CapacityAdjustment
from .idempotency import IdempotencyRecord
from .member import Member
from .registration import (
    PaymentStatus,
    Registration,
    RegistrationPayment,
    RegistrationStatus,
    RoomType,
    VisaStatus,
)
from .trip import Trip, TripStatus, TripType

__all__ = [
    # Core entities
    "Trip",
    "TripStatus",
    "TripType",
    "Member",

    # Registration entities
    "Registration",
    "RegistrationStatus",
    "PaymentStatus",
    "VisaStatus",
    "RoomType",
    "RegistrationPayment",

    # Capacity entity
    "CapacityAdjustment",

    # Idempotency entity
    "IdempotencyRecord",
]
