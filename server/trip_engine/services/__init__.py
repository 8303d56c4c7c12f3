"""Service layer package."""

from .capacity_service import CapacityService
from .idempotency_service import IdempotencyService
from .member_service import MemberService
from .registration_service import RegistrationService
from .sequence_service import SequenceService
from .statistics_service import StatisticsService
from .trip_service import TripService

__all__ = [
    "CapacityService",
    "IdempotencyService",
    "MemberService",
    "RegistrationService",
    "SequenceService",
    "StatisticsService",
    "TripService",
]
