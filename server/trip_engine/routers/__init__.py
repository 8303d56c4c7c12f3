"""FastAPI routers package."""

from .capacity import router as capacity_router
from .health import router as health_router
from .metrics import router as metrics_router
from .registration import router as registration_router
from .statistics import router as statistics_router
from .trip import router as trip_router

__all__ = [
    "capacity_router",
    "health_router",
    "metrics_router",
    "registration_router",
    "statistics_router",
    "trip_router",
]
