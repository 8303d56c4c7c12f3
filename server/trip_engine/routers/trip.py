"""Trip router for trip catalogue operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.trip import (
    CreateTripRequest,
    GetTripRequest,
    OrganizationTripsRequest,
    SearchTripsRequest,
    SearchTripsResponse,
    Trip,
    UpdateTripRequest,
    UpdateTripStatusRequest,
)
from ..services.trip_service import TripService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/trip", tags=["trip"])

DB_DEPENDENCY = Depends(get_db)


def convert_trip_to_schema(trip_model) -> Trip:
    """Convert trip model to schema."""
    return Trip(
        id=trip_model.id,
        organization_id=trip_model.organization_id,
        name=trip_model.name,
        code=trip_model.code,
        description=trip_model.description,
        trip_type=trip_model.trip_type,
        destination=trip_model.destination,
        start_date=trip_model.start_date,
        end_date=trip_model.end_date,
        registration_deadline=trip_model.registration_deadline,
        capacity=trip_model.capacity,
        available_spots=trip_model.available_spots,
        waitlist_capacity=trip_model.waitlist_capacity,
        price=trip_model.price,
        deposit_amount=trip_model.deposit_amount,
        currency=trip_model.currency,
        status=trip_model.status,
        notes=trip_model.notes,
        created_at=trip_model.created_at,
        updated_at=trip_model.updated_at,
    )


def _trip_list(trips) -> JSONResponse:
    response_data = SearchTripsResponse(items=[convert_trip_to_schema(t) for t in trips])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/create", response_model=Trip, status_code=201)
async def create_trip(
    request: CreateTripRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Create a new trip.

    Every seat starts out available.
    """
    trip_service = TripService(db)

    try:
        trip = await trip_service.create_trip(request)
        response_data = convert_trip_to_schema(trip)
        return JSONResponse(status_code=201, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip creation",
            extra={"organization_id": str(request.organization_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e


@router.post("/search", response_model=SearchTripsResponse)
async def search_trips(
    request: SearchTripsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Search trips with filters and cursor pagination."""
    trip_service = TripService(db)

    try:
        trips, next_cursor = await trip_service.search_trips(request)
        response_data = SearchTripsResponse(
            items=[convert_trip_to_schema(trip) for trip in trips],
            next_cursor=next_cursor
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip search",
            extra={"organization_id": str(request.organization_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e


@router.post("/get", response_model=Trip)
async def get_trip(
    request: GetTripRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get trip details."""
    trip_service = TripService(db)

    try:
        trip = await trip_service.get_trip_by_id_or_raise(request.trip_id)
        return JSONResponse(status_code=200, content=convert_trip_to_schema(trip).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip retrieval",
            extra={"trip_id": str(request.trip_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e


@router.post("/update", response_model=Trip)
async def update_trip(
    request: UpdateTripRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Edit trip details.

    Capacity and available spots cannot be set here; use /v1/capacity/adjust.
    """
    trip_service = TripService(db)

    try:
        trip = await trip_service.update_trip(request)
        return JSONResponse(status_code=200, content=convert_trip_to_schema(trip).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip update",
            extra={"trip_id": str(request.trip_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e


@router.post("/status", response_model=Trip)
async def update_trip_status(
    request: UpdateTripStatusRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Change a trip's lifecycle status."""
    trip_service = TripService(db)

    try:
        trip = await trip_service.update_trip_status(request.trip_id, request.status)
        return JSONResponse(status_code=200, content=convert_trip_to_schema(trip).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in trip status update",
            extra={"trip_id": str(request.trip_id), "status": request.status.value, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e


@router.post("/upcoming", response_model=SearchTripsResponse)
async def upcoming_trips(
    request: OrganizationTripsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Trips that are open or full and have not started yet."""
    trips = await TripService(db).get_upcoming_trips(request.organization_id)
    return _trip_list(trips)


@router.post("/in-progress", response_model=SearchTripsResponse)
async def trips_in_progress(
    request: OrganizationTripsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    trips = await TripService(db).get_trips_in_progress(request.organization_id)
    return _trip_list(trips)
