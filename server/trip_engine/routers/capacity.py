"""Capacity router for explicit trip capacity adjustments."""

import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.capacity import AdjustCapacityRequest, CapacityAdjustment
from ..services.capacity_service import CapacityService
from ..services.idempotency_service import run_idempotent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/capacity", tags=["capacity"])

DB_DEPENDENCY = Depends(get_db)
IDEMPOTENCY_KEY_DEPENDENCY = Header(..., alias="Idempotency-Key")
# No authentication layer; the caller names itself
ACTOR_DEPENDENCY = Header("system", alias="X-Actor")


def _convert_adjustment_to_schema(adjustment_model) -> CapacityAdjustment:
    """Convert capacity adjustment model to schema."""
    return CapacityAdjustment(
        id=adjustment_model.id,
        trip_id=adjustment_model.trip_id,
        delta=adjustment_model.delta,
        reason=adjustment_model.reason,
        actor=adjustment_model.actor,
        capacity_before=adjustment_model.capacity_before,
        capacity_after=adjustment_model.capacity_after,
        available_before=adjustment_model.available_before,
        available_after=adjustment_model.available_after,
        created_at=adjustment_model.created_at,
    )


@router.post("/adjust", response_model=CapacityAdjustment)
async def adjust_capacity(
    request: AdjustCapacityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY,
    actor: str = ACTOR_DEPENDENCY
) -> JSONResponse:
    """
    Grow or shrink a trip's capacity.

    Reductions may only remove unreserved seats. This operation is
    idempotent based on the Idempotency-Key header.
    """
    capacity_service = CapacityService(db)

    async def operation() -> CapacityAdjustment:
        adjustment = await capacity_service.adjust_capacity(
            request.trip_id, request.delta, request.reason, actor
        )
        return _convert_adjustment_to_schema(adjustment)

    try:
        return await run_idempotent(db, idempotency_key, "capacity/adjust", request, operation)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in capacity adjustment",
            extra={
                "trip_id": str(request.trip_id),
                "delta": request.delta,
                "actor": actor,
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError() from e
