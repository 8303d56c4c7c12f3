"""Statistics router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..schemas.statistics import GetStatisticsRequest, TripStatistics
from ..services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/statistics", tags=["statistics"])


@router.post("/get", response_model=TripStatistics)
async def get_statistics(
    request: GetStatisticsRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Trip counts and revenue totals for an organization.

    Read-only; takes no locks.
    """
    statistics = await StatisticsService(db).get_statistics(request.organization_id)
    return JSONResponse(status_code=200, content=statistics.model_dump(mode="json"))
