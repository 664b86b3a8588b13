from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session as get_session
from app.schemas.patterns import PatternInsightsResponse
from app.services.patterns.pattern_service import PatternService

router = APIRouter()


async def get_pattern_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> PatternService:
    return PatternService(db_session)


@router.get(
    "/{report_id}",
    response_model=PatternInsightsResponse,
    response_model_exclude_none=True,
    summary="Pattern insights for a report",
    operation_id="get_report_patterns",
)
async def get_report_patterns(
    report_id: UUID,
    pattern_service: Annotated[PatternService, Depends(get_pattern_service)],
) -> PatternInsightsResponse:
    """
    Correlations, geographic clusters, temporal patterns, co-occurrence,
    value distributions, attribute-similar reports and confidence stats.

    Reports without attributes return hasPatterns=false.
    """
    return await pattern_service.insights_for(report_id)
