from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session as get_session
from app.schemas.similarity import SimilarReportsResponse
from app.services.similarity.similarity_service import SimilarityService

router = APIRouter()


async def get_similarity_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> SimilarityService:
    return SimilarityService(db_session)


@router.get(
    "/{report_id}",
    response_model=SimilarReportsResponse,
    summary="Find similar reports",
    operation_id="get_similar_reports",
)
async def get_similar_reports(
    report_id: UUID,
    similarity_service: Annotated[SimilarityService, Depends(get_similarity_service)],
    limit: Annotated[Optional[int], Query(ge=1, le=50)] = None,
) -> SimilarReportsResponse:
    """
    Rank public reports of the same category by hybrid similarity.

    hybridScore = round(tagLocationScore * 0.6 + attributeScore * 0.4)
    """
    return await similarity_service.similar_reports(report_id, limit=limit)
