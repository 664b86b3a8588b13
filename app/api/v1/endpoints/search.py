from datetime import date
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_embedding_service
from app.core.config import settings
from app.core.database import get_async_session as get_session
from app.core.exceptions import ValidationError
from app.schemas.search import SearchFilters, SearchResponse
from app.services.retrieval.embedding_service import EmbeddingService
from app.services.retrieval.search_service import SearchService

router = APIRouter()


async def get_search_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    embedding_service: Annotated[EmbeddingService, Depends(get_embedding_service)],
) -> SearchService:
    return SearchService(db_session, embedding_service)


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@router.get(
    "",
    response_model=SearchResponse,
    summary="Hybrid report search",
    operation_id="search_reports",
)
async def search_reports(
    search_service: Annotated[SearchService, Depends(get_search_service)],
    q: Annotated[Optional[str], Query(max_length=500)] = None,
    category: Optional[str] = None,
    categories: Annotated[Optional[str], Query(description="Comma-separated")] = None,
    tags: Annotated[Optional[str], Query(description="Comma-separated")] = None,
    exclude_tags: Annotated[Optional[str], Query(alias="excludeTags")] = None,
    location: Optional[str] = None,
    date_from: Annotated[Optional[date], Query(alias="dateFrom")] = None,
    date_to: Annotated[Optional[date], Query(alias="dateTo")] = None,
    witnesses_only: Annotated[bool, Query(alias="witnessesOnly")] = False,
    limit: Annotated[Optional[int], Query(ge=1)] = None,
) -> SearchResponse:
    """
    Search reports. The query's intent decides how semantic and lexical
    rankings are blended; an empty query returns the most recent reports.
    """
    if date_from and date_to and date_from > date_to:
        raise ValidationError("dateFrom must not be after dateTo")

    category_list = _split(categories)
    if category and category not in category_list:
        category_list.insert(0, category)

    filters = SearchFilters(
        categories=category_list,
        tags=_split(tags),
        exclude_tags=_split(exclude_tags),
        location=location.strip() if location and location.strip() else None,
        date_from=date_from,
        date_to=date_to,
        witnesses_only=witnesses_only,
        limit=min(limit or settings.retrieval.default_limit, settings.retrieval.max_limit),
    )
    return await search_service.search(q, filters)
