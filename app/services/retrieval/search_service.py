"""Search orchestration: intent, retrieval, filters, metadata, analytics."""

import time
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import DatabaseError
from app.database.models import Report
from app.repositories.report_repository import ReportRepository
from app.schemas.search import SearchFilters, SearchMetadata, SearchResponse, SearchResultItem
from app.services.retrieval.embedding_service import EmbeddingService
from app.services.retrieval.hybrid_retriever import HybridRetriever
from app.services.retrieval.intent_classifier import IntentClassifier
from app.services.retrieval.result_filters import apply_filters
from app.services.retrieval.search_analytics import SearchAnalyticsRecorder
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SearchService:
    """Entry point for report search."""

    def __init__(
        self,
        session: AsyncSession,
        embedding_service: EmbeddingService,
        classifier: Optional[IntentClassifier] = None,
        analytics: Optional[SearchAnalyticsRecorder] = None,
    ):
        self.report_repo = ReportRepository(session)
        self.classifier = classifier or IntentClassifier()
        self.retriever = HybridRetriever(self.report_repo, embedding_service)
        self.analytics = analytics or SearchAnalyticsRecorder()

    async def search(self, query: Optional[str], filters: SearchFilters) -> SearchResponse:
        started = time.perf_counter()
        query_text = (query or "").strip()

        if not query_text:
            return await self._recent(filters, started)

        intent = self.classifier.classify(query_text)
        retrieval = await self.retriever.retrieve(query_text, intent, filters)

        metadata = SearchMetadata(
            query=query_text,
            intent=intent,
            result_count=len(retrieval.results),
            execution_time=self._elapsed_ms(started),
            search_type=retrieval.search_type,
            embedding_used=retrieval.embedding_used,
        )
        self.analytics.record_in_background(metadata)

        return SearchResponse(results=self._to_items(retrieval.results), metadata=metadata)

    async def _recent(self, filters: SearchFilters, started: float) -> SearchResponse:
        """Newest public reports; no classification and no retrieval."""
        limit = min(filters.limit, settings.retrieval.max_limit)
        try:
            reports = await self.report_repo.get_recent(
                max(limit, settings.retrieval.recent_limit) * settings.retrieval.overfetch_factor
            )
        except SQLAlchemyError as e:
            LOGGER.error("Recent reports query failed", exc_info=True)
            raise DatabaseError("Search is temporarily unavailable", e) from e

        results = apply_filters([(report, 0.0) for report in reports], filters, limit=limit)
        metadata = SearchMetadata(
            query="",
            intent=self.classifier.default_intent(),
            result_count=len(results),
            execution_time=self._elapsed_ms(started),
            search_type="recent",
            embedding_used=False,
        )
        return SearchResponse(results=self._to_items(results), metadata=metadata)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

    @staticmethod
    def _to_items(results: List[Tuple[Report, float]]) -> List[SearchResultItem]:
        return [
            SearchResultItem(
                id=report.id,
                title=report.title,
                category=report.category,
                story_text=report.body,
                tags=list(report.tags or []),
                location_text=report.location_text,
                location_lat=report.location_lat,
                location_lng=report.location_lng,
                occurred_at=report.occurred_at,
                witness_count=report.witness_count or 0,
                user_id=report.user_id,
                created_at=report.created_at,
                combined_score=score,
            )
            for report, score in results
        ]
