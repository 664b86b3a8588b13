"""
Hybrid Retrieval

Blends semantic (pgvector) and lexical (full-text) rankings using the
weights from the query intent, degrading to lexical-only search when the
embedding or the hybrid query fails:

1. Embed the query (failure -> no embedding, logged)
2. Weighted RRF hybrid search, over-fetched
3. Zero rows or an error -> unweighted full-text fallback
4. Exact in-memory structured filters, then truncate to the limit
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import RetrievalSettings, settings
from app.core.exceptions import DatabaseError, UpstreamServiceError
from app.database.models import Report
from app.repositories.report_repository import ReportRepository
from app.schemas.search import RetrievalIntent, SearchFilters
from app.services.retrieval.embedding_service import EmbeddingService
from app.services.retrieval.result_filters import apply_filters
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class RetrievalResult:
    """Ranked reports plus how they were obtained."""

    results: List[Tuple[Report, float]]
    search_type: str
    embedding_used: bool
    candidate_count: int = 0


class HybridRetriever:
    """Intent-weighted hybrid retrieval with lexical fallback."""

    def __init__(
        self,
        report_repo: ReportRepository,
        embedding_service: EmbeddingService,
        retrieval_settings: Optional[RetrievalSettings] = None,
    ):
        self.report_repo = report_repo
        self.embedding_service = embedding_service
        self.config = retrieval_settings or settings.retrieval

    async def embed_query(self, query: str) -> Optional[List[float]]:
        """Embed the query, returning None when the embedding service fails."""
        try:
            return await self.embedding_service.embed(query)
        except UpstreamServiceError as e:
            LOGGER.warning(
                "Query embedding failed, continuing lexical-only",
                extra={"query": query[:100], "error": e.message},
            )
            return None

    async def retrieve(
        self,
        query: str,
        intent: RetrievalIntent,
        filters: SearchFilters,
    ) -> RetrievalResult:
        """Retrieve reports for a non-empty query.

        Raises:
            DatabaseError: If the lexical fallback also fails
        """
        limit = min(filters.limit, self.config.max_limit)
        fetch_limit = limit * self.config.overfetch_factor

        # The hybrid query needs the embedding, and one session cannot run
        # two statements concurrently, so these steps stay sequential.
        embedding = await self.embed_query(query)

        candidates: List[Tuple[Report, float]] = []
        search_type = "hybrid"
        try:
            candidates = await self.report_repo.hybrid_search(
                query_text=query,
                embedding=embedding,
                vector_weight=intent.vector_weight,
                fts_weight=intent.fts_weight,
                category=filters.category_filter,
                limit=fetch_limit,
                rrf_k=self.config.rrf_k,
            )
        except SQLAlchemyError as e:
            LOGGER.warning(
                "Hybrid search failed, falling back to full-text search",
                extra={"query": query[:100], "error": str(e)},
            )
            await self.report_repo.session.rollback()

        if not candidates:
            search_type = "lexical_fallback"
            LOGGER.info("Running lexical fallback search", extra={"query": query[:100]})
            try:
                candidates = await self.report_repo.full_text_search(query, fetch_limit)
            except SQLAlchemyError as e:
                LOGGER.error("Lexical fallback search failed", exc_info=True)
                raise DatabaseError("Search is temporarily unavailable", e) from e

        results = apply_filters(candidates, filters, limit=limit)

        LOGGER.info(
            "Retrieval completed",
            extra={
                "query": query[:100],
                "search_type": search_type,
                "embedding_used": embedding is not None,
                "candidates": len(candidates),
                "results": len(results),
            },
        )
        return RetrievalResult(
            results=results,
            search_type=search_type,
            embedding_used=embedding is not None and search_type == "hybrid",
            candidate_count=len(candidates),
        )
