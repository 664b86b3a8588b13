from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.database.models import ExtractedAttribute, Report
from app.repositories.base_repository import BaseRepository
from app.utils.rank_fusion import weighted_rrf

PUBLIC = "public"


class ReportRepository(BaseRepository[Report]):
    """Repository for narrative reports with hybrid search capabilities.

    Provides:
    1. Semantic ranking (pgvector cosine distance)
    2. Lexical ranking (ts_rank_cd over the generated search_vector)
    3. Weighted reciprocal rank fusion of both
    4. Similarity candidate and backfill selection
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Report)
        self.text_search_config = settings.retrieval.text_search_config

    def _tsquery(self, query_text: str):
        return func.websearch_to_tsquery(self.text_search_config, query_text)

    async def get_by_ids(self, ids: Sequence[UUID]) -> Dict[UUID, Report]:
        if not ids:
            return {}
        result = await self.session.execute(select(Report).where(Report.id.in_(list(ids))))
        return {report.id: report for report in result.scalars().all()}

    async def semantic_ranking(
        self,
        embedding: List[float],
        limit: int,
        category: Optional[str] = None,
    ) -> List[UUID]:
        """Public report ids ordered by cosine distance to the embedding."""
        distance_expr = Report.embedding.cosine_distance(embedding)
        query = select(Report.id).where(
            Report.visibility == PUBLIC,
            Report.embedding.is_not(None),
        )
        if category:
            query = query.where(Report.category == category)

        query = query.order_by(distance_expr).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def lexical_ranking(
        self,
        query_text: str,
        limit: int,
        category: Optional[str] = None,
    ) -> List[UUID]:
        """Public report ids matching the query, by full-text relevance."""
        tsquery = self._tsquery(query_text)
        query = select(Report.id).where(
            Report.visibility == PUBLIC,
            Report.search_vector.op("@@")(tsquery),
        )
        if category:
            query = query.where(Report.category == category)

        query = query.order_by(
            func.ts_rank_cd(Report.search_vector, tsquery).desc(),
            Report.created_at.desc(),
        ).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def hybrid_search(
        self,
        query_text: str,
        embedding: Optional[List[float]],
        vector_weight: float,
        fts_weight: float,
        category: Optional[str] = None,
        limit: int = 20,
        rrf_k: int = 60,
    ) -> List[Tuple[Report, float]]:
        """Fuse semantic and lexical rankings with weighted RRF.

        With no embedding only the lexical ranking contributes.

        Returns:
            List of (report, fused score) ordered best first
        """
        semantic_ids: List[UUID] = []
        if embedding is not None:
            semantic_ids = await self.semantic_ranking(embedding, limit, category)

        lexical_ids = await self.lexical_ranking(query_text, limit, category)

        fused = weighted_rrf(
            semantic_ids, lexical_ids, vector_weight, fts_weight, k=rrf_k
        )[:limit]
        reports = await self.get_by_ids([report_id for report_id, _ in fused])

        return [
            (reports[report_id], score)
            for report_id, score in fused
            if report_id in reports
        ]

    async def full_text_search(
        self,
        query_text: str,
        limit: int,
    ) -> List[Tuple[Report, float]]:
        """Unweighted lexical search over public reports."""
        tsquery = self._tsquery(query_text)
        rank_expr = func.ts_rank_cd(Report.search_vector, tsquery)
        query = (
            select(Report, rank_expr.label("rank"))
            .where(
                Report.visibility == PUBLIC,
                Report.search_vector.op("@@")(tsquery),
            )
            .order_by(rank_expr.desc(), Report.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [(row.Report, float(row.rank or 0.0)) for row in result]

    async def get_recent(self, limit: int) -> List[Report]:
        query = (
            select(Report)
            .where(Report.visibility == PUBLIC)
            .order_by(Report.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_similarity_candidates(self, source: Report, limit: int) -> List[Report]:
        """Public reports in the source's category, excluding the source."""
        query = (
            select(Report)
            .where(
                Report.category == source.category,
                Report.visibility == PUBLIC,
                Report.id != source.id,
            )
            .order_by(Report.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_for_backfill(self, limit: int, force: bool = False) -> List[Report]:
        """Reports with a non-empty body to run extraction on, oldest first.

        Without force only reports never processed and holding no attributes
        are selected, so repeated runs advance through the corpus. With
        force, reports processed least recently come first.
        """
        query = select(Report).where(
            Report.body.is_not(None), func.length(func.trim(Report.body)) > 0
        )
        if force:
            query = query.order_by(
                Report.attributes_extracted_at.asc().nulls_first(), Report.created_at
            )
        else:
            has_attributes = (
                select(ExtractedAttribute.id)
                .where(ExtractedAttribute.report_id == Report.id)
                .exists()
            )
            query = query.where(
                Report.attributes_extracted_at.is_(None), ~has_attributes
            ).order_by(Report.created_at)

        result = await self.session.execute(query.limit(limit))
        return list(result.scalars().all())

    async def mark_extracted(self, report_id: UUID) -> None:
        """Stamp a report as processed by attribute extraction."""
        await self.session.execute(
            update(Report)
            .where(Report.id == report_id)
            .values(attributes_extracted_at=func.now())
        )
