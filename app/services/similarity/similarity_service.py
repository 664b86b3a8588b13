"""Similar-report discovery for a source report."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SimilaritySettings, settings
from app.core.exceptions import ReportNotFoundError
from app.database.models import ExtractedAttribute, Report
from app.repositories.attribute_repository import AttributeRepository
from app.repositories.report_repository import ReportRepository
from app.schemas.similarity import (
    SimilarityScore,
    SimilarityStats,
    SimilarityWeights,
    SimilarReport,
    SimilarReportsResponse,
)
from app.services.similarity.similarity_scorer import SimilarityScorer
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

TEASER_LENGTH = 200
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _attribute_map(attributes: List[ExtractedAttribute]) -> Dict[str, str]:
    return {a.attribute_key: a.attribute_value for a in attributes}


def _teaser(body: Optional[str]) -> str:
    if not body:
        return ""
    if len(body) <= TEASER_LENGTH:
        return body
    return body[:TEASER_LENGTH] + "..."


def _created(report: Report) -> datetime:
    created = report.created_at
    if created is None:
        return _EPOCH
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def match_reasons(candidate: Report, score: SimilarityScore) -> List[str]:
    reasons = []
    if score.shared_attributes:
        reasons.append(f"{len(score.shared_attributes)} shared attributes")
    if score.shared_tags:
        reasons.append(f"{len(score.shared_tags)} shared tags")
    if score.distance_km is not None and score.distance_km < settings.similarity.far_distance_km:
        reasons.append("Nearby location")
    reasons.append(f"Same category: {candidate.category}")
    return reasons


class SimilarityService:
    """Rank same-category public reports by composite similarity."""

    def __init__(
        self,
        session: AsyncSession,
        scorer: Optional[SimilarityScorer] = None,
        similarity_settings: Optional[SimilaritySettings] = None,
    ):
        self.report_repo = ReportRepository(session)
        self.attribute_repo = AttributeRepository(session)
        self.config = similarity_settings or settings.similarity
        self.scorer = scorer or SimilarityScorer(self.config)

    async def similar_reports(
        self, report_id: UUID, limit: Optional[int] = None
    ) -> SimilarReportsResponse:
        """Top similar reports.

        Ties on hybrid score are broken by shared attribute count, then
        recency (newest first), then id.

        Raises:
            ReportNotFoundError: If the source report does not exist
        """
        limit = limit or self.config.default_limit

        source = await self.report_repo.get_by_id(report_id)
        if source is None:
            raise ReportNotFoundError(report_id)

        candidates = await self.report_repo.get_similarity_candidates(
            source, self.config.candidate_pool
        )
        attributes = await self.attribute_repo.get_by_reports(
            [source.id] + [c.id for c in candidates]
        )
        source_attributes = _attribute_map(attributes.get(source.id, []))

        scored = [
            (
                candidate,
                self.scorer.score(
                    source,
                    candidate,
                    source_attributes,
                    _attribute_map(attributes.get(candidate.id, [])),
                ),
            )
            for candidate in candidates
        ]
        scored.sort(
            key=lambda item: (
                -item[1].hybrid_score,
                -item[1].shared_attribute_count,
                -_created(item[0]).timestamp(),
                str(item[0].id),
            )
        )
        top = scored[:limit]

        similar = [
            SimilarReport(
                id=candidate.id,
                title=candidate.title,
                category=candidate.category,
                location=candidate.location_text,
                date=candidate.occurred_at,
                teaser=_teaser(candidate.body),
                hybrid_score=score.hybrid_score,
                tag_location_score=round(score.tag_location_score, 2),
                attribute_score=round(score.attribute_score, 2),
                shared_attribute_count=score.shared_attribute_count,
                shared_attributes=score.shared_attributes,
                match_reasons=match_reasons(candidate, score),
            )
            for candidate, score in top
        ]

        stats = SimilarityStats(
            total_candidates=len(scored),
            average_hybrid_score=(
                sum(s.hybrid_score for s in similar) // len(similar) if similar else 0
            ),
            average_shared_attributes=(
                sum(s.shared_attribute_count for s in similar) // len(similar) if similar else 0
            ),
        )

        LOGGER.info(
            "Similar reports computed",
            extra={
                "report_id": str(report_id),
                "candidates": len(scored),
                "returned": len(similar),
            },
        )
        return SimilarReportsResponse(
            similar=similar,
            stats=stats,
            weights=SimilarityWeights(
                tag_location=self.config.tag_location_weight,
                attributes=self.config.attribute_weight,
            ),
        )
