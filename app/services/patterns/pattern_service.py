"""Pattern insights for a single report."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import CorrelationSettings, settings
from app.core.exceptions import ReportNotFoundError
from app.repositories.attribute_repository import AttributeRepository
from app.repositories.report_repository import ReportRepository
from app.schemas.patterns import PatternInsights, PatternInsightsResponse
from app.services.patterns.correlation_engine import CorrelationEngine
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PatternService:
    """Compose the correlation aggregates around one report's attributes.

    - correlations and confidence stats for every attribute
    - geographic clusters for the first attribute
    - temporal patterns for the first few attributes
    - co-occurrence for the first couple of attributes
    - value distribution for every key
    - reports sharing attribute values
    """

    def __init__(
        self,
        session: AsyncSession,
        correlation_settings: Optional[CorrelationSettings] = None,
    ):
        self.report_repo = ReportRepository(session)
        self.attribute_repo = AttributeRepository(session)
        self.config = correlation_settings or settings.correlation
        self.engine = CorrelationEngine(self.attribute_repo, self.config)

    async def insights_for(self, report_id: UUID) -> PatternInsightsResponse:
        """Raises ReportNotFoundError for unknown reports; no attributes is not an error."""
        if await self.report_repo.get_by_id(report_id) is None:
            raise ReportNotFoundError(report_id)

        attributes = await self.attribute_repo.get_by_report(report_id)
        if not attributes:
            return PatternInsightsResponse(
                has_patterns=False,
                report_id=report_id,
                message="No attributes found for pattern analysis",
            )

        pairs = [(a.attribute_key, a.attribute_value) for a in attributes]
        insights = PatternInsights()

        for key, value in pairs:
            for rule in await self.engine.correlations_for(key, value):
                # Strongest rule per attribute pair wins; rules arrive sorted
                insights.correlations.setdefault(f"{key}_{rule.attribute2}", rule)

        first_key, first_value = pairs[0]
        insights.geographic = await self.engine.geographic_clusters(first_key, first_value)

        for key, value in pairs[: self.config.temporal_attribute_limit]:
            distribution = await self.engine.temporal_patterns(key, value)
            if distribution is not None:
                insights.temporal.append(distribution)

        for key, value in pairs[: self.config.co_occurrence_attribute_limit]:
            insights.co_occurrence.extend(await self.engine.co_occurrence(key, value))

        for key, _ in pairs:
            distribution = await self.engine.value_distribution(key)
            if distribution:
                insights.value_distribution[key] = distribution

        insights.similar = await self.engine.similar_by_attributes(
            report_id, min_shared=min(2, len(pairs))
        )

        for key, value in pairs:
            stats = await self.engine.confidence_stats(key, value)
            if stats is not None:
                insights.confidence_stats[key] = stats

        LOGGER.info(
            "Pattern insights computed",
            extra={
                "report_id": str(report_id),
                "attributes": len(pairs),
                "correlations": len(insights.correlations),
                "clusters": len(insights.geographic),
                "similar": len(insights.similar),
            },
        )
        return PatternInsightsResponse(
            has_patterns=True,
            report_id=report_id,
            attribute_count=len(pairs),
            insights=insights,
        )
