"""Cross-report correlation aggregates over the attribute store."""

from typing import List, Optional
from uuid import UUID

from app.core.config import CorrelationSettings, settings
from app.repositories.attribute_repository import AttributeRepository
from app.schemas.patterns import (
    AttributeSimilarReport,
    CoOccurrence,
    ConfidenceStats,
    CorrelationPair,
    GeographicCluster,
    TemporalDistribution,
    ValueDistributionEntry,
)
from app.services.patterns import aggregations
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CorrelationEngine:
    """Read-only aggregates; every result can be recomputed at any time.

    The corpus is the set of distinct reports present in the attribute
    store.
    """

    def __init__(
        self,
        attribute_repo: AttributeRepository,
        correlation_settings: Optional[CorrelationSettings] = None,
    ):
        self.attribute_repo = attribute_repo
        self.config = correlation_settings or settings.correlation

    async def correlations_for(
        self,
        key: str,
        value: str,
        min_support: Optional[float] = None,
        min_confidence: Optional[float] = None,
    ) -> List[CorrelationPair]:
        min_support = self.config.min_support if min_support is None else min_support
        min_confidence = self.config.min_confidence if min_confidence is None else min_confidence

        target = await self.attribute_repo.report_ids_with_value(key, value)
        if not target:
            return []

        corpus_size = await self.attribute_repo.count_corpus()
        pairs = await self.attribute_repo.pairs_for_reports(target)
        return aggregations.association_rules(
            key, value, target, pairs, corpus_size, min_support, min_confidence
        )

    async def geographic_clusters(
        self, key: str, value: str, radius_km: Optional[float] = None
    ) -> List[GeographicCluster]:
        radius_km = self.config.cluster_radius_km if radius_km is None else radius_km
        points = await self.attribute_repo.locations_for_value(key, value)
        return aggregations.geographic_clusters(points, radius_km, key, value)

    async def temporal_patterns(self, key: str, value: str) -> Optional[TemporalDistribution]:
        occurrences = await self.attribute_repo.timestamps_for_value(key, value)
        return aggregations.temporal_distribution(key, value, occurrences)

    async def co_occurrence(
        self, key: str, value: str, min_count: Optional[int] = None
    ) -> List[CoOccurrence]:
        min_count = self.config.co_occurrence_min_count if min_count is None else min_count

        target = await self.attribute_repo.report_ids_with_value(key, value)
        if not target:
            return []

        pairs = await self.attribute_repo.pairs_for_reports(target)
        other_keys = {other_key for _, other_key, _ in pairs if other_key != key}
        pair_counts = await self.attribute_repo.report_counts_by_pair(other_keys)
        return aggregations.co_occurrences(key, value, target, pairs, pair_counts, min_count)

    async def confidence_stats(self, key: str, value: str) -> Optional[ConfidenceStats]:
        rows = await self.attribute_repo.confidence_rows(key, value)
        return aggregations.confidence_summary(key, value, rows)

    async def value_distribution(self, key: str) -> List[ValueDistributionEntry]:
        counts = await self.attribute_repo.value_counts(key)
        return aggregations.value_distribution(counts)

    async def similar_by_attributes(
        self,
        report_id: UUID,
        min_shared: int,
        max_results: Optional[int] = None,
    ) -> List[AttributeSimilarReport]:
        max_results = self.config.similar_max_results if max_results is None else max_results

        source = await self.attribute_repo.get_by_report(report_id)
        if not source:
            return []

        shared = await self.attribute_repo.reports_sharing_pairs(
            [(a.attribute_key, a.attribute_value) for a in source], exclude_report_id=report_id
        )
        counts = await self.attribute_repo.attribute_counts(shared.keys())
        return aggregations.attribute_similarity(
            len(source), shared, counts, min_shared, max_results
        )
