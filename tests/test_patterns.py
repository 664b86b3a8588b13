"""Unit tests for correlation aggregates and pattern insights."""

import uuid
from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.core.exceptions import ReportNotFoundError
from app.schemas.patterns import CorrelationPair
from app.services.patterns import aggregations
from app.services.patterns.correlation_engine import CorrelationEngine
from app.services.patterns.pattern_service import PatternService
from tests.conftest import make_attribute, make_report

R1, R2, R3, R4 = (uuid.uuid4() for _ in range(4))

# shape=triangle in R1..R3; color=orange in R1, R2; sound=humming in R3
PAIRS = [
    (R1, "shape", "triangle"), (R1, "color", "orange"),
    (R2, "shape", "Triangle"), (R2, "color", "Orange"),
    (R3, "shape", "triangle"), (R3, "sound", "humming"),
]


class TestAssociationRules:
    def test_support_and_confidence(self):
        rules = aggregations.association_rules(
            "shape", "triangle", {R1, R2, R3}, PAIRS, corpus_size=4,
            min_support=0.05, min_confidence=0.6,
        )

        assert len(rules) == 1
        rule = rules[0]
        assert (rule.attribute2, rule.value2.lower()) == ("color", "orange")
        assert rule.co_count == 2
        assert rule.support == 0.5
        assert rule.confidence == pytest.approx(0.6667, abs=1e-4)

    def test_thresholds_filter_rules(self):
        rules = aggregations.association_rules(
            "shape", "triangle", {R1, R2, R3}, PAIRS, corpus_size=4,
            min_support=0.05, min_confidence=0.3,
        )

        assert [r.attribute2 for r in rules] == ["color", "sound"]

    def test_empty_target(self):
        assert aggregations.association_rules("shape", "x", set(), [], 10, 0.05, 0.6) == []


class TestCoOccurrence:
    def test_jaccard_strength(self):
        results = aggregations.co_occurrences(
            "shape", "triangle", {R1, R2, R3}, PAIRS,
            pair_report_counts={("color", "orange"): 3, ("sound", "humming"): 1},
            min_count=2,
        )

        assert len(results) == 1
        assert results[0].count == 2
        # 2 / (3 + 3 - 2)
        assert results[0].correlation == 0.5


class TestGeographicClusters:
    def test_points_within_radius_share_a_cluster(self):
        points = [(39.0, -120.0), (39.1, -120.0), (40.0, -75.0)]

        clusters = aggregations.geographic_clusters(points, 100, "shape", "triangle")

        assert [c.count for c in clusters] == [2, 1]
        assert clusters[0].latitude == pytest.approx(39.05)
        assert clusters[0].radius == 100

    def test_no_points(self):
        assert aggregations.geographic_clusters([], 100, "shape", "triangle") == []


class TestTemporalDistribution:
    def test_buckets_and_percentages(self):
        occurrences = [
            (datetime(2024, 7, 6, 22, 0, tzinfo=timezone.utc), 40.0),   # saturday evening, summer
            (datetime(2024, 7, 6, 23, 30, tzinfo=timezone.utc), 40.0),
            (datetime(2024, 1, 8, 3, 0, tzinfo=timezone.utc), -33.0),   # monday night, southern summer
            (datetime(2024, 4, 10, 9, 0, tzinfo=timezone.utc), None),   # wednesday morning, spring
        ]

        distribution = aggregations.temporal_distribution("shape", "triangle", occurrences)

        assert distribution.total == 4
        by_hour = {b.bucket: b.percentage for b in distribution.time_of_day}
        assert by_hour == {"night": 25.0, "morning": 25.0, "evening": 50.0}
        by_day = {b.bucket: b.count for b in distribution.day_of_week}
        assert by_day == {"monday": 1, "wednesday": 1, "saturday": 2}
        by_season = {b.bucket: b.count for b in distribution.season}
        assert by_season == {"spring": 1, "summer": 3}

    def test_nothing_dated(self):
        assert aggregations.temporal_distribution("shape", "triangle", []) is None

    def test_season_flips_south(self):
        assert aggregations.season(12) == "winter"
        assert aggregations.season(12, latitude=-10) == "summer"


class TestConfidenceAndDistribution:
    def test_confidence_summary(self):
        stats = aggregations.confidence_summary(
            "shape", "triangle",
            [(0.8, "ai_extracted"), (0.6, "ai_extracted"), (1.0, "user_confirmed"), (1.0, "user_confirmed")],
        )

        assert stats.avg_confidence == 0.85
        assert stats.ai_extracted_count == 2
        assert stats.user_confirmed_count == 2
        assert stats.total_count == 4
        assert stats.confirmation_rate == 0.5

    def test_confidence_summary_empty(self):
        assert aggregations.confidence_summary("shape", "triangle", []) is None

    def test_value_distribution(self):
        entries = aggregations.value_distribution([("disc", 1), ("triangle", 3)])

        assert [(e.value, e.count, e.percentage) for e in entries] == [
            ("triangle", 3, 75.0), ("disc", 1, 25.0),
        ]


class TestAttributeSimilarity:
    def test_min_shared_and_ordering(self):
        results = aggregations.attribute_similarity(
            source_attribute_count=2,
            shared_by_report={
                R1: [("shape", "triangle"), ("color", "orange")],
                R2: [("shape", "triangle")],
                R3: [("shape", "triangle"), ("color", "orange")],
            },
            attribute_counts={R1: 4, R2: 1, R3: 2},
            min_shared=2,
            max_results=10,
        )

        assert [r.report_id for r in results] == [R3, R1]
        assert results[0].similarity == 1.0
        assert results[1].similarity == 0.5
        assert results[0].shared_attributes == ["color", "shape"]


class TestCorrelationEngine:
    @pytest.mark.asyncio
    async def test_correlations_use_corpus_size(self):
        repo = AsyncMock()
        repo.report_ids_with_value.return_value = {R1, R2, R3}
        repo.count_corpus.return_value = 4
        repo.pairs_for_reports.return_value = PAIRS
        engine = CorrelationEngine(repo)

        rules = await engine.correlations_for("shape", "triangle")

        assert [r.attribute2 for r in rules] == ["color"]
        repo.pairs_for_reports.assert_awaited_once_with({R1, R2, R3})

    @pytest.mark.asyncio
    async def test_unknown_value_short_circuits(self):
        repo = AsyncMock()
        repo.report_ids_with_value.return_value = set()
        engine = CorrelationEngine(repo)

        assert await engine.correlations_for("shape", "cigar") == []
        assert await engine.co_occurrence("shape", "cigar") == []
        repo.count_corpus.assert_not_called()

    @pytest.mark.asyncio
    async def test_co_occurrence_counts_other_keys(self):
        repo = AsyncMock()
        repo.report_ids_with_value.return_value = {R1, R2, R3}
        repo.pairs_for_reports.return_value = PAIRS
        repo.report_counts_by_pair.return_value = {("color", "orange"): 2}
        engine = CorrelationEngine(repo)

        results = await engine.co_occurrence("shape", "triangle")

        assert results[0].correlation == pytest.approx(2 / 3, abs=1e-4)
        assert repo.report_counts_by_pair.await_args.args[0] == {"color", "sound"}


def build_pattern_service(report, attributes):
    service = PatternService(MagicMock())
    service.report_repo = AsyncMock()
    service.report_repo.get_by_id.return_value = report
    service.attribute_repo = AsyncMock()
    service.attribute_repo.get_by_report.return_value = attributes
    service.engine = AsyncMock(spec=CorrelationEngine)
    service.engine.correlations_for.return_value = []
    service.engine.geographic_clusters.return_value = []
    service.engine.temporal_patterns.return_value = None
    service.engine.co_occurrence.return_value = []
    service.engine.value_distribution.return_value = []
    service.engine.similar_by_attributes.return_value = []
    service.engine.confidence_stats.return_value = None
    return service


class TestPatternService:
    """Tests for PatternService composition."""

    @pytest.mark.asyncio
    async def test_unknown_report_raises(self):
        service = build_pattern_service(None, [])

        with pytest.raises(ReportNotFoundError):
            await service.insights_for(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_no_attributes_means_no_patterns(self):
        report = make_report()
        service = build_pattern_service(report, [])

        response = await service.insights_for(report.id)

        assert response.has_patterns is False
        assert response.insights is None
        service.engine.correlations_for.assert_not_called()

    @pytest.mark.asyncio
    async def test_composition_limits(self):
        report = make_report()
        attributes = [
            make_attribute(report.id, key, value)
            for key, value in [
                ("shape", "triangle"), ("color", "orange"), ("sound", "humming"), ("speed", "fast"),
            ]
        ]
        service = build_pattern_service(report, attributes)

        response = await service.insights_for(report.id)

        assert response.has_patterns is True
        assert response.attribute_count == 4
        assert service.engine.correlations_for.await_count == 4
        service.engine.geographic_clusters.assert_awaited_once_with("shape", "triangle")
        assert service.engine.temporal_patterns.await_count == 3
        assert service.engine.co_occurrence.await_count == 2
        assert service.engine.value_distribution.await_count == 4
        assert service.engine.confidence_stats.await_count == 4
        service.engine.similar_by_attributes.assert_awaited_once_with(report.id, min_shared=2)

    @pytest.mark.asyncio
    async def test_strongest_correlation_per_pair_wins(self):
        report = make_report()
        service = build_pattern_service(report, [make_attribute(report.id, "shape", "triangle")])
        strong = CorrelationPair(
            attribute1="shape", value1="triangle", attribute2="color", value2="orange",
            co_count=5, support=0.2, confidence=0.9,
        )
        weak = strong.model_copy(update={"value2": "red", "confidence": 0.7})
        service.engine.correlations_for.return_value = [strong, weak]

        response = await service.insights_for(report.id)

        assert response.insights.correlations == {"shape_color": strong}
        service.engine.similar_by_attributes.assert_awaited_once_with(report.id, min_shared=1)
