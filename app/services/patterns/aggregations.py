"""Pure aggregation functions behind the pattern insights.

Inputs are plain rows read from the attribute store; values are compared
case-insensitively and every output is deterministically ordered.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
from uuid import UUID

from app.schemas.patterns import (
    AttributeSimilarReport,
    CoOccurrence,
    ConfidenceStats,
    CorrelationPair,
    GeographicCluster,
    TemporalBucket,
    TemporalDistribution,
    ValueDistributionEntry,
)
from app.utils.geo import haversine_km

PairRow = Tuple[UUID, str, str]

TIME_OF_DAY_BUCKETS = ("night", "morning", "afternoon", "evening")
DAY_OF_WEEK_BUCKETS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)
SEASON_BUCKETS = ("spring", "summer", "autumn", "winter")

_NORTHERN_SEASONS = {
    12: "winter", 1: "winter", 2: "winter",
    3: "spring", 4: "spring", 5: "spring",
    6: "summer", 7: "summer", 8: "summer",
    9: "autumn", 10: "autumn", 11: "autumn",
}
_OPPOSITE_SEASON = {
    "winter": "summer", "summer": "winter", "spring": "autumn", "autumn": "spring",
}


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _co_reported(
    key: str, value: str, pairs: Iterable[PairRow]
) -> Tuple[Dict[Tuple[str, str], Set[UUID]], Dict[Tuple[str, str], str]]:
    """Reports per other (key, lower value), with a display value for each pair."""
    reports: Dict[Tuple[str, str], Set[UUID]] = defaultdict(set)
    display: Dict[Tuple[str, str], str] = {}
    target = (key, value.lower())

    for report_id, other_key, other_value in pairs:
        pair = (other_key, other_value.lower())
        if pair == target or other_key == key:
            continue
        reports[pair].add(report_id)
        if pair not in display or other_value < display[pair]:
            display[pair] = other_value
    return reports, display


def association_rules(
    key: str,
    value: str,
    target_reports: Set[UUID],
    pairs: Iterable[PairRow],
    corpus_size: int,
    min_support: float,
    min_confidence: float,
) -> List[CorrelationPair]:
    """Rules `key=value => other=v2` above support and confidence thresholds.

    support = reports with both / corpus size
    confidence = reports with both / reports with key=value
    """
    if not target_reports or corpus_size <= 0:
        return []

    co_reported, display = _co_reported(key, value, pairs)
    rules = []
    for (other_key, lowered), reports in co_reported.items():
        co_count = len(reports)
        support = co_count / corpus_size
        confidence = co_count / len(target_reports)
        if support < min_support or confidence < min_confidence:
            continue
        other_value = display[(other_key, lowered)]
        rules.append(
            CorrelationPair(
                attribute1=key,
                value1=value,
                attribute2=other_key,
                value2=other_value,
                co_count=co_count,
                support=round(support, 4),
                confidence=round(confidence, 4),
                description=(
                    f"{round(confidence * 100)}% of {key}={value} "
                    f"also report {other_key}={other_value}"
                ),
            )
        )

    rules.sort(key=lambda r: (-r.confidence, -r.support, r.attribute2, r.value2.lower()))
    return rules


def co_occurrences(
    key: str,
    value: str,
    target_reports: Set[UUID],
    pairs: Iterable[PairRow],
    pair_report_counts: Mapping[Tuple[str, str], int],
    min_count: int,
) -> List[CoOccurrence]:
    """Other values appearing with key=value in at least min_count reports.

    correlation = Jaccard index co / (count_a + count_b - co)
    """
    co_reported, display = _co_reported(key, value, pairs)
    count_a = len(target_reports)

    results = []
    for pair, reports in co_reported.items():
        co_count = len(reports)
        if co_count < min_count:
            continue
        count_b = max(pair_report_counts.get(pair, co_count), co_count)
        union = count_a + count_b - co_count
        results.append(
            CoOccurrence(
                attribute1=key,
                value1=value,
                attribute2=pair[0],
                value2=display[pair],
                count=co_count,
                correlation=round(co_count / union, 4) if union else 0.0,
            )
        )

    results.sort(key=lambda c: (-c.count, -c.correlation, c.attribute2, c.value2.lower()))
    return results


def geographic_clusters(
    points: Sequence[Tuple[float, float]],
    radius_km: float,
    key: str,
    value: str,
) -> List[GeographicCluster]:
    """Greedy leader clustering with running-mean centroids.

    Each point joins the first cluster whose centroid lies within the
    radius, otherwise it starts a new cluster.
    """
    clusters: List[List[float]] = []  # [lat, lng, count]

    for lat, lng in points:
        for cluster in clusters:
            if haversine_km(cluster[0], cluster[1], lat, lng) <= radius_km:
                count = cluster[2] + 1
                cluster[0] += (lat - cluster[0]) / count
                cluster[1] += (lng - cluster[1]) / count
                cluster[2] = count
                break
        else:
            clusters.append([lat, lng, 1])

    ordered = sorted(
        enumerate(clusters), key=lambda item: (-item[1][2], item[0])
    )
    return [
        GeographicCluster(
            latitude=round(lat, 6),
            longitude=round(lng, 6),
            count=int(count),
            radius=radius_km,
            attribute=key,
            value=value,
        )
        for _, (lat, lng, count) in ordered
    ]


def time_of_day(hour: int) -> str:
    if hour < 6:
        return "night"
    if hour < 12:
        return "morning"
    if hour < 18:
        return "afternoon"
    return "evening"


def season(month: int, latitude: Optional[float] = None) -> str:
    """Meteorological season, flipped for the southern hemisphere."""
    name = _NORTHERN_SEASONS[month]
    if latitude is not None and latitude < 0:
        return _OPPOSITE_SEASON[name]
    return name


def _buckets(counts: Mapping[str, int], order: Sequence[str], total: int) -> List[TemporalBucket]:
    return [
        TemporalBucket(bucket=name, count=counts[name], percentage=_percentage(counts[name], total))
        for name in order
        if counts.get(name)
    ]


def temporal_distribution(
    key: str,
    value: str,
    occurrences: Sequence[Tuple[datetime, Optional[float]]],
) -> Optional[TemporalDistribution]:
    """Distribution across time-of-day, day-of-week and season buckets."""
    stamps = [(ts, lat) for ts, lat in occurrences if ts is not None]
    if not stamps:
        return None

    hours: Dict[str, int] = defaultdict(int)
    days: Dict[str, int] = defaultdict(int)
    seasons: Dict[str, int] = defaultdict(int)
    for ts, lat in stamps:
        hours[time_of_day(ts.hour)] += 1
        days[DAY_OF_WEEK_BUCKETS[ts.weekday()]] += 1
        seasons[season(ts.month, lat)] += 1

    total = len(stamps)
    return TemporalDistribution(
        attribute=key,
        value=value,
        total=total,
        time_of_day=_buckets(hours, TIME_OF_DAY_BUCKETS, total),
        day_of_week=_buckets(days, DAY_OF_WEEK_BUCKETS, total),
        season=_buckets(seasons, SEASON_BUCKETS, total),
    )


def confidence_summary(
    key: str, value: str, rows: Sequence[Tuple[float, str]]
) -> Optional[ConfidenceStats]:
    """Average confidence and provenance split; None when nothing matches."""
    if not rows:
        return None
    total = len(rows)
    confirmed = sum(1 for _, source in rows if source == "user_confirmed")
    return ConfidenceStats(
        attribute=key,
        value=value,
        avg_confidence=round(sum(confidence for confidence, _ in rows) / total, 4),
        ai_extracted_count=sum(1 for _, source in rows if source == "ai_extracted"),
        user_confirmed_count=confirmed,
        total_count=total,
        confirmation_rate=round(confirmed / total, 4),
    )


def value_distribution(counts: Sequence[Tuple[str, int]]) -> List[ValueDistributionEntry]:
    total = sum(count for _, count in counts)
    entries = [
        ValueDistributionEntry(value=value, count=count, percentage=_percentage(count, total))
        for value, count in counts
    ]
    entries.sort(key=lambda e: (-e.count, e.value.lower()))
    return entries


def attribute_similarity(
    source_attribute_count: int,
    shared_by_report: Mapping[UUID, Sequence[Tuple[str, str]]],
    attribute_counts: Mapping[UUID, int],
    min_shared: int,
    max_results: int,
) -> List[AttributeSimilarReport]:
    """Reports sharing at least min_shared (key, value) pairs with the source.

    similarity = shared / max(|source|, |other|)
    """
    results = []
    for report_id, shared in shared_by_report.items():
        shared_keys = sorted({key for key, _ in shared})
        if len(shared_keys) < max(min_shared, 1):
            continue
        denominator = max(source_attribute_count, attribute_counts.get(report_id, 0), 1)
        results.append(
            AttributeSimilarReport(
                report_id=report_id,
                shared_attribute_count=len(shared_keys),
                similarity=round(len(shared_keys) / denominator, 4),
                shared_attributes=shared_keys,
            )
        )

    results.sort(key=lambda r: (-r.shared_attribute_count, -r.similarity, str(r.report_id)))
    return results[:max_results]
