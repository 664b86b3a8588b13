"""Exact in-memory refinement of over-fetched search candidates."""

from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional, Tuple, TypeVar

from app.database.models import Report
from app.schemas.search import SearchFilters

T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def matches_filters(report: Report, filters: SearchFilters) -> bool:
    """Whether a report passes every structured filter.

    Tags overlap case-insensitively: at least one requested tag must be
    on the report, and no excluded tag may be. Reports without an
    occurrence date fail any date filter.
    """
    if filters.categories and report.category not in filters.categories:
        return False

    report_tags = {tag.lower() for tag in (report.tags or [])}
    wanted = {tag.lower() for tag in filters.tags}
    if wanted and not wanted.intersection(report_tags):
        return False

    excluded = {tag.lower() for tag in filters.exclude_tags}
    if excluded and excluded.intersection(report_tags):
        return False

    if filters.location:
        location = (report.location_text or "").lower()
        if filters.location.lower() not in location:
            return False

    if filters.date_from or filters.date_to:
        if report.occurred_at is None:
            return False
        occurred = _as_utc(report.occurred_at)
        if filters.date_from and occurred < _day_start(filters.date_from):
            return False
        if filters.date_to and occurred > _day_end(filters.date_to):
            return False

    if filters.witnesses_only and not (report.witness_count or 0) > 0:
        return False

    return True


def apply_filters(
    scored: Iterable[Tuple[Report, T]],
    filters: SearchFilters,
    limit: Optional[int] = None,
) -> List[Tuple[Report, T]]:
    """Keep candidates passing the filters, preserving rank order."""
    kept = [item for item in scored if matches_filters(item[0], filters)]
    return kept[:limit] if limit is not None else kept
