from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import ExtractedAttribute, Report
from app.repositories.base_repository import BaseRepository
from app.repositories.report_repository import PUBLIC
from app.schemas.attributes import ExtractedAttributeCandidate

USER_CONFIRMED = "user_confirmed"


class AttributeRepository(BaseRepository[ExtractedAttribute]):
    """Repository for extracted attributes (the attribute store).

    Besides per-report reads and writes it exposes the corpus-level reads
    the pattern aggregates are computed from; those only see public
    reports. Values are matched case-insensitively everywhere.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, ExtractedAttribute)

    @staticmethod
    def _public():
        return ExtractedAttribute.report_id.in_(
            select(Report.id).where(Report.visibility == PUBLIC)
        )

    def _value_matches(self, key: str, value: str):
        return (
            ExtractedAttribute.attribute_key == key,
            func.lower(ExtractedAttribute.attribute_value) == value.lower(),
            self._public(),
        )

    # Per-report access

    async def get_by_report(self, report_id: UUID) -> List[ExtractedAttribute]:
        query = (
            select(ExtractedAttribute)
            .where(ExtractedAttribute.report_id == report_id)
            .order_by(ExtractedAttribute.attribute_key)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_reports(
        self, report_ids: Sequence[UUID]
    ) -> Dict[UUID, List[ExtractedAttribute]]:
        """Attributes grouped by report id (every requested id is present)."""
        grouped: Dict[UUID, List[ExtractedAttribute]] = {rid: [] for rid in report_ids}
        if not report_ids:
            return grouped

        query = select(ExtractedAttribute).where(
            ExtractedAttribute.report_id.in_(list(report_ids))
        )
        result = await self.session.execute(query)
        for attribute in result.scalars().all():
            grouped.setdefault(attribute.report_id, []).append(attribute)
        return grouped

    @staticmethod
    def upsert_statement(rows: List[dict], source: str):
        """INSERT ... ON CONFLICT for one provenance batch.

        User-confirmed rows always win; AI-extracted rows only replace
        other AI-extracted rows. RETURNING yields the rows actually written.
        """
        stmt = insert(ExtractedAttribute).values(rows)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_report_attributes_report_key",
            set_={
                "attribute_value": stmt.excluded.attribute_value,
                "confidence": stmt.excluded.confidence,
                "source": stmt.excluded.source,
                "evidence": stmt.excluded.evidence,
                "created_by": stmt.excluded.created_by,
                "updated_at": func.now(),
            },
            where=(
                None
                if source == USER_CONFIRMED
                else ExtractedAttribute.source != USER_CONFIRMED
            ),
        )
        return stmt.returning(ExtractedAttribute.report_id, ExtractedAttribute.attribute_key)

    async def upsert_attributes(
        self, candidates: Iterable[ExtractedAttributeCandidate]
    ) -> Set[Tuple[UUID, str]]:
        """Insert or supersede attribute values keyed by (report_id, key).

        AI-extracted values never overwrite a user-confirmed one.

        Returns:
            (report_id, key) of every row inserted or updated
        """
        rows = [
            {
                "report_id": c.report_id,
                "attribute_key": c.key,
                "attribute_value": c.value,
                "confidence": c.confidence,
                "source": c.source,
                "evidence": c.evidence,
                "created_by": c.created_by,
            }
            for c in candidates
        ]
        if not rows:
            return set()

        written: Set[Tuple[UUID, str]] = set()
        for source in sorted({row["source"] for row in rows}):
            batch = [row for row in rows if row["source"] == source]
            result = await self.session.execute(self.upsert_statement(batch, source))
            written.update((row.report_id, row.attribute_key) for row in result.all())

        await self.session.flush()
        return written

    async def get_one(self, report_id: UUID, key: str) -> Optional[ExtractedAttribute]:
        query = select(ExtractedAttribute).where(
            ExtractedAttribute.report_id == report_id,
            ExtractedAttribute.attribute_key == key,
        ).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    # Schema administration

    def _scoped(self, query, key: str, category_slug: Optional[str]):
        query = query.where(ExtractedAttribute.attribute_key == key)
        if category_slug is not None:
            query = query.where(
                ExtractedAttribute.report_id.in_(
                    select(Report.id).where(Report.category == category_slug)
                )
            )
        return query

    async def count_usage(self, key: str, category_slug: Optional[str] = None) -> int:
        query = self._scoped(
            select(func.count()).select_from(ExtractedAttribute), key, category_slug
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def delete_by_key(self, key: str, category_slug: Optional[str] = None) -> int:
        result = await self.session.execute(
            self._scoped(delete(ExtractedAttribute), key, category_slug)
        )
        await self.session.flush()
        return result.rowcount or 0

    # Corpus reads for pattern aggregates

    async def count_corpus(self) -> int:
        """Number of distinct public reports with at least one attribute."""
        query = select(func.count(func.distinct(ExtractedAttribute.report_id))).where(
            self._public()
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def report_ids_with_value(self, key: str, value: str) -> Set[UUID]:
        query = select(ExtractedAttribute.report_id).where(*self._value_matches(key, value))
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def pairs_for_reports(
        self, report_ids: Iterable[UUID]
    ) -> List[Tuple[UUID, str, str]]:
        """(report_id, key, value) for every attribute of the given reports."""
        ids = list(report_ids)
        if not ids:
            return []
        query = select(
            ExtractedAttribute.report_id,
            ExtractedAttribute.attribute_key,
            ExtractedAttribute.attribute_value,
        ).where(ExtractedAttribute.report_id.in_(ids))
        result = await self.session.execute(query)
        return [tuple(row) for row in result.all()]

    async def report_counts_by_pair(self, keys: Iterable[str]) -> Dict[Tuple[str, str], int]:
        """Distinct report count per (key, lower-cased value) for the given keys."""
        key_list = list(set(keys))
        if not key_list:
            return {}
        lowered = func.lower(ExtractedAttribute.attribute_value)
        query = (
            select(
                ExtractedAttribute.attribute_key,
                lowered.label("value"),
                func.count(func.distinct(ExtractedAttribute.report_id)).label("reports"),
            )
            .where(ExtractedAttribute.attribute_key.in_(key_list), self._public())
            .group_by(ExtractedAttribute.attribute_key, lowered)
        )
        result = await self.session.execute(query)
        return {(row.attribute_key, row.value): row.reports for row in result.all()}

    async def locations_for_value(self, key: str, value: str) -> List[Tuple[float, float]]:
        query = (
            select(Report.location_lat, Report.location_lng)
            .join(ExtractedAttribute, ExtractedAttribute.report_id == Report.id)
            .where(
                *self._value_matches(key, value),
                Report.location_lat.is_not(None),
                Report.location_lng.is_not(None),
            )
            .order_by(Report.created_at, Report.id)
        )
        result = await self.session.execute(query)
        return [(row.location_lat, row.location_lng) for row in result.all()]

    async def timestamps_for_value(
        self, key: str, value: str
    ) -> List[Tuple[datetime, Optional[float]]]:
        """(occurred_at or created_at, latitude) for matching reports."""
        occurred = func.coalesce(Report.occurred_at, Report.created_at)
        query = (
            select(occurred.label("occurred"), Report.location_lat)
            .join(ExtractedAttribute, ExtractedAttribute.report_id == Report.id)
            .where(*self._value_matches(key, value))
        )
        result = await self.session.execute(query)
        return [(row.occurred, row.location_lat) for row in result.all()]

    async def confidence_rows(self, key: str, value: str) -> List[Tuple[float, str]]:
        query = select(ExtractedAttribute.confidence, ExtractedAttribute.source).where(
            *self._value_matches(key, value)
        )
        result = await self.session.execute(query)
        return [(row.confidence, row.source) for row in result.all()]

    async def value_counts(self, key: str) -> List[Tuple[str, int]]:
        """(display value, report count) per case-insensitive value of a key."""
        lowered = func.lower(ExtractedAttribute.attribute_value)
        query = (
            select(
                func.min(ExtractedAttribute.attribute_value).label("value"),
                func.count(func.distinct(ExtractedAttribute.report_id)).label("reports"),
            )
            .where(ExtractedAttribute.attribute_key == key, self._public())
            .group_by(lowered)
        )
        result = await self.session.execute(query)
        return [(row.value, row.reports) for row in result.all()]

    async def reports_sharing_pairs(
        self, pairs: Iterable[Tuple[str, str]], exclude_report_id: UUID
    ) -> Dict[UUID, List[Tuple[str, str]]]:
        """Other reports holding any of the (key, value) pairs, with the pairs they hold."""
        shared: Dict[UUID, List[Tuple[str, str]]] = defaultdict(list)
        for key, value in pairs:
            query = select(ExtractedAttribute.report_id).where(
                *self._value_matches(key, value),
                ExtractedAttribute.report_id != exclude_report_id,
            )
            result = await self.session.execute(query)
            for report_id in result.scalars().all():
                shared[report_id].append((key, value))
        return dict(shared)

    async def attribute_counts(self, report_ids: Iterable[UUID]) -> Dict[UUID, int]:
        ids = list(report_ids)
        if not ids:
            return {}
        query = (
            select(ExtractedAttribute.report_id, func.count().label("total"))
            .where(ExtractedAttribute.report_id.in_(ids))
            .group_by(ExtractedAttribute.report_id)
        )
        result = await self.session.execute(query)
        return {row.report_id: row.total for row in result.all()}
