"""Batch attribute extraction over existing reports."""

import asyncio
from typing import Dict, List, NamedTuple, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import CategoryNotFoundError, UpstreamServiceError
from app.repositories.attribute_repository import AttributeRepository
from app.repositories.report_repository import ReportRepository
from app.schemas.attributes import (
    AttributeDefinitionSchema,
    AttributeSummary,
    BackfillItemResult,
    BackfillResponse,
    ExtractedAttributeCandidate,
)
from app.services.extraction.attribute_extractor import AttributeExtractor
from app.services.schema_registry import AttributeSchemaRegistry
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

REASON_NO_SCHEMA = "No attribute schema available"
REASON_NOTHING_EXTRACTED = "No valid attributes extracted"
REASON_USER_CONFIRMED = "All attributes already confirmed by users"


class _ReportRef(NamedTuple):
    # Plain snapshot; ORM instances expire on rollback
    id: UUID
    title: str
    category: str
    body: str


class BackfillService:
    """Extract attributes for a batch of reports with per-item status.

    Completion calls run concurrently behind a semaphore. Database work
    stays sequential on the request session and is committed per report,
    so one failing report never rolls back the others. Every report that
    is not an error is stamped as processed so later runs move on.
    """

    def __init__(
        self,
        session: AsyncSession,
        extractor: AttributeExtractor,
        max_concurrency: Optional[int] = None,
    ):
        self.session = session
        self.extractor = extractor
        self.report_repo = ReportRepository(session)
        self.attribute_repo = AttributeRepository(session)
        self.registry = AttributeSchemaRegistry(session)
        self.max_concurrency = max_concurrency or settings.extraction.max_concurrency

    async def run(
        self,
        limit: Optional[int] = None,
        force: bool = False,
        created_by: Optional[UUID] = None,
    ) -> BackfillResponse:
        limit = limit or settings.extraction.backfill_limit
        reports = [
            _ReportRef(r.id, r.title, r.category, r.body or "")
            for r in await self.report_repo.get_for_backfill(limit, force=force)
        ]

        LOGGER.info(
            "Starting attribute backfill",
            extra={"reports": len(reports), "force": force, "concurrency": self.max_concurrency},
        )

        results: Dict[UUID, BackfillItemResult] = {}
        pending: List[tuple[_ReportRef, List[AttributeDefinitionSchema]]] = []
        definitions_cache: Dict[str, List[AttributeDefinitionSchema]] = {}
        without_schema: List[_ReportRef] = []

        for report in reports:
            definitions = await self._definitions(report.category, definitions_cache)
            if not definitions:
                results[report.id] = self._skipped(report, REASON_NO_SCHEMA)
                without_schema.append(report)
                continue

            pending.append((report, definitions))

        if without_schema:
            for report in without_schema:
                await self.report_repo.mark_extracted(report.id)
            await self.session.commit()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def extract_one(report: _ReportRef, definitions: List[AttributeDefinitionSchema]):
            async with semaphore:
                try:
                    return await self.extractor.extract(report.id, report.body, definitions)
                except UpstreamServiceError as e:
                    LOGGER.error(
                        "Extraction failed for report",
                        exc_info=True,
                        extra={"report_id": str(report.id), "error": e.message},
                    )
                    return e

        extracted = await asyncio.gather(
            *(extract_one(report, definitions) for report, definitions in pending)
        )

        for (report, _), outcome in zip(pending, extracted):
            results[report.id] = await self._store(report, outcome, created_by)

        ordered = [results[report.id] for report in reports]
        LOGGER.info(
            "Attribute backfill completed",
            extra={
                "processed": len(ordered),
                "success": sum(1 for r in ordered if r.status == "success"),
                "skipped": sum(1 for r in ordered if r.status == "skipped"),
                "errors": sum(1 for r in ordered if r.status == "error"),
            },
        )
        return BackfillResponse(processed=len(ordered), results=ordered)

    async def _definitions(
        self, category: str, cache: Dict[str, List[AttributeDefinitionSchema]]
    ) -> List[AttributeDefinitionSchema]:
        if category not in cache:
            try:
                cache[category] = await self.registry.definitions_for(
                    category, searchable_only=True
                )
            except CategoryNotFoundError:
                LOGGER.warning("Report has an unknown category", extra={"category": category})
                cache[category] = []
        return cache[category]

    async def _store(
        self,
        report: _ReportRef,
        outcome: Union[List[ExtractedAttributeCandidate], UpstreamServiceError],
        created_by: Optional[UUID],
    ) -> BackfillItemResult:
        if isinstance(outcome, UpstreamServiceError):
            return BackfillItemResult(
                report_id=report.id, title=report.title, status="error", error=outcome.message
            )

        if created_by is not None:
            outcome = [c.model_copy(update={"created_by": created_by}) for c in outcome]

        try:
            written = await self.attribute_repo.upsert_attributes(outcome) if outcome else set()
            await self.report_repo.mark_extracted(report.id)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(
                "Failed to store extracted attributes",
                exc_info=True,
                extra={"report_id": str(report.id)},
            )
            return BackfillItemResult(
                report_id=report.id, title=report.title, status="error", error=str(e)
            )

        if not outcome:
            return self._skipped(report, REASON_NOTHING_EXTRACTED)

        stored = [c for c in outcome if (c.report_id, c.key) in written]
        if not stored:
            return self._skipped(report, REASON_USER_CONFIRMED)

        return BackfillItemResult(
            report_id=report.id,
            title=report.title,
            status="success",
            attributes_extracted=len(stored),
            attributes=[
                AttributeSummary(key=c.key, value=c.value, confidence=c.confidence)
                for c in stored
            ],
        )

    @staticmethod
    def _skipped(report: _ReportRef, reason: str) -> BackfillItemResult:
        return BackfillItemResult(
            report_id=report.id, title=report.title, status="skipped", reason=reason
        )
