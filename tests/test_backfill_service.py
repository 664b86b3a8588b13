"""Unit tests for the attribute backfill batch."""

import uuid

import pytest
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock, MagicMock

from app.core.exceptions import CategoryNotFoundError, UpstreamServiceError
from app.schemas.attributes import ExtractedAttributeCandidate
from app.services.extraction.attribute_extractor import AttributeExtractor
from app.services.extraction.backfill_service import (
    REASON_NO_SCHEMA,
    REASON_NOTHING_EXTRACTED,
    REASON_USER_CONFIRMED,
    BackfillService,
)
from tests.conftest import make_report


def _candidate(report_id, key="shape", value="triangle"):
    return ExtractedAttributeCandidate(report_id=report_id, key=key, value=value, confidence=0.8)


def _write_all(candidates):
    return {(c.report_id, c.key) for c in candidates}


@pytest.fixture
def session():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def extractor():
    return AsyncMock(spec=AttributeExtractor)


def build_service(session, extractor, reports, definitions):
    service = BackfillService(session, extractor, max_concurrency=2)
    service.report_repo = AsyncMock()
    service.report_repo.get_for_backfill.return_value = reports
    service.attribute_repo = AsyncMock()
    service.attribute_repo.upsert_attributes.side_effect = _write_all
    service.registry = AsyncMock()
    service.registry.definitions_for.return_value = definitions
    return service


class TestBackfillService:
    """Tests for BackfillService."""

    @pytest.mark.asyncio
    async def test_success_stores_and_commits_per_report(self, session, extractor, ufo_definitions):
        reports = [make_report(title="one"), make_report(title="two")]
        extractor.extract.side_effect = lambda report_id, text, defs: [_candidate(report_id)]
        service = build_service(session, extractor, reports, ufo_definitions)

        response = await service.run(limit=5)

        assert response.processed == 2
        assert [r.status for r in response.results] == ["success", "success"]
        assert response.results[0].attributes_extracted == 1
        assert response.results[0].attributes[0].value == "triangle"
        assert service.attribute_repo.upsert_attributes.await_count == 2
        assert session.commit.await_count == 2
        service.report_repo.get_for_backfill.assert_awaited_once_with(5, force=False)
        assert service.report_repo.mark_extracted.await_count == 2

    @pytest.mark.asyncio
    async def test_force_is_passed_to_selection(self, session, extractor, ufo_definitions):
        report = make_report()
        extractor.extract.return_value = [_candidate(report.id)]
        service = build_service(session, extractor, [report], ufo_definitions)

        response = await service.run(limit=3, force=True)

        assert response.results[0].status == "success"
        service.report_repo.get_for_backfill.assert_awaited_once_with(3, force=True)

    @pytest.mark.asyncio
    async def test_later_runs_move_past_processed_reports(self, session, extractor, ufo_definitions):
        first, second = make_report(title="first"), make_report(title="second")
        extractor.extract.side_effect = lambda report_id, text, defs: [_candidate(report_id)]
        service = build_service(session, extractor, [first], ufo_definitions)
        service.report_repo.get_for_backfill.side_effect = [[first], [second]]

        one = await service.run(limit=1)
        two = await service.run(limit=1)

        assert [r.report_id for r in one.results] == [first.id]
        assert [r.report_id for r in two.results] == [second.id]
        assert two.results[0].status == "success"
        marked = [call.args[0] for call in service.report_repo.mark_extracted.await_args_list]
        assert marked == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_missing_schema_is_skipped_and_marked(self, session, extractor):
        report = make_report()
        service = build_service(session, extractor, [report], [])

        response = await service.run()

        assert response.results[0].status == "skipped"
        assert response.results[0].reason == REASON_NO_SCHEMA
        service.report_repo.mark_extracted.assert_awaited_once_with(report.id)
        extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_category_is_skipped(self, session, extractor):
        service = build_service(session, extractor, [make_report(category="gone")], [])
        service.registry.definitions_for.side_effect = CategoryNotFoundError("gone")

        response = await service.run()

        assert response.results[0].reason == REASON_NO_SCHEMA

    @pytest.mark.asyncio
    async def test_nothing_extracted_is_skipped_and_marked(self, session, extractor, ufo_definitions):
        report = make_report()
        extractor.extract.return_value = []
        service = build_service(session, extractor, [report], ufo_definitions)

        response = await service.run()

        assert response.results[0].status == "skipped"
        assert response.results[0].reason == REASON_NOTHING_EXTRACTED
        service.attribute_repo.upsert_attributes.assert_not_called()
        service.report_repo.mark_extracted.assert_awaited_once_with(report.id)
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_written_rows_are_counted(self, session, extractor, ufo_definitions):
        report = make_report()
        extractor.extract.return_value = [
            _candidate(report.id, "shape", "triangle"),
            _candidate(report.id, "color", "orange"),
        ]
        service = build_service(session, extractor, [report], ufo_definitions)
        # shape is user-confirmed already; the conflict guard leaves it alone
        service.attribute_repo.upsert_attributes.side_effect = None
        service.attribute_repo.upsert_attributes.return_value = {(report.id, "color")}

        response = await service.run()

        result = response.results[0]
        assert result.status == "success"
        assert result.attributes_extracted == 1
        assert [a.key for a in result.attributes] == ["color"]

    @pytest.mark.asyncio
    async def test_all_values_user_confirmed_is_skipped(self, session, extractor, ufo_definitions):
        report = make_report()
        extractor.extract.return_value = [_candidate(report.id)]
        service = build_service(session, extractor, [report], ufo_definitions)
        service.attribute_repo.upsert_attributes.side_effect = None
        service.attribute_repo.upsert_attributes.return_value = set()

        response = await service.run()

        assert response.results[0].status == "skipped"
        assert response.results[0].reason == REASON_USER_CONFIRMED
        service.report_repo.mark_extracted.assert_awaited_once_with(report.id)

    @pytest.mark.asyncio
    async def test_upstream_failure_does_not_abort_batch(self, session, extractor, ufo_definitions):
        failing, working = make_report(title="bad"), make_report(title="good")

        async def extract(report_id, text, defs):
            if report_id == failing.id:
                raise UpstreamServiceError("completion service down")
            return [_candidate(report_id)]

        extractor.extract.side_effect = extract
        service = build_service(session, extractor, [failing, working], ufo_definitions)

        response = await service.run()

        assert response.success is True
        assert [r.status for r in response.results] == ["error", "success"]
        assert response.results[0].error == "completion service down"
        service.report_repo.mark_extracted.assert_awaited_once_with(working.id)

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back_that_report_only(
        self, session, extractor, ufo_definitions
    ):
        reports = [make_report(), make_report()]
        extractor.extract.side_effect = lambda report_id, text, defs: [_candidate(report_id)]
        service = build_service(session, extractor, reports, ufo_definitions)
        service.attribute_repo.upsert_attributes.side_effect = [
            OperationalError("INSERT", {}, Exception("connection lost")),
            {(reports[1].id, "shape")},
        ]

        response = await service.run()

        assert [r.status for r in response.results] == ["error", "success"]
        session.rollback.assert_awaited_once()
        assert session.commit.await_count == 1

    @pytest.mark.asyncio
    async def test_created_by_is_stamped_on_candidates(self, session, extractor, ufo_definitions):
        report = make_report()
        user_id = uuid.uuid4()
        extractor.extract.return_value = [_candidate(report.id)]
        service = build_service(session, extractor, [report], ufo_definitions)

        await service.run(created_by=user_id)

        stored = service.attribute_repo.upsert_attributes.await_args.args[0]
        assert stored[0].created_by == user_id

    @pytest.mark.asyncio
    async def test_definitions_are_loaded_once_per_category(
        self, session, extractor, ufo_definitions
    ):
        reports = [make_report(), make_report(), make_report(category="dreams")]
        extractor.extract.return_value = []
        service = build_service(session, extractor, reports, ufo_definitions)

        await service.run()

        assert service.registry.definitions_for.await_count == 2
