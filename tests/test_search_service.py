"""Unit tests for search orchestration and analytics recording."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.schemas.search import RetrievalIntent, SearchFilters, SearchMetadata
from app.services.retrieval.embedding_service import EmbeddingService
from app.services.retrieval.hybrid_retriever import RetrievalResult
from app.services.retrieval.search_analytics import SearchAnalyticsRecorder
from app.services.retrieval.search_service import SearchService
from tests.conftest import make_report


@pytest.fixture
def analytics():
    return MagicMock(spec=SearchAnalyticsRecorder)


@pytest.fixture
def service(analytics):
    service = SearchService(MagicMock(), AsyncMock(spec=EmbeddingService), analytics=analytics)
    service.report_repo = AsyncMock()
    service.retriever = AsyncMock()
    return service


class TestSearchService:
    """Tests for SearchService."""

    @pytest.mark.asyncio
    async def test_query_is_classified_retrieved_and_recorded(self, service, analytics):
        report = make_report(tags=["triangle"], witness_count=1)
        service.retriever.retrieve.return_value = RetrievalResult(
            results=[(report, 0.0123)], search_type="hybrid", embedding_used=True
        )

        response = await service.search("  UFO sightings near me ", SearchFilters())

        query, intent, _ = service.retriever.retrieve.await_args.args
        assert query == "UFO sightings near me"
        assert intent.is_natural_language is True
        assert response.metadata.result_count == 1
        assert response.metadata.search_type == "hybrid"
        assert response.metadata.embedding_used is True
        assert response.metadata.execution_time >= 0
        assert response.results[0].id == report.id
        assert response.results[0].story_text == report.body
        assert response.results[0].combined_score == 0.0123
        analytics.record_in_background.assert_called_once_with(response.metadata)

    @pytest.mark.asyncio
    async def test_empty_query_returns_recent_reports(self, service, analytics):
        reports = [make_report(witness_count=1), make_report(), make_report(witness_count=3)]
        service.report_repo.get_recent.return_value = reports

        response = await service.search("   ", SearchFilters(witnesses_only=True, limit=5))

        assert response.metadata.search_type == "recent"
        assert response.metadata.query == ""
        assert response.metadata.intent.vector_weight == pytest.approx(0.6)
        assert response.metadata.intent.confidence == 1.0
        assert [r.id for r in response.results] == [reports[0].id, reports[2].id]
        service.retriever.retrieve.assert_not_called()
        analytics.record_in_background.assert_not_called()

    @pytest.mark.asyncio
    async def test_response_serialises_camel_case(self, service):
        service.retriever.retrieve.return_value = RetrievalResult(
            results=[], search_type="lexical_fallback", embedding_used=False
        )

        response = await service.search("triangle", SearchFilters())
        payload = response.model_dump(by_alias=True)

        assert set(payload["metadata"]) >= {
            "query", "intent", "resultCount", "executionTime", "searchType", "embeddingUsed",
        }
        assert "vectorWeight" in payload["metadata"]["intent"]


def _metadata() -> SearchMetadata:
    return SearchMetadata(
        query="triangle",
        intent=RetrievalIntent.from_vector_weight(0.3, is_keyword=True, confidence=0.9),
        result_count=3,
        execution_time=12,
        search_type="hybrid",
        embedding_used=True,
    )


class _SessionFactory:
    def __init__(self, session):
        self.session = session

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


class TestSearchAnalyticsRecorder:
    """Tests for SearchAnalyticsRecorder."""

    @pytest.mark.asyncio
    async def test_record_persists_event(self):
        session = MagicMock()
        with patch(
            "app.services.retrieval.search_analytics.SearchAnalyticsRepository"
        ) as repo_cls:
            repo_cls.return_value.record = AsyncMock()
            await SearchAnalyticsRecorder(_SessionFactory(session)).record(_metadata())

        repo_cls.assert_called_once_with(session)
        fields = repo_cls.return_value.record.await_args.kwargs
        assert fields["query_text"] == "triangle"
        assert fields["vector_weight"] == pytest.approx(0.3)
        assert fields["latency_ms"] == 12

    @pytest.mark.asyncio
    async def test_record_failures_are_swallowed(self):
        with patch(
            "app.services.retrieval.search_analytics.SearchAnalyticsRepository"
        ) as repo_cls:
            repo_cls.return_value.record = AsyncMock(side_effect=RuntimeError("db down"))
            await SearchAnalyticsRecorder(_SessionFactory(MagicMock())).record(_metadata())

    @pytest.mark.asyncio
    async def test_record_in_background_runs_detached(self):
        recorder = SearchAnalyticsRecorder(_SessionFactory(MagicMock()))
        recorder.record = AsyncMock()

        task = recorder.record_in_background(_metadata())
        await asyncio.wait_for(task, timeout=1)

        recorder.record.assert_awaited_once()
