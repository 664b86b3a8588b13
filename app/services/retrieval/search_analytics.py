"""Fire-and-forget search analytics."""

import asyncio
from typing import Optional, Set

from app.core.database import async_session_maker
from app.repositories.search_analytics_repository import SearchAnalyticsRepository
from app.schemas.search import SearchMetadata
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Strong references so pending tasks are not garbage collected
_pending_tasks: Set[asyncio.Task] = set()


class SearchAnalyticsRecorder:
    """Record search facts without ever failing or delaying the search."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or async_session_maker

    async def record(self, metadata: SearchMetadata) -> None:
        """Persist one search event on its own session; errors are logged."""
        try:
            async with self.session_factory() as session:
                await SearchAnalyticsRepository(session).record(
                    query_text=metadata.query,
                    result_count=metadata.result_count,
                    vector_weight=metadata.intent.vector_weight,
                    fts_weight=metadata.intent.fts_weight,
                    search_type=metadata.search_type,
                    embedding_used=metadata.embedding_used,
                    latency_ms=metadata.execution_time,
                    intent=metadata.intent.model_dump(),
                )
        except Exception as e:
            LOGGER.warning(
                "Failed to record search analytics",
                extra={"query": metadata.query[:100], "error": str(e)},
            )

    def record_in_background(self, metadata: SearchMetadata) -> Optional[asyncio.Task]:
        try:
            task = asyncio.get_running_loop().create_task(self.record(metadata))
        except RuntimeError:
            LOGGER.warning("No running event loop, search analytics skipped")
            return None
        _pending_tasks.add(task)
        task.add_done_callback(_pending_tasks.discard)
        return task
