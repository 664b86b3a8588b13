from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import SearchAnalyticsEvent
from app.repositories.base_repository import BaseRepository


class SearchAnalyticsRepository(BaseRepository[SearchAnalyticsEvent]):
    """Repository for recorded search events."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SearchAnalyticsEvent)

    async def record(self, **fields) -> SearchAnalyticsEvent:
        event = SearchAnalyticsEvent(**fields)
        self.session.add(event)
        await self.session.commit()
        return event
