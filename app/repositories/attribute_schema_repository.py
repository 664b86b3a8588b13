from typing import List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import AttributeDefinition
from app.repositories.base_repository import BaseRepository


class AttributeSchemaRepository(BaseRepository[AttributeDefinition]):
    """Repository for attribute definitions (the attribute_schema table)."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AttributeDefinition)

    async def get_for_category(
        self, category_slug: str, searchable_only: bool = False
    ) -> List[AttributeDefinition]:
        """Definitions scoped to the category plus global ones, by sort order."""
        query = select(AttributeDefinition).where(
            or_(
                AttributeDefinition.category_slug == category_slug,
                AttributeDefinition.category_slug.is_(None),
            )
        )
        if searchable_only:
            query = query.where(AttributeDefinition.is_searchable.is_(True))

        query = query.order_by(
            AttributeDefinition.sort_order,
            AttributeDefinition.key,
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_definition(
        self, key: str, category_slug: Optional[str] = None
    ) -> Optional[AttributeDefinition]:
        """Exact-scope lookup: category_slug None targets the global definition."""
        query = select(AttributeDefinition).where(AttributeDefinition.key == key)
        if category_slug is None:
            query = query.where(AttributeDefinition.category_slug.is_(None))
        else:
            query = query.where(AttributeDefinition.category_slug == category_slug)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def delete_definition(self, definition_id) -> int:
        result = await self.session.execute(
            delete(AttributeDefinition).where(AttributeDefinition.id == definition_id)
        )
        await self.session.flush()
        return result.rowcount or 0
