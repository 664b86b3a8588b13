"""Attribute schema registry.

Holds, per category, the typed attribute definitions the extractor and the
correction endpoint validate against.
"""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import CategoryNotFoundError, NotFoundError, SchemaInUseError
from app.repositories.attribute_repository import AttributeRepository
from app.repositories.attribute_schema_repository import AttributeSchemaRepository
from app.repositories.category_repository import CategoryRepository
from app.schemas.attributes import AttributeDefinitionSchema
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AttributeSchemaRegistry:
    """Read and administer attribute definitions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.category_repo = CategoryRepository(session)
        self.schema_repo = AttributeSchemaRepository(session)
        self.attribute_repo = AttributeRepository(session)

    async def definitions_for(
        self, category: str, searchable_only: bool = False
    ) -> List[AttributeDefinitionSchema]:
        """Category-scoped and global definitions, ordered by sort order.

        An empty list is a valid answer: the category simply has no
        structured attributes yet.

        Raises:
            CategoryNotFoundError: If the category slug is unknown
        """
        if not await self.category_repo.exists(category):
            raise CategoryNotFoundError(category)

        rows = await self.schema_repo.get_for_category(category, searchable_only=searchable_only)
        definitions = [AttributeDefinitionSchema.model_validate(row) for row in rows]

        LOGGER.debug(
            "Loaded attribute definitions",
            extra={"category": category, "count": len(definitions)},
        )
        return definitions

    async def delete_definition(
        self, key: str, category_slug: Optional[str] = None, cascade: bool = False
    ) -> int:
        """Delete a definition, refusing while extracted attributes reference it.

        Args:
            key: Attribute key
            category_slug: Scope of the definition (None = global)
            cascade: Delete referencing extracted attributes first

        Returns:
            Number of extracted attributes deleted by the cascade

        Raises:
            NotFoundError: If no definition exists in that scope
            SchemaInUseError: If the key is referenced and cascade is False
        """
        definition = await self.schema_repo.get_definition(key, category_slug)
        if definition is None:
            scope = category_slug or "global"
            raise NotFoundError(f"Attribute definition '{key}' ({scope}) not found")

        usage_count = await self.attribute_repo.count_usage(key, category_slug)
        if usage_count and not cascade:
            LOGGER.warning(
                "Refusing to delete attribute definition in use",
                extra={"key": key, "category": category_slug, "usage_count": usage_count},
            )
            raise SchemaInUseError(key, usage_count)

        deleted_attributes = 0
        if usage_count:
            deleted_attributes = await self.attribute_repo.delete_by_key(key, category_slug)

        await self.schema_repo.delete_definition(definition.id)
        await self.session.commit()

        LOGGER.info(
            "Deleted attribute definition",
            extra={
                "key": key,
                "category": category_slug,
                "deleted_attributes": deleted_attributes,
            },
        )
        return deleted_attributes
