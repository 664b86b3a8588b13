"""User corrections of extracted attributes."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ReportNotFoundError, SchemaMismatchError, ValidationError
from app.database.models import ExtractedAttribute
from app.repositories.attribute_repository import AttributeRepository
from app.repositories.report_repository import ReportRepository
from app.schemas.attributes import ExtractedAttributeCandidate
from app.services.extraction.attribute_extractor import normalize_value
from app.services.extraction.fuzzy_validator import FuzzyValidator
from app.services.schema_registry import AttributeSchemaRegistry
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AttributeService:
    """Confirm or correct a report's attribute on behalf of a user."""

    def __init__(self, session: AsyncSession, validator: Optional[FuzzyValidator] = None):
        self.session = session
        self.report_repo = ReportRepository(session)
        self.attribute_repo = AttributeRepository(session)
        self.registry = AttributeSchemaRegistry(session)
        self.validator = validator or FuzzyValidator()

    async def confirm_attribute(
        self,
        report_id: UUID,
        key: str,
        value: str,
        user_id: Optional[UUID] = None,
    ) -> ExtractedAttribute:
        """Store a user-confirmed value, superseding any AI-extracted one.

        Raises:
            ReportNotFoundError: If the report does not exist
            ValidationError: If the key is unknown for the report's category
                or the value does not fit the definition
        """
        report = await self.report_repo.get_by_id(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)

        definitions = await self.registry.definitions_for(report.category)
        definition = next((d for d in definitions if d.key == key), None)
        if definition is None:
            raise ValidationError(
                f"Attribute '{key}' is not defined for category '{report.category}'"
            )

        try:
            stored_value, _ = normalize_value(definition, value, 1.0, self.validator)
        except SchemaMismatchError as e:
            raise ValidationError(f"Invalid value for '{key}': {e.reason}", e) from e

        await self.attribute_repo.upsert_attributes(
            [
                ExtractedAttributeCandidate(
                    report_id=report_id,
                    key=key,
                    value=stored_value,
                    confidence=1.0,
                    source="user_confirmed",
                    created_by=user_id,
                )
            ]
        )
        await self.session.commit()

        LOGGER.info(
            "Attribute confirmed by user",
            extra={"report_id": str(report_id), "key": key, "value": stored_value},
        )
        return await self.attribute_repo.get_one(report_id, key)
