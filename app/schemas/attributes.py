"""Attribute schema, extraction and backfill models."""

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.base import CamelModel

DataType = Literal["text", "enum", "boolean", "number"]
AttributeSource = Literal["ai_extracted", "user_confirmed"]
BackfillStatus = Literal["success", "skipped", "error"]


class AttributeDefinitionSchema(BaseModel):
    """Typed definition of one attribute key."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    data_type: DataType = "text"
    allowed_values: Optional[list[str]] = None
    category_slug: Optional[str] = Field(
        default=None, description="None = global definition"
    )
    display_name: Optional[str] = None
    is_searchable: bool = True
    is_filterable: bool = False
    sort_order: int = 0

    @property
    def is_global(self) -> bool:
        return self.category_slug is None

    @property
    def is_enum(self) -> bool:
        return self.data_type == "enum"


class FuzzyValidationResult(BaseModel):
    """Outcome of validating a raw value against a controlled vocabulary."""

    accepted: bool
    corrected_value: Optional[str] = None
    similarity: float = Field(ge=0.0, le=1.0)
    corrected: bool = Field(
        default=False,
        description="True when the stored value differs from the raw one (case-insensitive)",
    )


class ExtractedAttributeCandidate(BaseModel):
    """An attribute value that passed validation and is ready to be stored."""

    report_id: UUID
    key: str
    value: str
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: Optional[str] = None
    source: AttributeSource = "ai_extracted"
    created_by: Optional[UUID] = None


class ExtractedAttributeView(CamelModel):
    """Stored attribute as returned over HTTP."""

    model_config = ConfigDict(from_attributes=True)

    key: str = Field(validation_alias="attribute_key")
    value: str = Field(validation_alias="attribute_value")
    confidence: float
    source: AttributeSource
    evidence: Optional[str] = None


class AttributeConfirmationRequest(CamelModel):
    """User correction of a single attribute value."""

    value: str = Field(min_length=1)
    user_id: Optional[UUID] = None


class AttributeSummary(CamelModel):
    key: str
    value: str
    confidence: float


class BackfillRequest(CamelModel):
    """Options for the attribute backfill batch."""

    limit: Optional[int] = Field(default=None, ge=1, le=500)
    force: bool = Field(
        default=False, description="Re-extract reports that already carry attributes"
    )
    created_by: Optional[UUID] = None


class BackfillItemResult(CamelModel):
    """Per-report outcome of a backfill run."""

    report_id: UUID
    title: Optional[str] = None
    status: BackfillStatus
    attributes_extracted: Optional[int] = None
    attributes: Optional[list[AttributeSummary]] = None
    reason: Optional[str] = None
    error: Optional[str] = None


class BackfillResponse(CamelModel):
    success: bool = True
    processed: int
    results: list[BackfillItemResult]


class DeleteDefinitionResponse(CamelModel):
    success: bool = True
    key: str
    category: Optional[str] = None
    deleted_attributes: int = 0
    message: str
