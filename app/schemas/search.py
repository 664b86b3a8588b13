"""Query intent and search models."""

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import ConfigDict, Field, model_validator

from app.schemas.base import CamelModel

SearchType = Literal["hybrid", "lexical_fallback", "recent"]


class RetrievalIntent(CamelModel):
    """How much to trust semantic versus lexical retrieval for one query."""

    is_question: bool = False
    is_natural_language: bool = False
    is_keyword: bool = False
    confidence: float = Field(ge=0.0, le=1.0)
    vector_weight: float = Field(ge=0.0, le=1.0)
    fts_weight: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "RetrievalIntent":
        if abs(self.vector_weight + self.fts_weight - 1.0) > 1e-9:
            raise ValueError(
                f"vector_weight + fts_weight must equal 1 (got {self.vector_weight} + {self.fts_weight})"
            )
        return self

    @classmethod
    def from_vector_weight(cls, vector_weight: float, **flags) -> "RetrievalIntent":
        """Build an intent whose fts weight is the exact complement."""
        vector_weight = min(1.0, max(0.0, vector_weight))
        return cls(vector_weight=vector_weight, fts_weight=1.0 - vector_weight, **flags)


class SearchFilters(CamelModel):
    """Structured refinements applied after candidate retrieval."""

    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    exclude_tags: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    witnesses_only: bool = False
    limit: int = Field(default=20, ge=1)

    @property
    def category_filter(self) -> Optional[str]:
        """Single category pushed down into the hybrid search, if any."""
        return self.categories[0] if len(self.categories) == 1 else None


class SearchResultItem(CamelModel):
    """One report in a search result list."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    category: str
    story_text: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    location_text: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    occurred_at: Optional[datetime] = None
    witness_count: int = 0
    user_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    combined_score: float = 0.0


class SearchMetadata(CamelModel):
    query: str
    intent: RetrievalIntent
    result_count: int
    execution_time: int = Field(description="Milliseconds")
    search_type: SearchType
    embedding_used: bool = False


class SearchResponse(CamelModel):
    results: list[SearchResultItem]
    metadata: SearchMetadata
