"""Composite similarity models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.schemas.base import CamelModel


class SimilarityScore(CamelModel):
    """Pairwise score between a source and a candidate report."""

    hybrid_score: int = Field(ge=0, le=100)
    tag_location_score: float
    attribute_score: float = Field(ge=0.0, le=100.0)
    shared_attributes: list[str] = Field(default_factory=list)
    shared_tags: list[str] = Field(default_factory=list)
    distance_km: Optional[float] = None

    @property
    def shared_attribute_count(self) -> int:
        return len(self.shared_attributes)


class SimilarReport(CamelModel):
    id: UUID
    title: str
    category: str
    location: Optional[str] = None
    date: Optional[datetime] = None
    teaser: str = ""
    hybrid_score: int
    tag_location_score: float
    attribute_score: float
    shared_attribute_count: int
    shared_attributes: list[str]
    match_reasons: list[str]


class SimilarityStats(CamelModel):
    total_candidates: int
    average_hybrid_score: int
    average_shared_attributes: int


class SimilarityWeights(CamelModel):
    tag_location: float
    attributes: float


class SimilarReportsResponse(CamelModel):
    similar: list[SimilarReport]
    stats: SimilarityStats
    algorithm: str = "hybrid_tag_location_attributes"
    weights: SimilarityWeights
