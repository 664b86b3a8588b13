"""Cross-report pattern (correlation) models.

All of these are derived, read-only views over the attribute store. They
are safe to recompute at any time.
"""

from typing import Optional
from uuid import UUID

from pydantic import Field

from app.schemas.base import CamelModel


class CorrelationPair(CamelModel):
    """Association rule `attribute1=value1 => attribute2=value2`."""

    attribute1: str
    value1: str
    attribute2: str
    value2: str
    co_count: int
    support: float = Field(description="Fraction of the corpus reporting both values")
    confidence: float = Field(description="P(attribute2=value2 | attribute1=value1)")
    description: str = ""


class GeographicCluster(CamelModel):
    latitude: float
    longitude: float
    count: int
    radius: float
    attribute: str
    value: str


class TemporalBucket(CamelModel):
    bucket: str
    count: int
    percentage: float


class TemporalDistribution(CamelModel):
    attribute: str
    value: str
    total: int
    time_of_day: list[TemporalBucket] = Field(default_factory=list)
    day_of_week: list[TemporalBucket] = Field(default_factory=list)
    season: list[TemporalBucket] = Field(default_factory=list)


class CoOccurrence(CamelModel):
    attribute1: str
    value1: str
    attribute2: str
    value2: str
    count: int
    correlation: float


class ConfidenceStats(CamelModel):
    attribute: str
    value: str
    avg_confidence: float
    ai_extracted_count: int
    user_confirmed_count: int
    total_count: int
    confirmation_rate: float


class ValueDistributionEntry(CamelModel):
    value: str
    count: int
    percentage: float


class AttributeSimilarReport(CamelModel):
    report_id: UUID
    shared_attribute_count: int
    similarity: float
    shared_attributes: list[str]


class PatternInsights(CamelModel):
    correlations: dict[str, CorrelationPair] = Field(default_factory=dict)
    geographic: list[GeographicCluster] = Field(default_factory=list)
    temporal: list[TemporalDistribution] = Field(default_factory=list)
    co_occurrence: list[CoOccurrence] = Field(default_factory=list)
    value_distribution: dict[str, list[ValueDistributionEntry]] = Field(default_factory=dict)
    similar: list[AttributeSimilarReport] = Field(default_factory=list)
    confidence_stats: dict[str, ConfidenceStats] = Field(default_factory=dict)


class PatternInsightsResponse(CamelModel):
    success: bool = True
    has_patterns: bool
    report_id: UUID
    attribute_count: int = 0
    message: Optional[str] = None
    insights: Optional[PatternInsights] = None
