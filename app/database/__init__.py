"""Database models."""

from app.database.models import (
    AttributeDefinition,
    Category,
    ExtractedAttribute,
    Report,
    SearchAnalyticsEvent,
)

__all__ = [
    "AttributeDefinition",
    "Category",
    "ExtractedAttribute",
    "Report",
    "SearchAnalyticsEvent",
]
