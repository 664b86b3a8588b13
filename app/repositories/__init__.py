"""Repository layer modules."""

from app.repositories.attribute_repository import AttributeRepository
from app.repositories.attribute_schema_repository import AttributeSchemaRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.report_repository import ReportRepository
from app.repositories.search_analytics_repository import SearchAnalyticsRepository

__all__ = [
    "AttributeRepository",
    "AttributeSchemaRepository",
    "CategoryRepository",
    "ReportRepository",
    "SearchAnalyticsRepository",
]
