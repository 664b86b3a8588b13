"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Computed,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TSVECTOR, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.config import settings
from app.core.database import Base


class Category(Base):
    """Report category (e.g. ufo, dreams)."""

    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )


class AttributeDefinition(Base):
    """Typed attribute definition, global or scoped to one category."""

    __tablename__ = "attribute_schema"
    __table_args__ = (
        UniqueConstraint("category_slug", "key", name="uq_attribute_schema_category_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    category_slug: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("categories.slug", ondelete="CASCADE"),
        nullable=True,
        comment="NULL means the definition applies to every category",
    )
    data_type: Mapped[str] = mapped_column(
        String, nullable=False, default="text"
    )  # text | enum | boolean | number
    allowed_values: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    is_searchable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_filterable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )


class Report(Base):
    """First-person narrative report."""

    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_search_vector", "search_vector", postgresql_using="gin"),
        Index("ix_reports_category_visibility", "category", "visibility"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    category: Mapped[str] = mapped_column(
        String, ForeignKey("categories.slug"), nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    location_text: Mapped[str | None] = mapped_column(String, nullable=True)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    occurred_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    witness_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visibility: Mapped[str] = mapped_column(
        String, nullable=False, default="public"
    )  # public | private | followers
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding.dimension), nullable=True
    )
    attributes_extracted_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    search_vector = mapped_column(
        TSVECTOR,
        Computed(
            "to_tsvector('english', coalesce(title, '') || ' ' || coalesce(body, ''))",
            persisted=True,
        ),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    attributes: Mapped[list["ExtractedAttribute"]] = relationship(
        "ExtractedAttribute", back_populates="report", cascade="all, delete-orphan"
    )


class ExtractedAttribute(Base):
    """Current value of one attribute for one report."""

    __tablename__ = "report_attributes"
    __table_args__ = (
        UniqueConstraint("report_id", "attribute_key", name="uq_report_attributes_report_key"),
        Index("ix_report_attributes_key_value", "attribute_key", "attribute_value"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    report_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    attribute_key: Mapped[str] = mapped_column(String, nullable=False)
    attribute_value: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    source: Mapped[str] = mapped_column(
        String, nullable=False, default="ai_extracted"
    )  # ai_extracted | user_confirmed
    evidence: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    report: Mapped["Report"] = relationship("Report", back_populates="attributes")


class SearchAnalyticsEvent(Base):
    """One executed search, recorded for analytics dashboards."""

    __tablename__ = "search_analytics_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    query_text: Mapped[str] = mapped_column(Text, nullable=False)
    result_count: Mapped[int] = mapped_column(Integer, nullable=False)
    vector_weight: Mapped[float] = mapped_column(Float, nullable=False)
    fts_weight: Mapped[float] = mapped_column(Float, nullable=False)
    search_type: Mapped[str] = mapped_column(String, nullable=False)
    embedding_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    intent: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
