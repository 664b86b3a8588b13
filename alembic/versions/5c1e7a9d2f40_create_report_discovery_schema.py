"""Create report discovery schema

Revision ID: 5c1e7a9d2f40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5c1e7a9d2f40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIMENSION = 384


def upgrade() -> None:
    """Upgrade schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    op.create_table('categories',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table('attribute_schema',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('category_slug', sa.String(), nullable=True, comment='NULL means the definition applies to every category'),
        sa.Column('data_type', sa.String(), nullable=False, server_default='text'),
        sa.Column('allowed_values', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_searchable', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_filterable', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['category_slug'], ['categories.slug'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category_slug', 'key', name='uq_attribute_schema_category_key'),
    )
    op.create_index('ix_attribute_schema_key', 'attribute_schema', ['key'])

    op.create_table('reports',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('tags', postgresql.ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('location_text', sa.String(), nullable=True),
        sa.Column('location_lat', sa.Float(), nullable=True),
        sa.Column('location_lng', sa.Float(), nullable=True),
        sa.Column('occurred_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('witness_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('visibility', sa.String(), nullable=False, server_default='public'),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSION), nullable=True),
        sa.Column('attributes_extracted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            'search_vector',
            postgresql.TSVECTOR(),
            sa.Computed("to_tsvector('english', coalesce(title, '') || ' ' || coalesce(body, ''))", persisted=True),
        ),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['category'], ['categories.slug']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reports_search_vector', 'reports', ['search_vector'], postgresql_using='gin')
    op.create_index('ix_reports_category_visibility', 'reports', ['category', 'visibility'])

    op.create_table('report_attributes',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('report_id', sa.UUID(), nullable=False),
        sa.Column('attribute_key', sa.String(), nullable=False),
        sa.Column('attribute_value', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('source', sa.String(), nullable=False, server_default='ai_extracted'),
        sa.Column('evidence', sa.Text(), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_id', 'attribute_key', name='uq_report_attributes_report_key'),
    )
    op.create_index('ix_report_attributes_key_value', 'report_attributes', ['attribute_key', 'attribute_value'])

    op.create_table('search_analytics_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('query_text', sa.Text(), nullable=False),
        sa.Column('result_count', sa.Integer(), nullable=False),
        sa.Column('vector_weight', sa.Float(), nullable=False),
        sa.Column('fts_weight', sa.Float(), nullable=False),
        sa.Column('search_type', sa.String(), nullable=False),
        sa.Column('embedding_used', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('latency_ms', sa.Integer(), nullable=False),
        sa.Column('intent', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('search_analytics_events')
    op.drop_index('ix_report_attributes_key_value', table_name='report_attributes')
    op.drop_table('report_attributes')
    op.drop_index('ix_reports_category_visibility', table_name='reports')
    op.drop_index('ix_reports_search_vector', table_name='reports')
    op.drop_table('reports')
    op.drop_index('ix_attribute_schema_key', table_name='attribute_schema')
    op.drop_table('attribute_schema')
    op.drop_table('categories')
