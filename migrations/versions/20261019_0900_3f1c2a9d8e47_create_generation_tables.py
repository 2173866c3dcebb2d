"""create_generation_tables

Revision ID: 3f1c2a9d8e47
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the template catalog tables, generation batches, and the
range-partitioned generation_requests, generation_items and documents
tables. Partitions themselves are created by partition maintenance.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision = '3f1c2a9d8e47'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Template catalog (read by generation, written by the editor service)
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('default_theme_id', sa.String(100)),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_table(
        'environments',
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(255)),
    )
    op.create_table(
        'themes',
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('document_styles', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('page_settings', JSONB),
        sa.Column('block_style_presets', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_table(
        'document_templates',
        sa.Column('tenant_id', sa.String(100), sa.ForeignKey('tenants.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('default_theme_id', sa.String(100)),
        sa.Column('data_model', JSONB),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_table(
        'template_variants',
        sa.Column('tenant_id', sa.String(100), primary_key=True),
        sa.Column('template_id', sa.String(100), primary_key=True),
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('attributes', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_default', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(
            ['tenant_id', 'template_id'],
            ['document_templates.tenant_id', 'document_templates.id'],
            ondelete='CASCADE',
        ),
    )
    op.create_table(
        'template_versions',
        sa.Column('tenant_id', sa.String(100), primary_key=True),
        sa.Column('template_id', sa.String(100), primary_key=True),
        sa.Column('variant_id', sa.String(100), primary_key=True),
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('template_model', JSONB),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('published_at', sa.TIMESTAMP(timezone=True)),
        sa.Column('archived_at', sa.TIMESTAMP(timezone=True)),
        sa.ForeignKeyConstraint(
            ['tenant_id', 'template_id', 'variant_id'],
            ['template_variants.tenant_id', 'template_variants.template_id', 'template_variants.id'],
            ondelete='CASCADE',
        ),
        sa.CheckConstraint("status IN ('DRAFT', 'PUBLISHED', 'ARCHIVED')", name='ck_template_versions_status'),
    )
    # At most one draft per variant
    op.create_index(
        'ux_template_versions_one_draft',
        'template_versions',
        ['tenant_id', 'template_id', 'variant_id'],
        unique=True,
        postgresql_where=sa.text("status = 'DRAFT'"),
    )
    op.create_table(
        'environment_activations',
        sa.Column('tenant_id', sa.String(100), primary_key=True),
        sa.Column('template_id', sa.String(100), primary_key=True),
        sa.Column('variant_id', sa.String(100), primary_key=True),
        sa.Column('environment_id', sa.String(100), primary_key=True),
        sa.Column('version_id', sa.Integer, nullable=False),
        sa.Column('activated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(
            ['tenant_id', 'template_id', 'variant_id', 'version_id'],
            ['template_versions.tenant_id', 'template_versions.template_id',
             'template_versions.variant_id', 'template_versions.id'],
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['tenant_id', 'environment_id'],
            ['environments.tenant_id', 'environments.id'],
            ondelete='CASCADE',
        ),
    )

    # Generation batches
    op.create_table(
        'generation_batches',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', sa.String(100), nullable=False),
        sa.Column('total_count', sa.Integer, nullable=False),
        sa.Column('completed_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('failed_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True)),
    )
    op.create_index('ix_generation_batches_tenant_id', 'generation_batches', ['tenant_id'])

    # Partitioned tables (monthly ranges on created_at)
    op.execute("""
        CREATE TABLE generation_requests (
            id UUID NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            tenant_id VARCHAR(100) NOT NULL,
            job_kind VARCHAR(20) NOT NULL,
            status VARCHAR(20) NOT NULL,
            total_count INTEGER NOT NULL,
            completed_count INTEGER NOT NULL DEFAULT 0,
            failed_count INTEGER NOT NULL DEFAULT 0,
            claimed_by VARCHAR(255),
            claimed_at TIMESTAMPTZ,
            batch_id UUID,
            correlation_id VARCHAR(255),
            error_message TEXT,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            expires_at TIMESTAMPTZ,
            PRIMARY KEY (id, created_at),
            CONSTRAINT ck_generation_requests_counts CHECK (completed_count + failed_count <= total_count),
            CONSTRAINT ck_generation_requests_status
                CHECK (status IN ('PENDING', 'IN_PROGRESS', 'COMPLETED', 'FAILED', 'CANCELLED'))
        ) PARTITION BY RANGE (created_at)
    """)
    op.execute("CREATE INDEX ix_generation_requests_status_created ON generation_requests (status, created_at)")
    op.execute("CREATE INDEX ix_generation_requests_tenant_created ON generation_requests (tenant_id, created_at)")
    op.execute("CREATE INDEX ix_generation_requests_batch ON generation_requests (batch_id)")
    op.execute("CREATE INDEX ix_generation_requests_expires ON generation_requests (expires_at)")

    op.execute("""
        CREATE TABLE generation_items (
            id UUID NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            request_id UUID NOT NULL,
            template_id VARCHAR(100) NOT NULL,
            variant_id VARCHAR(100),
            version_id INTEGER,
            environment_id VARCHAR(100),
            variant_attributes JSONB,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            filename VARCHAR(255),
            correlation_id VARCHAR(255),
            status VARCHAR(20) NOT NULL,
            document_id UUID,
            error_message TEXT,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            PRIMARY KEY (id, created_at),
            CONSTRAINT ck_generation_items_version_or_environment
                CHECK ((version_id IS NULL) <> (environment_id IS NULL)),
            CONSTRAINT ck_generation_items_status
                CHECK (status IN ('PENDING', 'IN_PROGRESS', 'COMPLETED', 'FAILED'))
        ) PARTITION BY RANGE (created_at)
    """)
    op.execute("CREATE INDEX ix_generation_items_request_status ON generation_items (request_id, status)")

    op.execute("""
        CREATE TABLE documents (
            id UUID NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            tenant_id VARCHAR(100) NOT NULL,
            filename VARCHAR(255) NOT NULL,
            content_type VARCHAR(100) NOT NULL,
            size_bytes INTEGER NOT NULL,
            content BYTEA NOT NULL,
            template_id VARCHAR(100),
            variant_id VARCHAR(100),
            version_id INTEGER,
            correlation_id VARCHAR(255),
            PRIMARY KEY (id, created_at)
        ) PARTITION BY RANGE (created_at)
    """)
    op.execute("CREATE INDEX ix_documents_tenant_created ON documents (tenant_id, created_at)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS documents CASCADE")
    op.execute("DROP TABLE IF EXISTS generation_items CASCADE")
    op.execute("DROP TABLE IF EXISTS generation_requests CASCADE")
    op.drop_index('ix_generation_batches_tenant_id', table_name='generation_batches')
    op.drop_table('generation_batches')
    op.drop_table('environment_activations')
    op.drop_index('ux_template_versions_one_draft', table_name='template_versions')
    op.drop_table('template_versions')
    op.drop_table('template_variants')
    op.drop_table('document_templates')
    op.drop_table('themes')
    op.drop_table('environments')
    op.drop_table('tenants')
