"""
SQLAlchemy models for the template catalog.

Generation only reads these tables; catalog CRUD lives in the editor
service.
"""

from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, ForeignKey, ForeignKeyConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from src.database.connection import Base


class TenantRecord(Base):
    __tablename__ = "tenants"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    default_theme_id = Column(String(100))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)


class EnvironmentRecord(Base):
    __tablename__ = "environments"

    tenant_id = Column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True)
    id = Column(String(100), primary_key=True)
    name = Column(String(255))


class ThemeRecord(Base):
    __tablename__ = "themes"

    tenant_id = Column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True)
    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    document_styles = Column(JSONB, nullable=False, default=dict)
    page_settings = Column(JSONB)
    block_style_presets = Column(JSONB, nullable=False, default=dict)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class DocumentTemplateRecord(Base):
    __tablename__ = "document_templates"

    tenant_id = Column(String(100), ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True)
    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    default_theme_id = Column(String(100))
    data_model = Column(JSONB)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)


class TemplateVariantRecord(Base):
    __tablename__ = "template_variants"

    tenant_id = Column(String(100), primary_key=True)
    template_id = Column(String(100), primary_key=True)
    id = Column(String(100), primary_key=True)
    attributes = Column(JSONB, nullable=False, default=dict)
    is_default = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "template_id"],
            ["document_templates.tenant_id", "document_templates.id"],
            ondelete="CASCADE",
        ),
    )


class TemplateVersionRecord(Base):
    __tablename__ = "template_versions"

    tenant_id = Column(String(100), primary_key=True)
    template_id = Column(String(100), primary_key=True)
    variant_id = Column(String(100), primary_key=True)
    id = Column(Integer, primary_key=True)
    status = Column(String(20), nullable=False)
    template_model = Column(JSONB)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    published_at = Column(TIMESTAMP(timezone=True))
    archived_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "template_id", "variant_id"],
            ["template_variants.tenant_id", "template_variants.template_id", "template_variants.id"],
            ondelete="CASCADE",
        ),
        # At most one draft per variant
        Index(
            "ux_template_versions_one_draft",
            "tenant_id", "template_id", "variant_id",
            unique=True,
            postgresql_where="status = 'DRAFT'",
        ),
    )


class EnvironmentActivationRecord(Base):
    __tablename__ = "environment_activations"

    tenant_id = Column(String(100), primary_key=True)
    template_id = Column(String(100), primary_key=True)
    variant_id = Column(String(100), primary_key=True)
    environment_id = Column(String(100), primary_key=True)
    version_id = Column(Integer, nullable=False)
    activated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "template_id", "variant_id", "version_id"],
            [
                "template_versions.tenant_id",
                "template_versions.template_id",
                "template_versions.variant_id",
                "template_versions.id",
            ],
            ondelete="CASCADE",
        ),
        ForeignKeyConstraint(
            ["tenant_id", "environment_id"],
            ["environments.tenant_id", "environments.id"],
            ondelete="CASCADE",
        ),
    )
