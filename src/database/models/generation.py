"""
SQLAlchemy models for document generation.

generation_requests, generation_items and documents are range-partitioned
by created_at on monthly boundaries (partitions are named
{table}_{yyyy_MM} and managed by partition maintenance). Partitioned
tables carry a composite primary key (id, created_at) and no foreign
keys; ownership is enforced by the generation store.
"""

from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    LargeBinary,
    TIMESTAMP,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func
import uuid

from src.database.connection import Base


class GenerationBatchRecord(Base):
    """Groups the requests of one chunked batch submission."""

    __tablename__ = "generation_batches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(100), nullable=False, index=True)

    total_count = Column(Integer, nullable=False)
    completed_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(TIMESTAMP(timezone=True))

    def __repr__(self):
        return f"<GenerationBatchRecord(id={self.id}, total={self.total_count})>"


class GenerationRequestRecord(Base):
    """One logical ask to produce N documents."""

    __tablename__ = "generation_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(TIMESTAMP(timezone=True), primary_key=True, server_default=func.now())

    tenant_id = Column(String(100), nullable=False)
    job_kind = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)

    total_count = Column(Integer, nullable=False)
    completed_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)

    # Claim ownership
    claimed_by = Column(String(255))
    claimed_at = Column(TIMESTAMP(timezone=True))

    batch_id = Column(UUID(as_uuid=True))
    correlation_id = Column(String(255))
    error_message = Column(Text)

    started_at = Column(TIMESTAMP(timezone=True))
    completed_at = Column(TIMESTAMP(timezone=True))
    expires_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "completed_count + failed_count <= total_count",
            name="ck_generation_requests_counts",
        ),
        Index("ix_generation_requests_status_created", "status", "created_at"),
        Index("ix_generation_requests_tenant_created", "tenant_id", "created_at"),
        Index("ix_generation_requests_batch", "batch_id"),
        Index("ix_generation_requests_expires", "expires_at"),
        {"postgresql_partition_by": "RANGE (created_at)"},
    )

    def __repr__(self):
        return f"<GenerationRequestRecord(id={self.id}, status={self.status})>"


class GenerationItemRecord(Base):
    """One document within a generation request."""

    __tablename__ = "generation_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(TIMESTAMP(timezone=True), primary_key=True, server_default=func.now())

    request_id = Column(UUID(as_uuid=True), nullable=False)

    # Template reference: exactly one of version_id / environment_id
    template_id = Column(String(100), nullable=False)
    variant_id = Column(String(100))
    version_id = Column(Integer)
    environment_id = Column(String(100))
    variant_attributes = Column(JSONB)

    data = Column(JSONB, nullable=False, default=dict)
    filename = Column(String(255))
    correlation_id = Column(String(255))

    status = Column(String(20), nullable=False)
    document_id = Column(UUID(as_uuid=True))
    error_message = Column(Text)

    started_at = Column(TIMESTAMP(timezone=True))
    completed_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "(version_id IS NULL) <> (environment_id IS NULL)",
            name="ck_generation_items_version_or_environment",
        ),
        Index("ix_generation_items_request_status", "request_id", "status"),
        {"postgresql_partition_by": "RANGE (created_at)"},
    )

    def __repr__(self):
        return f"<GenerationItemRecord(id={self.id}, status={self.status})>"


class DocumentRecord(Base):
    """A produced document."""

    __tablename__ = "documents"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(TIMESTAMP(timezone=True), primary_key=True, server_default=func.now())

    tenant_id = Column(String(100), nullable=False)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    content = Column(LargeBinary, nullable=False)

    template_id = Column(String(100))
    variant_id = Column(String(100))
    version_id = Column(Integer)
    correlation_id = Column(String(255))

    __table_args__ = (
        Index("ix_documents_tenant_created", "tenant_id", "created_at"),
        {"postgresql_partition_by": "RANGE (created_at)"},
    )

    def __repr__(self):
        return f"<DocumentRecord(id={self.id}, filename={self.filename})>"
