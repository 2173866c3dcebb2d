"""
Core interfaces for the generation module.

Typed records for generation requests, items, documents and batches,
plus the renderer contract every output backend implements.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, TYPE_CHECKING
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import uuid

if TYPE_CHECKING:
    from modules.generation.templates.model import TemplateDocument
    from modules.generation.themes.style_resolver import ResolvedStyles


# ==============================================================================
# STATUS TYPES
# ==============================================================================

class RequestStatus(str, Enum):
    """Generation request lifecycle status"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED, RequestStatus.CANCELLED)

    @property
    def is_cancellable(self) -> bool:
        return self in (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)


class ItemStatus(str, Enum):
    """Generation item lifecycle status"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED)


class JobKind(str, Enum):
    """Kind of generation request"""
    SINGLE = "SINGLE"
    BATCH = "BATCH"


CANCELLED_ITEM_MESSAGE = "Job cancelled by user"
MAX_ERROR_MESSAGE_LENGTH = 1000


def truncate_error(message: Optional[str]) -> str:
    """Clamp an error message to the stored column length."""
    return (message or "Unknown error")[:MAX_ERROR_MESSAGE_LENGTH]


# ==============================================================================
# RECORDS
# ==============================================================================

@dataclass
class GenerationItem:
    """
    One document to produce within a generation request.

    Exactly one of version_id / environment_id is set. When variant_id is
    absent, variant_attributes ({"required": {...}, "optional": {...}})
    selects the variant at render time.
    """
    id: uuid.UUID
    request_id: uuid.UUID
    template_id: str
    data: Dict[str, Any]
    variant_id: Optional[str] = None
    version_id: Optional[int] = None
    environment_id: Optional[str] = None
    variant_attributes: Optional[Dict[str, Dict[str, str]]] = None
    filename: Optional[str] = None
    correlation_id: Optional[str] = None
    status: ItemStatus = ItemStatus.PENDING
    document_id: Optional[uuid.UUID] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": str(self.id),
            "request_id": str(self.request_id),
            "template_id": self.template_id,
            "variant_id": self.variant_id,
            "version_id": self.version_id,
            "environment_id": self.environment_id,
            "filename": self.filename,
            "correlation_id": self.correlation_id,
            "status": self.status.value,
            "document_id": str(self.document_id) if self.document_id else None,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class GenerationRequest:
    """One logical ask to produce one or more documents."""
    id: uuid.UUID
    tenant_id: str
    job_kind: JobKind = JobKind.SINGLE
    status: RequestStatus = RequestStatus.PENDING
    total_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    batch_id: Optional[uuid.UUID] = None
    correlation_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    items: List[GenerationItem] = field(default_factory=list)

    def to_dict(self, include_items: bool = False) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "job_kind": self.job_kind.value,
            "status": self.status.value,
            "total_count": self.total_count,
            "completed_count": self.completed_count,
            "failed_count": self.failed_count,
            "claimed_by": self.claimed_by,
            "batch_id": str(self.batch_id) if self.batch_id else None,
            "correlation_id": self.correlation_id,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
        if include_items:
            result["items"] = [item.to_dict() for item in self.items]
        return result


@dataclass
class Document:
    """A produced binary artifact."""
    id: uuid.UUID
    tenant_id: str
    filename: str
    content: bytes
    content_type: str = "application/pdf"
    template_id: Optional[str] = None
    variant_id: Optional[str] = None
    version_id: Optional[int] = None
    correlation_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (metadata only)"""
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "filename": self.filename,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "template_id": self.template_id,
            "variant_id": self.variant_id,
            "version_id": self.version_id,
            "correlation_id": self.correlation_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class GenerationBatch:
    """Groups several generation requests submitted together."""
    id: uuid.UUID
    tenant_id: str
    total_count: int
    completed_count: int = 0
    failed_count: int = 0
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "total_count": self.total_count,
            "completed_count": self.completed_count,
            "failed_count": self.failed_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


# ==============================================================================
# RENDERER INTERFACE
# ==============================================================================

class IRenderer(ABC):
    """
    Interface for document renderers.

    A renderer turns a template document, input data and resolved styles
    into output bytes. Implementations must be pure: the same inputs always
    produce the same bytes.
    """

    output_format: str = ""
    content_type: str = "application/octet-stream"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    @abstractmethod
    def render(
        self,
        document: "TemplateDocument",
        data: Dict[str, Any],
        styles: Optional["ResolvedStyles"] = None,
    ) -> bytes:
        """
        Render a template document against input data.

        Args:
            document: Node/slot template document
            data: Input data payload
            styles: Resolved theme styles (None renders without a theme)

        Returns:
            Rendered document bytes

        Raises:
            RenderException: If rendering fails
        """
        pass


# ==============================================================================
# EXPRESSION EVALUATOR INTERFACE
# ==============================================================================

class IExpressionEvaluator(ABC):
    """
    Interface for expression languages.

    Evaluators resolve an expression against the input data merged with the
    current loop scope. Loop bindings shadow data keys of the same name.
    """

    language: str = ""

    @abstractmethod
    def evaluate(
        self,
        expression: str,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Evaluate an expression.

        Args:
            expression: Raw expression text
            data: Input data payload
            loop_context: Bindings introduced by enclosing loops

        Returns:
            Evaluated value, or None when the value cannot be resolved

        Raises:
            ExpressionException: If the expression itself is malformed
        """
        pass


# ==============================================================================
# NODE RENDERER INTERFACE
# ==============================================================================

class INodeRenderer(ABC):
    """
    Interface for node type renderers.

    Each implementation turns one node of the template graph into a list of
    page flowables, recursing into the node's slots through the render context.
    """

    @abstractmethod
    def render(self, node: Any, context: Any) -> List[Any]:
        """
        Render a node.

        Args:
            node: Template node
            context: Current render context (data, loop scope, styles)

        Returns:
            List of flowables
        """
        pass
