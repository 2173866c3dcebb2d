"""
Generation commands: request creation, cancellation and queries.

Submissions are validated completely before anything is stored, so a
batch is accepted or rejected as a whole.
"""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
import uuid

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.core.interfaces import (
    GenerationRequest,
    GenerationItem,
    GenerationBatch,
    Document,
    RequestStatus,
    JobKind,
)
from modules.generation.core.exceptions import (
    BatchValidationException,
    GenerationException,
    JobNotFoundException,
)
from modules.generation.storage.job_storage import IGenerationStore
from modules.generation.templates.catalog import ITemplateCatalog
from modules.generation.templates.variant_resolver import VariantResolver
from modules.generation.jobs.references import resolve_template, resolve_variant
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class GenerationItemInput:
    """
    One document to generate, as submitted.

    Exactly one of version_id / environment_id must be set. Without a
    variant_id, variant_attributes selects the variant.
    """
    template_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    variant_id: Optional[str] = None
    version_id: Optional[int] = None
    environment_id: Optional[str] = None
    variant_attributes: Optional[Dict[str, Dict[str, str]]] = None
    filename: Optional[str] = None
    correlation_id: Optional[str] = None


@dataclass
class Submission:
    """Result of a submission: the stored requests and, when chunked, their batch."""
    requests: List[GenerationRequest]
    batch: Optional[GenerationBatch] = None

    @property
    def request_ids(self) -> List[uuid.UUID]:
        return [r.id for r in self.requests]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_ids": [str(r.id) for r in self.requests],
            "batch_id": str(self.batch.id) if self.batch else None,
            "total_count": sum(r.total_count for r in self.requests),
        }


def chunk(items: List[Any], size: int) -> List[List[Any]]:
    if size <= 0 or len(items) <= size:
        return [items]
    return [items[i:i + size] for i in range(0, len(items), size)]


class GenerationCommands:
    """Entry point for callers that submit, cancel or inspect generation jobs."""

    def __init__(
        self,
        store: IGenerationStore,
        catalog: ITemplateCatalog,
        config: Optional[GenerationConfig] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.config = config or get_generation_config()
        self.variant_resolver = VariantResolver()

    # ==========================================================================
    # SUBMISSION
    # ==========================================================================

    async def submit_document(self, tenant_id: str, item: GenerationItemInput) -> GenerationRequest:
        """
        Create a single-document request.

        Raises:
            BatchValidationException: If the item is invalid
        """
        await self.validate(tenant_id, [item])
        request = self._build_request(tenant_id, JobKind.SINGLE, [item])
        await self.store.create_requests([request])
        logger.info(f"Submitted generation request {request.id} for tenant '{tenant_id}'")
        return request

    async def submit_batch(
        self,
        tenant_id: str,
        items: List[GenerationItemInput],
        chunk_size: Optional[int] = None,
    ) -> Submission:
        """
        Create a batch request, split into several requests under one batch
        when chunk_size is smaller than the number of items.

        Args:
            tenant_id: Owning tenant
            items: Items to generate
            chunk_size: Items per request (configured default when None, 0 = never split)

        Raises:
            BatchValidationException: If any item is invalid; nothing is stored
        """
        await self.validate(tenant_id, items)

        size = self.config.batch_chunk_size if chunk_size is None else chunk_size
        chunks = chunk(list(items), size)

        batch = None
        if len(chunks) > 1:
            batch = GenerationBatch(id=uuid.uuid4(), tenant_id=tenant_id, total_count=len(items))

        requests = [
            self._build_request(tenant_id, JobKind.BATCH, part, batch_id=batch.id if batch else None)
            for part in chunks
        ]
        await self.store.create_requests(requests, batch)

        logger.info(
            f"Submitted batch of {len(items)} items for tenant '{tenant_id}' "
            f"as {len(requests)} request(s){f' in batch {batch.id}' if batch else ''}"
        )
        return Submission(requests=requests, batch=batch)

    def _build_request(
        self,
        tenant_id: str,
        kind: JobKind,
        items: List[GenerationItemInput],
        batch_id: Optional[uuid.UUID] = None,
    ) -> GenerationRequest:
        request_id = uuid.uuid4()
        return GenerationRequest(
            id=request_id,
            tenant_id=tenant_id,
            job_kind=kind,
            status=RequestStatus.PENDING,
            total_count=len(items),
            batch_id=batch_id,
            correlation_id=items[0].correlation_id if kind == JobKind.SINGLE else None,
            items=[
                GenerationItem(
                    id=uuid.uuid4(),
                    request_id=request_id,
                    template_id=item.template_id,
                    data=dict(item.data or {}),
                    variant_id=item.variant_id,
                    version_id=item.version_id,
                    environment_id=item.environment_id,
                    variant_attributes=item.variant_attributes,
                    filename=item.filename,
                    correlation_id=item.correlation_id,
                )
                for item in items
            ],
        )

    # ==========================================================================
    # VALIDATION
    # ==========================================================================

    async def validate(self, tenant_id: str, items: List[GenerationItemInput]) -> None:
        """
        Validate a submission.

        Raises:
            BatchValidationException: With one message per problem found
        """
        if not items:
            raise BatchValidationException(["At least one item is required"])
        if await self.catalog.get_tenant(tenant_id) is None:
            raise BatchValidationException([f"Tenant '{tenant_id}' not found"])

        errors: List[str] = []
        for index, item in enumerate(items):
            errors.extend(f"Item {index}: {message}" for message in await self._validate_item(tenant_id, item))

        errors.extend(self._duplicates(items, "correlation_id", "correlationId"))
        errors.extend(self._duplicates(items, "filename", "filename"))

        if errors:
            logger.warning(f"Rejected submission for tenant '{tenant_id}': {len(errors)} error(s)")
            raise BatchValidationException(errors)

    async def _validate_item(self, tenant_id: str, item: GenerationItemInput) -> List[str]:
        has_version = item.version_id is not None
        has_environment = item.environment_id is not None
        if has_version == has_environment:
            return ["exactly one of versionId or environmentId must be set"]

        try:
            await resolve_template(self.catalog, tenant_id, item.template_id)
            variant = await resolve_variant(
                self.catalog,
                self.variant_resolver,
                tenant_id,
                item.template_id,
                item.variant_id,
                item.variant_attributes,
            )
        except GenerationException as e:
            return [str(e)]

        if has_version:
            version = await self.catalog.get_version(tenant_id, item.template_id, variant.id, item.version_id)
            if version is None:
                return [f"version {item.version_id} not found for variant '{variant.id}'"]
        elif not await self.catalog.environment_exists(tenant_id, item.environment_id):
            return [f"environment '{item.environment_id}' not found"]
        return []

    @staticmethod
    def _duplicates(items: List[GenerationItemInput], attribute: str, label: str) -> List[str]:
        seen: Dict[str, int] = {}
        errors = []
        for index, item in enumerate(items):
            value = getattr(item, attribute)
            if value is None:
                continue
            if value in seen:
                errors.append(f"Item {index}: duplicate {label} '{value}' (first used by item {seen[value]})")
            else:
                seen[value] = index
        return errors

    # ==========================================================================
    # CANCELLATION
    # ==========================================================================

    async def cancel(self, tenant_id: str, request_id: uuid.UUID) -> bool:
        """
        Cancel a pending or running request.

        Returns:
            False if the request had already reached a terminal state

        Raises:
            JobNotFoundException: If the request does not exist for the tenant
        """
        request = await self.store.get_request(tenant_id, request_id, include_items=False)
        if request is None:
            raise JobNotFoundException(f"Generation job {request_id} not found")

        cancelled = await self.store.cancel_request(tenant_id, request_id, self.config.job_retention_days)
        if not cancelled:
            logger.info(f"Generation request {request_id} not cancelled: already {request.status.value}")
            return False

        logger.info(f"Cancelled generation request {request_id}")
        if request.batch_id is not None:
            await self.store.refresh_batch(request.batch_id)
        return True

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    async def get_job(self, tenant_id: str, request_id: uuid.UUID) -> GenerationRequest:
        request = await self.store.get_request(tenant_id, request_id, include_items=True)
        if request is None:
            raise JobNotFoundException(f"Generation job {request_id} not found")
        return request

    async def list_jobs(
        self,
        tenant_id: str,
        status: Optional[RequestStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[GenerationRequest]:
        return await self.store.list_requests(tenant_id, status=status, limit=limit, offset=offset)

    async def get_batch(self, tenant_id: str, batch_id: uuid.UUID) -> GenerationBatch:
        batch = await self.store.get_batch(tenant_id, batch_id)
        if batch is None:
            raise JobNotFoundException(f"Generation batch {batch_id} not found")
        return batch

    async def get_document(self, tenant_id: str, document_id: uuid.UUID) -> Optional[Document]:
        return await self.store.get_document(tenant_id, document_id)

    async def delete_document(self, tenant_id: str, document_id: uuid.UUID) -> bool:
        deleted = await self.store.delete_document(tenant_id, document_id)
        if deleted:
            logger.info(f"Deleted document {document_id} for tenant '{tenant_id}'")
        return deleted
