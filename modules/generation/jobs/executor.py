"""
Generation executor.

Runs one claimed generation request: claims its items one at a time,
renders each, stores the document and records per-item outcomes. A bad
item is recorded as failed and never stops its siblings.
"""

from typing import Optional
import time
import uuid

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.core.interfaces import GenerationRequest, GenerationItem, Document
from modules.generation.core.exceptions import GenerationException, RenderException, TemplateNotFoundException
from modules.generation.rendering.service import DocumentRenderService
from modules.generation.storage.job_storage import IGenerationStore
from modules.generation.templates.catalog import ITemplateCatalog
from modules.generation.templates.validation import validate_template_data
from modules.generation.templates.variant_resolver import VariantResolver
from modules.generation.jobs.references import resolve_reference
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


def default_filename(item: GenerationItem) -> str:
    return f"document-{item.id}.pdf"


class GenerationExecutor:
    """
    Executes claimed generation requests.

    Items are processed sequentially. Item completion and request
    cancellation race through conditional writes in the store; when
    cancellation lands first, the finished document is discarded.
    """

    def __init__(
        self,
        store: IGenerationStore,
        catalog: ITemplateCatalog,
        render_service: Optional[DocumentRenderService] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.config = config or get_generation_config()
        self.render_service = render_service or DocumentRenderService(catalog, self.config)
        self.variant_resolver = VariantResolver()

    async def execute(self, request: GenerationRequest) -> None:
        """
        Process every item of a claimed request, then finalize it.

        Args:
            request: Request already claimed (IN_PROGRESS) by this instance
        """
        start_time = time.time()
        processed = 0

        while True:
            item = await self.store.claim_next_item(request.id)
            if item is None:
                break
            await self.process_item(request, item)
            processed += 1

        finalized = await self.store.finalize_request(request.id, self.config.job_retention_days)
        elapsed_ms = (time.time() - start_time) * 1000

        if finalized:
            logger.info(f"Generation request {request.id} completed ({processed} items in {elapsed_ms:.0f}ms)")
        else:
            logger.info(f"Generation request {request.id} was not finalized by this worker (already terminal)")

        if request.batch_id is not None:
            await self.store.refresh_batch(request.batch_id)

    async def process_item(self, request: GenerationRequest, item: GenerationItem) -> bool:
        """
        Render and store one item.

        Returns:
            True if the item completed, False if it failed or lost to a cancellation
        """
        try:
            document = await self.generate(request.tenant_id, item)
        except GenerationException as e:
            logger.error(f"Item {item.id} of request {request.id} failed: {e}")
            await self._record_failure(request, item, str(e))
            return False
        except Exception as e:
            logger.error(f"Item {item.id} of request {request.id} failed unexpectedly: {e}", exc_info=True)
            await self._record_failure(request, item, f"{type(e).__name__}: {e}")
            return False

        applied = await self.store.complete_item(request.id, item.id, document)
        if not applied:
            logger.info(f"Discarded document for item {item.id}: request {request.id} is no longer in progress")
            return False

        logger.debug(f"Item {item.id} completed: document {document.id} ({document.size_bytes} bytes)")
        return True

    async def _record_failure(self, request: GenerationRequest, item: GenerationItem, message: str) -> None:
        recorded = await self.store.fail_item(request.id, item.id, message)
        if not recorded:
            logger.info(f"Failure of item {item.id} not recorded: request {request.id} is no longer in progress")

    async def generate(self, tenant_id: str, item: GenerationItem) -> Document:
        """
        Produce the document for one item.

        Raises:
            TemplateNotFoundException: Unknown tenant, template, variant, version or activation
            VariantResolutionException: Variant selection failed
            TemplateValidationException: Data does not match the template data model
            RenderException: Rendering failed or the document is too large
        """
        if await self.catalog.get_tenant(tenant_id) is None:
            raise TemplateNotFoundException(f"Tenant '{tenant_id}' not found")

        template, variant, version = await resolve_reference(
            self.catalog,
            self.variant_resolver,
            tenant_id,
            item.template_id,
            item.variant_id,
            item.variant_attributes,
            item.version_id,
            item.environment_id,
        )
        if version.template_model is None:
            raise RenderException(
                f"Version {version.id} of variant '{variant.id}' has no template model"
            )

        validate_template_data(item.data, template.data_model)

        content = await self.render_service.render(tenant_id, template, version.template_model, item.data)

        if len(content) > self.config.max_document_size_bytes:
            raise RenderException(
                f"Generated document is {len(content)} bytes, "
                f"above the {self.config.max_document_size_mb}MB limit"
            )

        return Document(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            filename=item.filename or default_filename(item),
            content=content,
            content_type=self.render_service.content_type,
            template_id=template.id,
            variant_id=variant.id,
            version_id=version.id,
            correlation_id=item.correlation_id,
        )
