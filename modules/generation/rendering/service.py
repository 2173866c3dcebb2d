"""
Document render service: style resolution plus rendering, off the event loop.
"""

from typing import Dict, Any, Optional
import asyncio

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.core.interfaces import IRenderer
from modules.generation.core.registry import RendererRegistry
from modules.generation.templates.catalog import ITemplateCatalog
from modules.generation.templates.model import DocumentTemplate, TemplateDocument
from modules.generation.themes.style_resolver import ThemeStyleResolver, ResolvedStyles
from modules.generation.rendering.fonts import FontCache
from shared.utils.logger import setup_logger

# Renderer registers on import
import modules.generation.rendering.pdf_renderer  # noqa: F401

logger = setup_logger(__name__)


class DocumentRenderService:
    """
    Renders template versions to documents.

    One service (and so one font cache) is shared by every job of a
    process.
    """

    def __init__(
        self,
        catalog: ITemplateCatalog,
        config: Optional[GenerationConfig] = None,
        renderer: Optional[IRenderer] = None,
        output_format: str = "pdf",
    ):
        self.config = config or get_generation_config()
        self.style_resolver = ThemeStyleResolver(catalog)
        self.catalog = catalog
        self.renderer = renderer or RendererRegistry.get(
            output_format,
            {
                "fonts_dir": self.config.fonts_dir,
                "default_expression_language": self.config.default_expression_language,
            },
            font_cache=FontCache(self.config.fonts_dir),
        )

    @property
    def content_type(self) -> str:
        return self.renderer.content_type

    async def resolve_styles(
        self,
        tenant_id: str,
        template: DocumentTemplate,
        template_model: TemplateDocument,
    ) -> ResolvedStyles:
        tenant = await self.catalog.get_tenant(tenant_id)
        return await self.style_resolver.resolve_styles(
            tenant_id,
            template_model,
            template_default_theme_id=template.default_theme_id,
            tenant_default_theme_id=tenant.default_theme_id if tenant else None,
        )

    async def render(
        self,
        tenant_id: str,
        template: DocumentTemplate,
        template_model: TemplateDocument,
        data: Dict[str, Any],
    ) -> bytes:
        """
        Resolve styles and render.

        Rendering is CPU-bound and runs in a worker thread.

        Raises:
            RenderException: If rendering fails
            ExpressionException: If a required expression has no value
        """
        styles = await self.resolve_styles(tenant_id, template, template_model)
        content = await asyncio.to_thread(self.renderer.render, template_model, data, styles)
        logger.debug(f"Rendered template '{template.id}' ({len(content)} bytes, theme={styles.theme_id})")
        return content
