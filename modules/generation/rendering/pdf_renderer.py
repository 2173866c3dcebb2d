"""
PDF renderer.

Walks the template graph from its root, collects reportlab flowables and
lays them out with platypus. Page headers and footers are drawn on every
page. Output is byte-identical for identical inputs.
Self-registers with RendererRegistry.
"""

from typing import Dict, Any, Optional, Callable
from io import BytesIO

from reportlab.lib.pagesizes import A4, LETTER, landscape, portrait
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Spacer
from reportlab.platypus.doctemplate import LayoutError

from modules.generation.core.interfaces import IRenderer
from modules.generation.core.exceptions import GenerationException, RenderException
from modules.generation.core.registry import register_renderer, NodeRendererRegistry
from modules.generation.expressions.composite import CompositeExpressionEvaluator
from modules.generation.templates.model import TemplateDocument, PageSettings, Node, DEFAULT_PAGE_SETTINGS
from modules.generation.themes.style_resolver import ResolvedStyles
from modules.generation.rendering.context import RenderContext
from modules.generation.rendering.fonts import FontCache
from modules.generation.rendering.styles import inherit_styles
from shared.utils.logger import setup_logger

# Node renderers register on import
import modules.generation.rendering.nodes  # noqa: F401
import modules.generation.rendering.tables  # noqa: F401

logger = setup_logger(__name__)

PAGE_FORMATS = {
    "A4": A4,
    "LETTER": LETTER,
}

PDF_CREATOR = "docgen"


def resolve_page_settings(document: TemplateDocument, styles: ResolvedStyles) -> PageSettings:
    """Theme page settings, else the template's own, else A4 portrait with 20mm margins."""
    return styles.page_settings or document.page_settings_override or DEFAULT_PAGE_SETTINGS


def page_size_for(settings: PageSettings):
    base = PAGE_FORMATS.get(settings.format.upper(), A4)
    if settings.orientation.lower() == "landscape":
        return landscape(base)
    return portrait(base)


@register_renderer("pdf")
class PdfRenderer(IRenderer):
    """
    Template graph to PDF using reportlab platypus.

    Safe to call from several threads at once: each render builds its own
    document and context; only the font cache is shared.
    """

    output_format = "pdf"
    content_type = "application/pdf"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        font_cache: Optional[FontCache] = None,
        evaluator: Optional[CompositeExpressionEvaluator] = None,
    ):
        """
        Initialize PDF renderer.

        Args:
            config: Renderer configuration (fonts_dir, default_expression_language)
            font_cache: Shared font cache (created when omitted)
            evaluator: Expression evaluator (created when omitted)
        """
        super().__init__(config)
        self.fonts = font_cache or FontCache(self.config.get("fonts_dir"))
        self.evaluator = evaluator or CompositeExpressionEvaluator(
            self.config.get("default_expression_language", "simple_path")
        )
        self.node_renderers = NodeRendererRegistry.create_all()

    def render(
        self,
        document: TemplateDocument,
        data: Dict[str, Any],
        styles: Optional[ResolvedStyles] = None,
    ) -> bytes:
        styles = styles or ResolvedStyles(document_styles=dict(document.document_styles_override))
        page_settings = resolve_page_settings(document, styles)
        margins = page_settings.margins

        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=page_size_for(page_settings),
            topMargin=margins.top * mm,
            rightMargin=margins.right * mm,
            bottomMargin=margins.bottom * mm,
            leftMargin=margins.left * mm,
            creator=PDF_CREATOR,
            invariant=True,
        )

        context = RenderContext(
            document=document,
            data=data or {},
            evaluator=self.evaluator,
            fonts=self.fonts,
            styles=styles,
            renderers=self.node_renderers,
            available_width=doc.width,
            inherited_styles=inherit_styles({}, styles.document_styles),
        )

        try:
            story = context.render_node(document.root)
            decorate = self._page_decorator(
                document.first_node_of_type("pageheader"),
                document.first_node_of_type("pagefooter"),
                context,
            )
            # An empty story still yields one blank page
            doc.build(story or [Spacer(1, 0)], onFirstPage=decorate, onLaterPages=decorate)
        except GenerationException:
            raise
        except LayoutError as e:
            raise RenderException(f"Content does not fit on the page: {str(e)}") from e
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise RenderException(f"PDF rendering failed: {str(e)}") from e

        return buffer.getvalue()

    def _page_decorator(
        self,
        header: Optional[Node],
        footer: Optional[Node],
        context: RenderContext,
    ) -> Callable:
        """
        Build the onPage callback drawing header and footer.

        Header content hangs from the top edge of the top margin, footer
        content sits on the bottom edge of the bottom margin. Both are
        rendered per page with "pageNumber" bound in scope.
        """
        def decorate(canvas, doc):
            if header is None and footer is None:
                return
            page_context = context.with_bindings({"pageNumber": canvas.getPageNumber()})
            page_width, page_height = doc.pagesize
            canvas.saveState()
            if header is not None:
                flowables = page_context.for_node(header).render_children(header)
                y = page_height - doc.topMargin / 4
                for flowable in flowables:
                    _, height = flowable.wrap(doc.width, doc.topMargin)
                    flowable.drawOn(canvas, doc.leftMargin, y - height)
                    y -= height
            if footer is not None:
                flowables = page_context.for_node(footer).render_children(footer)
                sized = [(f, f.wrap(doc.width, doc.bottomMargin)[1]) for f in flowables]
                y = doc.bottomMargin / 4 + sum(height for _, height in sized)
                for flowable, height in sized:
                    flowable.drawOn(canvas, doc.leftMargin, y - height)
                    y -= height
            canvas.restoreState()

        return decorate
