"""
Style cascade resolution.

Theme selection: variant-level override, then the template default,
then the tenant default; the first one present wins.

Style precedence, lowest to highest:
1. Theme document styles
2. Template document styles
3. Theme block preset (when the block names one)
4. Block inline styles
"""

from typing import Dict, Any, Optional, TYPE_CHECKING
from dataclasses import dataclass, field

from modules.generation.templates.model import TemplateDocument, PageSettings
from modules.generation.themes.model import Theme
from shared.utils.logger import setup_logger

if TYPE_CHECKING:
    from modules.generation.templates.catalog import ITemplateCatalog

logger = setup_logger(__name__)


@dataclass
class ResolvedStyles:
    """Effective styles for one render."""
    document_styles: Dict[str, Any] = field(default_factory=dict)
    page_settings: Optional[PageSettings] = None
    block_style_presets: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    theme_id: Optional[str] = None


def select_theme_id(
    template_model: TemplateDocument,
    template_default_theme_id: Optional[str] = None,
    tenant_default_theme_id: Optional[str] = None,
) -> Optional[str]:
    """Pick the effective theme ID by precedence."""
    return (
        template_model.theme_ref.override_theme_id
        or template_default_theme_id
        or tenant_default_theme_id
    )


def merge_styles(theme: Optional[Theme], template_model: TemplateDocument) -> ResolvedStyles:
    """
    Merge a theme with a template's own document styles.

    Template fields override theme fields one by one. Page settings and
    presets come only from the theme.
    """
    template_styles = dict(template_model.document_styles_override)
    if theme is None:
        return ResolvedStyles(document_styles=template_styles)

    return ResolvedStyles(
        document_styles={**theme.document_styles, **template_styles},
        page_settings=theme.page_settings,
        block_style_presets=dict(theme.block_style_presets),
        theme_id=theme.id,
    )


def resolve_block_styles(
    block_style_presets: Dict[str, Dict[str, Any]],
    preset_name: Optional[str],
    inline_styles: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """Merge a block's preset with its inline styles; inline values win."""
    preset = block_style_presets.get(preset_name, {}) if preset_name else {}
    return {**preset, **(inline_styles or {})}


class ThemeStyleResolver:
    """Resolves the effective styles of a template through the catalog."""

    def __init__(self, catalog: "ITemplateCatalog"):
        self.catalog = catalog

    async def resolve_styles(
        self,
        tenant_id: str,
        template_model: TemplateDocument,
        template_default_theme_id: Optional[str] = None,
        tenant_default_theme_id: Optional[str] = None,
    ) -> ResolvedStyles:
        """
        Resolve styles for a template render.

        Args:
            tenant_id: Owning tenant
            template_model: Template document (carries the variant-level theme ref)
            template_default_theme_id: Default theme of the template
            tenant_default_theme_id: Default theme of the tenant

        Returns:
            ResolvedStyles
        """
        theme_id = select_theme_id(template_model, template_default_theme_id, tenant_default_theme_id)
        theme = None
        if theme_id:
            theme = await self.catalog.get_theme(tenant_id, theme_id)
            if theme is None:
                logger.warning(f"Theme '{theme_id}' not found for tenant '{tenant_id}', rendering without theme")
        return merge_styles(theme, template_model)
