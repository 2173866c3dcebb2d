"""
Tests for theme selection and the style cascade.
"""

import pytest

from modules.generation.rendering.pdf_renderer import resolve_page_settings
from modules.generation.templates import TemplateDocument
from modules.generation.themes import Theme, ThemeStyleResolver, merge_styles, resolve_block_styles, select_theme_id

from conftest import TENANT_ID, invoice_model


def test_select_theme_id_precedence():
    inherit = TemplateDocument.from_dict(invoice_model())
    override = TemplateDocument.from_dict(invoice_model(themeRef={"type": "override", "themeId": "modern"}))

    assert select_theme_id(override, "template-theme", "tenant-theme") == "modern"
    assert select_theme_id(inherit, "template-theme", "tenant-theme") == "template-theme"
    assert select_theme_id(inherit, None, "tenant-theme") == "tenant-theme"
    assert select_theme_id(inherit, None, None) is None


def test_template_styles_override_theme_styles():
    theme = Theme.from_dict({"id": "t", "documentStyles": {"fontFamily": "Georgia", "fontSize": "11pt"}})
    document = TemplateDocument.from_dict(invoice_model(documentStylesOverride={"fontSize": "9pt"}))

    resolved = merge_styles(theme, document)

    assert resolved.document_styles == {"fontFamily": "Georgia", "fontSize": "9pt"}
    assert resolved.theme_id == "t"


def test_block_inline_styles_beat_preset():
    presets = {"callout": {"color": "#ff0000", "fontWeight": "bold"}}
    assert resolve_block_styles(presets, "callout", {"color": "#0000ff"}) == {"color": "#0000ff", "fontWeight": "bold"}
    assert resolve_block_styles(presets, "missing", None) == {}


def test_wrapped_presets_are_unwrapped():
    theme = Theme.from_dict({"id": "t", "blockStylePresets": {"a": {"label": "A", "styles": {"color": "red"}}, "b": {"color": "blue"}}})
    assert theme.block_style_presets == {"a": {"color": "red"}, "b": {"color": "blue"}}


@pytest.mark.asyncio
async def test_variants_resolve_their_own_theme(catalog):
    resolver = ThemeStyleResolver(catalog)
    en = await catalog.get_version(TENANT_ID, "invoice", "invoice-en", 1)
    de = await catalog.get_version(TENANT_ID, "invoice", "invoice-de", 1)

    en_styles = await resolver.resolve_styles(TENANT_ID, en.template_model, None, "corporate")
    de_styles = await resolver.resolve_styles(TENANT_ID, de.template_model, None, "corporate")

    assert en_styles.theme_id == "corporate"
    assert en_styles.document_styles["fontFamily"] == "Georgia"
    assert de_styles.theme_id == "modern"
    assert de_styles.document_styles["fontFamily"] == "Arial"


@pytest.mark.asyncio
async def test_missing_theme_renders_without_theme(catalog):
    resolver = ThemeStyleResolver(catalog)
    document = TemplateDocument.from_dict(invoice_model(documentStylesOverride={"color": "#333333"}))

    resolved = await resolver.resolve_styles(TENANT_ID, document, "deleted-theme")

    assert resolved.theme_id is None
    assert resolved.document_styles == {"color": "#333333"}


@pytest.mark.asyncio
async def test_page_settings_precedence(catalog):
    resolver = ThemeStyleResolver(catalog)
    template_pages = {"format": "LETTER", "orientation": "portrait", "margins": {"top": 5}}
    document = TemplateDocument.from_dict(
        invoice_model(themeRef={"type": "override", "themeId": "modern"}, pageSettingsOverride=template_pages)
    )

    with_theme = await resolver.resolve_styles(TENANT_ID, document)
    without_theme = merge_styles(None, document)
    bare = TemplateDocument.from_dict(invoice_model())

    assert resolve_page_settings(document, with_theme).orientation == "landscape"
    assert resolve_page_settings(document, without_theme).format == "LETTER"
    assert resolve_page_settings(bare, merge_styles(None, bare)).margins.top == 20
