"""
Template rendering engine (reportlab backend).
"""

from modules.generation.rendering.fonts import FontCache, FontFamily
from modules.generation.rendering.context import RenderContext, loop_bindings
from modules.generation.rendering.pdf_renderer import PdfRenderer, resolve_page_settings
from modules.generation.rendering.service import DocumentRenderService

__all__ = [
    "FontCache",
    "FontFamily",
    "RenderContext",
    "loop_bindings",
    "PdfRenderer",
    "resolve_page_settings",
    "DocumentRenderService",
]
