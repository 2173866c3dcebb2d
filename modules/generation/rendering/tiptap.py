"""
TipTap rich-text JSON to reportlab flowables.

Supported blocks: paragraph, heading (levels 1-3), bulletList,
orderedList, listItem. Inline: text with marks (bold, italic, underline,
strike, textStyle color), expression atoms and hard breaks.
"""

from typing import Dict, Any, List
from xml.sax.saxutils import escape

from reportlab.lib.styles import ParagraphStyle
from reportlab.platypus import Flowable, Paragraph, Spacer, ListFlowable, ListItem

from modules.generation.rendering.context import RenderContext
from modules.generation.rendering.styles import normalize_color, paragraph_style
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

HEADING_SIZES = {1: 24.0, 2: 18.0, 3: 14.0}

MARK_TAGS = {
    "bold": ("<b>", "</b>"),
    "italic": ("<i>", "</i>"),
    "underline": ("<u>", "</u>"),
    "strike": ("<strike>", "</strike>"),
}


class TipTapConverter:
    """Converts one text node's content within a render context."""

    def __init__(self, context: RenderContext, styles: Dict[str, Any]):
        self.context = context
        self.styles = styles
        self.base_style = paragraph_style("text", styles, context.fonts)

    def convert(self, content: Any) -> List[Flowable]:
        """
        Convert TipTap content.

        Plain strings are treated as a single paragraph.
        """
        if content is None:
            return []
        if isinstance(content, str):
            return [Paragraph(self._text_markup(content), self.base_style)]
        if not isinstance(content, dict):
            return []

        if content.get("type") == "doc" or ("content" in content and content.get("type") is None):
            return self._convert_blocks(content.get("content") or [])
        return self._convert_blocks([content])

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _convert_blocks(self, blocks: List[Dict[str, Any]]) -> List[Flowable]:
        flowables: List[Flowable] = []
        for block in blocks:
            flowables.extend(self._convert_block(block))
        return flowables

    def _convert_block(self, block: Dict[str, Any]) -> List[Flowable]:
        block_type = block.get("type")

        if block_type == "paragraph":
            return [self._paragraph(block.get("content"), self.base_style)]

        if block_type == "heading":
            level = (block.get("attrs") or {}).get("level", 1)
            try:
                size = HEADING_SIZES.get(int(level), HEADING_SIZES[3])
            except (TypeError, ValueError):
                size = HEADING_SIZES[1]
            style = paragraph_style(f"heading{level}", self.styles, self.context.fonts, font_size=size, bold=True)
            return [self._paragraph(block.get("content"), style)]

        if block_type in ("bulletList", "orderedList"):
            return [self._list(block)]

        if block_type == "text":
            return [Paragraph(self._inline_markup([block]), self.base_style)]

        logger.debug(f"Skipping unsupported rich-text block '{block_type}'")
        return []

    def _paragraph(self, inline: Any, style: ParagraphStyle) -> Flowable:
        markup = self._inline_markup(inline or [])
        if not markup:
            # Empty paragraphs keep their vertical space
            return Spacer(1, style.leading)
        return Paragraph(markup, style)

    def _list(self, block: Dict[str, Any]) -> ListFlowable:
        ordered = block.get("type") == "orderedList"
        items = []
        for entry in block.get("content") or []:
            if entry.get("type") != "listItem":
                continue
            items.append(ListItem(self._convert_blocks(entry.get("content") or []) or [Spacer(1, 0)]))

        kwargs: Dict[str, Any] = {
            "bulletType": "1" if ordered else "bullet",
            "bulletFontName": self.base_style.fontName,
            "bulletFontSize": self.base_style.fontSize,
            "leftIndent": self.base_style.fontSize * 1.5,
        }
        if ordered:
            kwargs["start"] = int((block.get("attrs") or {}).get("start", 1))
        else:
            kwargs["start"] = "•"
        return ListFlowable(items, **kwargs)

    # ------------------------------------------------------------------
    # Inline content
    # ------------------------------------------------------------------

    def _inline_markup(self, inline: List[Dict[str, Any]]) -> str:
        parts = []
        for child in inline:
            child_type = child.get("type")
            if child_type == "text":
                parts.append(self._apply_marks(self._text_markup(str(child.get("text", ""))), child.get("marks")))
            elif child_type == "expression":
                attrs = child.get("attrs") or {}
                expression = {
                    "raw": attrs.get("expression", ""),
                    "language": attrs.get("language"),
                    "required": attrs.get("required", False),
                }
                parts.append(self._apply_marks(escape(self.context.evaluate_to_string(expression)), child.get("marks")))
            elif child_type == "hardBreak":
                parts.append("<br/>")
        return "".join(parts)

    def _text_markup(self, text: str) -> str:
        return escape(self.context.interpolate(text))

    def _apply_marks(self, markup: str, marks: Any) -> str:
        if not markup or not marks:
            return markup
        for mark in marks:
            mark_type = mark.get("type")
            if mark_type in MARK_TAGS:
                opening, closing = MARK_TAGS[mark_type]
                markup = f"{opening}{markup}{closing}"
            elif mark_type == "textStyle":
                color = normalize_color((mark.get("attrs") or {}).get("color"))
                if color:
                    markup = f'<font color="{color}">{markup}</font>'
        return markup
