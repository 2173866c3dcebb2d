"""
CSS-like style values to reportlab styles.

Sizes accept px, pt, mm, cm, em and rem; bare numbers are points.
"""

from typing import Dict, Any, Optional
import re

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT, TA_CENTER, TA_RIGHT, TA_JUSTIFY
from reportlab.lib.styles import ParagraphStyle

from modules.generation.rendering.fonts import FontCache

INHERITABLE_KEYS = frozenset({
    "fontFamily",
    "fontSize",
    "fontWeight",
    "color",
    "lineHeight",
    "letterSpacing",
    "textAlign",
    "backgroundColor",
})

DEFAULT_FONT_SIZE = 10.0
DEFAULT_LEADING_FACTOR = 1.2
EM_SIZE = 12.0

UNIT_FACTORS = (
    ("px", 0.75),
    ("pt", 1.0),
    ("mm", 2.83465),
    ("cm", 28.3465),
    ("rem", EM_SIZE),
    ("em", EM_SIZE),
)

TEXT_ALIGNMENTS = {
    "left": TA_LEFT,
    "start": TA_LEFT,
    "center": TA_CENTER,
    "right": TA_RIGHT,
    "end": TA_RIGHT,
    "justify": TA_JUSTIFY,
}

_RGB_PATTERN = re.compile(r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*[\d.]+\s*)?\)$")


def parse_size(value: Any) -> Optional[float]:
    """Convert a CSS length to points. Percentages and garbage give None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    normalized = str(value).strip().lower()
    for suffix, factor in UNIT_FACTORS:
        if normalized.endswith(suffix):
            number = normalized[: -len(suffix)].strip()
            try:
                return float(number) * factor
            except ValueError:
                return None
    try:
        return float(normalized)
    except ValueError:
        return None


def is_bold_weight(weight: Any) -> bool:
    if weight is None:
        return False
    normalized = str(weight).strip().lower()
    if normalized in ("bold", "bolder"):
        return True
    if normalized in ("normal", "lighter", ""):
        return False
    try:
        return int(normalized) >= 700
    except ValueError:
        return False


def is_italic_style(font_style: Any) -> bool:
    return str(font_style or "").strip().lower() in ("italic", "oblique")


def normalize_color(value: Any) -> Optional[str]:
    """
    Normalize a CSS color to "#rrggbb".

    Accepts #rgb, #rrggbb, rgb()/rgba() and named colors.
    """
    if not value:
        return None
    text = str(value).strip().lower()

    if text.startswith("#"):
        hex_part = text[1:]
        if len(hex_part) == 3:
            hex_part = "".join(c * 2 for c in hex_part)
        if len(hex_part) == 6 and all(c in "0123456789abcdef" for c in hex_part):
            return f"#{hex_part}"
        return None

    match = _RGB_PATTERN.match(text)
    if match:
        r, g, b = (min(int(v), 255) for v in match.groups())
        return f"#{r:02x}{g:02x}{b:02x}"

    named = getattr(colors, text, None)
    if isinstance(named, colors.Color):
        return "#" + named.hexval()[2:]
    return None


def to_color(value: Any) -> Optional[colors.Color]:
    normalized = normalize_color(value)
    return colors.HexColor(normalized) if normalized else None


def inherit_styles(parent: Dict[str, Any], *layers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Carry inheritable keys down the tree: parent, then each layer in order."""
    resolved = dict(parent)
    for layer in layers:
        for key, value in (layer or {}).items():
            if key in INHERITABLE_KEYS and value is not None:
                resolved[key] = value
    return resolved


def font_size_of(styles: Dict[str, Any]) -> float:
    return parse_size(styles.get("fontSize")) or DEFAULT_FONT_SIZE


def leading_of(styles: Dict[str, Any], font_size: float) -> float:
    """Line height: unitless values multiply the font size."""
    line_height = styles.get("lineHeight")
    if line_height is None:
        return font_size * DEFAULT_LEADING_FACTOR

    text = str(line_height).strip().lower()
    if text == "normal":
        return font_size * DEFAULT_LEADING_FACTOR
    try:
        return float(text) * font_size
    except ValueError:
        pass
    size = parse_size(text)
    return size if size else font_size * DEFAULT_LEADING_FACTOR


def paragraph_style(
    name: str,
    styles: Dict[str, Any],
    fonts: FontCache,
    font_size: Optional[float] = None,
    bold: Optional[bool] = None,
) -> ParagraphStyle:
    """
    Build a ParagraphStyle from a resolved style map.

    Args:
        name: Style name (shows up only in reportlab debug output)
        styles: Effective styles of the block
        fonts: Font cache
        font_size: Force a size (headings)
        bold: Force bold on or off (headings, header cells)
    """
    size = font_size if font_size is not None else font_size_of(styles)
    leading = leading_of(styles, size) if font_size is None else size * DEFAULT_LEADING_FACTOR
    use_bold = is_bold_weight(styles.get("fontWeight")) if bold is None else bold

    kwargs: Dict[str, Any] = {
        "fontName": fonts.face(styles.get("fontFamily"), bold=use_bold, italic=is_italic_style(styles.get("fontStyle"))),
        "fontSize": size,
        "leading": leading,
        "alignment": TEXT_ALIGNMENTS.get(str(styles.get("textAlign", "left")).lower(), TA_LEFT),
    }

    text_color = to_color(styles.get("color"))
    if text_color is not None:
        kwargs["textColor"] = text_color
    background = to_color(styles.get("backgroundColor"))
    if background is not None:
        kwargs["backColor"] = background

    return ParagraphStyle(name, **kwargs)


def box_padding(styles: Dict[str, Any]) -> Dict[str, float]:
    """Padding per side from padding / paddingTop / ... keys."""
    base = parse_size(styles.get("padding")) or 0
    return {
        side: parse_size(styles.get(f"padding{side.capitalize()}")) or base
        for side in ("top", "right", "bottom", "left")
    }
