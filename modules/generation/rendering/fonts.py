"""
Font cache for PDF rendering.

CSS font families map onto reportlab font faces. The standard PDF base
fonts cover the generic families; TrueType files found in FONTS_DIR are
registered once per family on first use.
"""

from typing import Dict, Optional
from dataclasses import dataclass
from pathlib import Path
import threading

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.lib.fonts import addMapping

from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class FontFamily:
    """The four faces of one family, by reportlab font name."""
    regular: str
    bold: str
    italic: str
    bold_italic: str

    def face(self, bold: bool = False, italic: bool = False) -> str:
        if bold and italic:
            return self.bold_italic
        if bold:
            return self.bold
        if italic:
            return self.italic
        return self.regular


HELVETICA = FontFamily("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique")
TIMES = FontFamily("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic")
COURIER = FontFamily("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique")

# Generic and common CSS family names onto the base fonts
BASE_FAMILIES: Dict[str, FontFamily] = {
    "helvetica": HELVETICA,
    "arial": HELVETICA,
    "sans-serif": HELVETICA,
    "system-ui": HELVETICA,
    "inter": HELVETICA,
    "roboto": HELVETICA,
    "open sans": HELVETICA,
    "verdana": HELVETICA,
    "times": TIMES,
    "times new roman": TIMES,
    "times-roman": TIMES,
    "georgia": TIMES,
    "serif": TIMES,
    "garamond": TIMES,
    "courier": COURIER,
    "courier new": COURIER,
    "monospace": COURIER,
    "consolas": COURIER,
}

TTF_FACE_SUFFIXES = {
    "regular": ("Regular", ""),
    "bold": ("Bold",),
    "italic": ("Italic", "Oblique"),
    "bold_italic": ("BoldItalic", "BoldOblique"),
}


def normalize_family(family: Optional[str]) -> str:
    """First family of a CSS font-family list, lowercased and unquoted."""
    if not family:
        return ""
    first = str(family).split(",")[0]
    return first.strip().strip("'\"").strip().lower()


class FontCache:
    """
    Process-wide cache of CSS family to font faces.

    Entries are populated once per family and never invalidated. Lookups
    are safe from concurrent render threads.
    """

    def __init__(self, fonts_dir: Optional[Path] = None):
        self.fonts_dir = Path(fonts_dir) if fonts_dir else None
        self._families: Dict[str, FontFamily] = {}
        self._lock = threading.Lock()

    def get(self, family: Optional[str]) -> FontFamily:
        """Get the font family for a CSS family name; unknown families fall back to Helvetica."""
        key = normalize_family(family)
        cached = self._families.get(key)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._families.get(key)
            if cached is None:
                cached = self._load(key)
                self._families[key] = cached
            return cached

    def face(self, family: Optional[str], bold: bool = False, italic: bool = False) -> str:
        return self.get(family).face(bold=bold, italic=italic)

    def _load(self, key: str) -> FontFamily:
        if key and self.fonts_dir is not None:
            registered = self._register_ttf_family(key)
            if registered is not None:
                return registered
        return BASE_FAMILIES.get(key, HELVETICA)

    def _register_ttf_family(self, key: str) -> Optional[FontFamily]:
        stem = key.replace(" ", "").lower()
        files = {path.stem.lower(): path for path in self.fonts_dir.glob("*.ttf")}

        faces: Dict[str, str] = {}
        for face, suffixes in TTF_FACE_SUFFIXES.items():
            for suffix in suffixes:
                name = f"{stem}-{suffix.lower()}" if suffix else stem
                path = files.get(name)
                if path is None:
                    continue
                font_name = f"{stem}-{face}"
                try:
                    pdfmetrics.registerFont(TTFont(font_name, str(path)))
                except Exception as e:
                    logger.warning(f"Could not register font file {path.name}: {e}")
                    continue
                faces[face] = font_name
                break

        if "regular" not in faces:
            return None

        family = FontFamily(
            regular=faces["regular"],
            bold=faces.get("bold", faces["regular"]),
            italic=faces.get("italic", faces["regular"]),
            bold_italic=faces.get("bold_italic", faces.get("bold", faces["regular"])),
        )
        # Lets <b>/<i> markup inside paragraphs pick the right face
        addMapping(family.regular, 0, 0, family.regular)
        addMapping(family.regular, 1, 0, family.bold)
        addMapping(family.regular, 0, 1, family.italic)
        addMapping(family.regular, 1, 1, family.bold_italic)
        logger.info(f"Registered TrueType font family '{key}' from {self.fonts_dir}")
        return family
