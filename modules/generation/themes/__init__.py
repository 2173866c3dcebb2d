"""
Themes and style cascade resolution.
"""

from modules.generation.themes.model import Theme
from modules.generation.themes.style_resolver import (
    ResolvedStyles,
    ThemeStyleResolver,
    select_theme_id,
    merge_styles,
    resolve_block_styles,
)

__all__ = [
    "Theme",
    "ResolvedStyles",
    "ThemeStyleResolver",
    "select_theme_id",
    "merge_styles",
    "resolve_block_styles",
]
