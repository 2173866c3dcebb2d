"""
Theme records.
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass, field

from modules.generation.templates.model import PageSettings


@dataclass
class Theme:
    """
    Tenant-scoped named style bundle.

    Attributes:
        document_styles: Document-level defaults (fontFamily, fontSize, color, ...)
        page_settings: Optional page format/orientation/margins
        block_style_presets: Named style collections blocks refer to via stylePreset
    """
    id: str
    tenant_id: str
    name: str = ""
    document_styles: Dict[str, Any] = field(default_factory=dict)
    page_settings: Optional[PageSettings] = None
    block_style_presets: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Theme":
        presets = {}
        for name, preset in (data.get("blockStylePresets") or {}).items():
            # Presets are stored either as {"label": ..., "styles": {...}} or as a bare style map
            if isinstance(preset, dict) and isinstance(preset.get("styles"), dict):
                presets[name] = dict(preset["styles"])
            else:
                presets[name] = dict(preset or {})
        return cls(
            id=str(data["id"]),
            tenant_id=str(data.get("tenantId", "")),
            name=str(data.get("name", "")),
            document_styles=dict(data.get("documentStyles") or {}),
            page_settings=PageSettings.from_dict(data.get("pageSettings")),
            block_style_presets=presets,
        )
