"""
Template document model (node/slot graph) and catalog records.

Templates arrive as JSON (from the database or YAML/JSON files) and are
decoded here into typed records once, at the boundary.
"""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from modules.generation.core.exceptions import TemplateValidationException


# ==============================================================================
# PAGE SETTINGS
# ==============================================================================

@dataclass(frozen=True)
class Margins:
    """Page margins in millimetres."""
    top: float = 20
    right: float = 20
    bottom: float = 20
    left: float = 20

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Margins":
        data = data or {}
        return cls(
            top=float(data.get("top", 20)),
            right=float(data.get("right", 20)),
            bottom=float(data.get("bottom", 20)),
            left=float(data.get("left", 20)),
        )


@dataclass(frozen=True)
class PageSettings:
    """Page format, orientation and margins."""
    format: str = "A4"
    orientation: str = "portrait"
    margins: Margins = field(default_factory=Margins)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PageSettings"]:
        if not data:
            return None
        return cls(
            format=str(data.get("format", "A4")),
            orientation=str(data.get("orientation", "portrait")),
            margins=Margins.from_dict(data.get("margins")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "orientation": self.orientation,
            "margins": {
                "top": self.margins.top,
                "right": self.margins.right,
                "bottom": self.margins.bottom,
                "left": self.margins.left,
            },
        }


DEFAULT_PAGE_SETTINGS = PageSettings()


# ==============================================================================
# NODE / SLOT GRAPH
# ==============================================================================

@dataclass
class Node:
    """A content or layout element of the template graph."""
    id: str
    type: str
    slots: List[str] = field(default_factory=list)
    styles: Dict[str, Any] = field(default_factory=dict)
    style_preset: Optional[str] = None
    props: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            slots=[str(s) for s in data.get("slots") or []],
            styles={k: v for k, v in (data.get("styles") or {}).items() if v is not None},
            style_preset=data.get("stylePreset"),
            props=dict(data.get("props") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "slots": list(self.slots),
            "styles": dict(self.styles),
            "stylePreset": self.style_preset,
            "props": dict(self.props),
        }


@dataclass
class Slot:
    """A named, ordered child list exposed by a node."""
    id: str
    node_id: str
    name: str
    children: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Slot":
        return cls(
            id=str(data["id"]),
            node_id=str(data["nodeId"]),
            name=str(data.get("name", "")),
            children=[str(c) for c in data.get("children") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "nodeId": self.node_id, "name": self.name, "children": list(self.children)}


@dataclass(frozen=True)
class ThemeRef:
    """Variant-level theme reference: inherit the template's theme or override it."""
    type: str = "inherit"
    theme_id: Optional[str] = None

    @property
    def override_theme_id(self) -> Optional[str]:
        return self.theme_id if self.type == "override" else None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ThemeRef":
        if not data:
            return cls()
        return cls(type=str(data.get("type", "inherit")), theme_id=data.get("themeId"))


@dataclass
class TemplateDocument:
    """
    Version 2 template document: a normalized node/slot graph.

    Attributes:
        model_version: Document format version
        root: ID of the root node
        nodes: Nodes by ID
        slots: Slots by ID
        theme_ref: Variant-level theme reference
        document_styles_override: Template-level document styles
        page_settings_override: Template-level page settings
    """
    root: str
    nodes: Dict[str, Node]
    slots: Dict[str, Slot]
    model_version: int = 2
    theme_ref: ThemeRef = field(default_factory=ThemeRef)
    document_styles_override: Dict[str, Any] = field(default_factory=dict)
    page_settings_override: Optional[PageSettings] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateDocument":
        """
        Decode a template document from its JSON form.

        Raises:
            TemplateValidationException: If the document is malformed
        """
        if not isinstance(data, dict):
            raise TemplateValidationException("Template document must be an object")
        try:
            nodes = {str(k): Node.from_dict(v) for k, v in (data.get("nodes") or {}).items()}
            slots = {str(k): Slot.from_dict(v) for k, v in (data.get("slots") or {}).items()}
            document = cls(
                root=str(data["root"]),
                nodes=nodes,
                slots=slots,
                model_version=int(data.get("modelVersion", 2)),
                theme_ref=ThemeRef.from_dict(data.get("themeRef")),
                document_styles_override=dict(data.get("documentStylesOverride") or {}),
                page_settings_override=PageSettings.from_dict(data.get("pageSettingsOverride")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TemplateValidationException(f"Malformed template document: {e}") from e

        document.validate_structure()
        return document

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modelVersion": self.model_version,
            "root": self.root,
            "nodes": {k: v.to_dict() for k, v in self.nodes.items()},
            "slots": {k: v.to_dict() for k, v in self.slots.items()},
            "themeRef": {"type": self.theme_ref.type, "themeId": self.theme_ref.theme_id},
            "documentStylesOverride": dict(self.document_styles_override),
            "pageSettingsOverride": self.page_settings_override.to_dict() if self.page_settings_override else None,
        }

    def validate_structure(self) -> None:
        """
        Check graph references.

        Raises:
            TemplateValidationException: If the root or a referenced slot/node is missing
        """
        errors = []
        if self.root not in self.nodes:
            errors.append(f"Root node '{self.root}' not found")
        for node in self.nodes.values():
            for slot_id in node.slots:
                if slot_id not in self.slots:
                    errors.append(f"Node '{node.id}' references missing slot '{slot_id}'")
        for slot in self.slots.values():
            for child_id in slot.children:
                if child_id not in self.nodes:
                    errors.append(f"Slot '{slot.id}' references missing node '{child_id}'")
        if errors:
            raise TemplateValidationException("Invalid template document", errors)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def get_slot(self, slot_id: str) -> Optional[Slot]:
        return self.slots.get(slot_id)

    def first_node_of_type(self, node_type: str) -> Optional[Node]:
        # Sorted so header/footer lookup does not depend on dict order
        for node_id in sorted(self.nodes):
            if self.nodes[node_id].type == node_type:
                return self.nodes[node_id]
        return None

    def slot_by_name(self, node: Node, name: str) -> Optional[Slot]:
        for slot_id in node.slots:
            slot = self.slots.get(slot_id)
            if slot is not None and slot.name == name:
                return slot
        return None


# ==============================================================================
# CATALOG RECORDS
# ==============================================================================

class VersionStatus(str, Enum):
    """Template version lifecycle; transitions only move forward."""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"

    def can_transition_to(self, target: "VersionStatus") -> bool:
        order = [VersionStatus.DRAFT, VersionStatus.PUBLISHED, VersionStatus.ARCHIVED]
        return order.index(target) == order.index(self) + 1


@dataclass
class Tenant:
    id: str
    name: str = ""
    default_theme_id: Optional[str] = None


@dataclass
class DocumentTemplate:
    """A tenant-owned template. data_model is an optional JSON Schema for input data."""
    id: str
    tenant_id: str
    name: str = ""
    default_theme_id: Optional[str] = None
    data_model: Optional[Dict[str, Any]] = None


@dataclass
class TemplateVariant:
    """A template variant, selected by attribute tags."""
    id: str
    template_id: str
    attributes: Dict[str, str] = field(default_factory=dict)
    is_default: bool = False


@dataclass
class TemplateVersion:
    """An immutable-once-published template graph of one variant."""
    id: int
    variant_id: str
    status: VersionStatus = VersionStatus.DRAFT
    template_model: Optional[TemplateDocument] = None
    published_at: Optional[datetime] = None
