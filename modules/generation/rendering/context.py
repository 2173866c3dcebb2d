"""
Render context passed down the template graph walk.

A context is immutable from the point of view of node renderers: loops,
style inheritance and nested layouts derive child contexts instead of
mutating the parent, so sibling subtrees never see each other's scope.
"""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, replace

from reportlab.platypus import Flowable

from modules.generation.core.exceptions import RenderException
from modules.generation.core.interfaces import INodeRenderer
from modules.generation.expressions.composite import CompositeExpressionEvaluator
from modules.generation.templates.model import TemplateDocument, Node
from modules.generation.themes.style_resolver import ResolvedStyles, resolve_block_styles
from modules.generation.rendering.fonts import FontCache
from modules.generation.rendering.styles import inherit_styles


@dataclass(frozen=True)
class RenderContext:
    """
    Attributes:
        document: Template graph being rendered
        data: Input data payload
        evaluator: Expression evaluator
        fonts: Shared font cache
        styles: Resolved theme/template styles
        renderers: Node renderers by node type
        available_width: Width in points of the frame being filled
        loop_context: Loop bindings in scope (inner bindings shadow outer ones)
        inherited_styles: Inheritable styles carried from ancestors
    """
    document: TemplateDocument
    data: Dict[str, Any]
    evaluator: CompositeExpressionEvaluator
    fonts: FontCache
    styles: ResolvedStyles
    renderers: Dict[str, INodeRenderer]
    available_width: float
    loop_context: Dict[str, Any] = field(default_factory=dict)
    inherited_styles: Dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Derived contexts
    # ------------------------------------------------------------------

    def with_bindings(self, bindings: Dict[str, Any]) -> "RenderContext":
        return replace(self, loop_context={**self.loop_context, **bindings})

    def with_inherited(self, inherited: Dict[str, Any]) -> "RenderContext":
        return replace(self, inherited_styles=inherited)

    def with_width(self, width: float) -> "RenderContext":
        return replace(self, available_width=max(width, 1.0))

    def for_node(self, node: Node) -> "RenderContext":
        """Child context carrying this node's inheritable styles to its descendants."""
        preset = self.styles.block_style_presets.get(node.style_preset, {}) if node.style_preset else {}
        return self.with_inherited(inherit_styles(self.inherited_styles, preset, node.styles))

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------

    def block_styles(self, node: Node) -> Dict[str, Any]:
        """Effective styles of a node: inherited, then preset, then inline."""
        own = resolve_block_styles(self.styles.block_style_presets, node.style_preset, node.styles)
        return {**self.inherited_styles, **own}

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def evaluate(self, expression: Any) -> Any:
        return self.evaluator.evaluate(expression, self.data, self.loop_context)

    def evaluate_condition(self, expression: Any) -> bool:
        return self.evaluator.evaluate_condition(expression, self.data, self.loop_context)

    def evaluate_iterable(self, expression: Any) -> List[Any]:
        return self.evaluator.evaluate_iterable(expression, self.data, self.loop_context)

    def evaluate_to_string(self, expression: Any) -> str:
        return self.evaluator.evaluate_to_string(expression, self.data, self.loop_context)

    def interpolate(self, text: str) -> str:
        return self.evaluator.process_template(text, self.data, self.loop_context)

    # ------------------------------------------------------------------
    # Graph walk
    # ------------------------------------------------------------------

    def render_node(self, node_id: str) -> List[Flowable]:
        """
        Render one node by dispatching on its type.

        Raises:
            RenderException: If the node is missing or its type is unsupported
        """
        node = self.document.get_node(node_id)
        if node is None:
            raise RenderException(f"Node '{node_id}' not found in template")
        renderer = self.renderers.get(node.type)
        if renderer is None:
            raise RenderException(f"Unsupported node type '{node.type}' (node '{node.id}')")
        return renderer.render(node, self)

    def render_slot(self, slot_id: str) -> List[Flowable]:
        slot = self.document.get_slot(slot_id)
        if slot is None:
            raise RenderException(f"Slot '{slot_id}' not found in template")
        flowables: List[Flowable] = []
        for child_id in slot.children:
            flowables.extend(self.render_node(child_id))
        return flowables

    def render_children(self, node: Node) -> List[Flowable]:
        """Render every slot of a node, in slot order."""
        flowables: List[Flowable] = []
        for slot_id in node.slots:
            flowables.extend(self.render_slot(slot_id))
        return flowables

    def render_named_slot(self, node: Node, name: str) -> List[Flowable]:
        slot = self.document.slot_by_name(node, name)
        return self.render_slot(slot.id) if slot is not None else []


def loop_bindings(
    item_alias: str,
    index_alias: Optional[str],
    item: Any,
    index: int,
    count: int,
) -> Dict[str, Any]:
    """Bindings for one loop iteration: the item plus index/first/last helpers."""
    bindings = {
        item_alias: item,
        f"{item_alias}_index": index,
        f"{item_alias}_first": index == 0,
        f"{item_alias}_last": index == count - 1,
    }
    if index_alias:
        bindings[index_alias] = index
    return bindings
