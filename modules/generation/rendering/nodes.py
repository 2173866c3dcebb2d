"""
Node renderers for flow and control nodes.

Each renderer self-registers with NodeRendererRegistry for the node
types it handles.
"""

from typing import Any, List

from reportlab.platypus import Flowable, PageBreak, Spacer, Table, TableStyle

from modules.generation.core.interfaces import INodeRenderer
from modules.generation.core.registry import register_node_renderer
from modules.generation.templates.model import Node
from modules.generation.rendering.context import RenderContext, loop_bindings
from modules.generation.rendering.styles import parse_size, to_color, box_padding
from modules.generation.rendering.tiptap import TipTapConverter


FALSE_FLAG_STRINGS = ("false", "0", "no", "off", "")


def prop_flag(value: Any, default: bool = False) -> bool:
    """Boolean node prop; template JSON may carry "true"/"false" as strings."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_FLAG_STRINGS
    return bool(value)


def wrap_box(flowables: List[Flowable], styles: dict, width: float) -> List[Flowable]:
    """
    Wrap content in a one-cell table when the block has a background,
    border or padding; add vertical margins as spacers.
    """
    result: List[Flowable] = []
    margin_top = parse_size(styles.get("marginTop"))
    margin_bottom = parse_size(styles.get("marginBottom"))
    if margin_top:
        result.append(Spacer(1, margin_top))

    background = to_color(styles.get("backgroundColor"))
    border_color = to_color(styles.get("borderColor"))
    border_width = parse_size(styles.get("borderWidth"))
    padding = box_padding(styles)

    if flowables and (background is not None or border_width or any(padding.values())):
        commands = [
            ("TOPPADDING", (0, 0), (-1, -1), padding["top"]),
            ("RIGHTPADDING", (0, 0), (-1, -1), padding["right"]),
            ("BOTTOMPADDING", (0, 0), (-1, -1), padding["bottom"]),
            ("LEFTPADDING", (0, 0), (-1, -1), padding["left"]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]
        if background is not None:
            commands.append(("BACKGROUND", (0, 0), (-1, -1), background))
        if border_width:
            commands.append(("BOX", (0, 0), (-1, -1), border_width, border_color or to_color("#808080")))
        box = Table([[flowables]], colWidths=[width])
        box.setStyle(TableStyle(commands))
        result.append(box)
    else:
        result.extend(flowables)

    if margin_bottom:
        result.append(Spacer(1, margin_bottom))
    return result


def inner_width(styles: dict, width: float) -> float:
    padding = box_padding(styles)
    return width - padding["left"] - padding["right"]


@register_node_renderer("root", "container")
class ContainerNodeRenderer(INodeRenderer):
    """Renders the children of every slot, applying the container's box styles."""

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        styles = context.block_styles(node)
        child_context = context.for_node(node).with_width(inner_width(styles, context.available_width))
        flowables = child_context.render_children(node)
        if node.type == "root":
            return flowables
        return wrap_box(flowables, styles, context.available_width)


@register_node_renderer("text")
class TextNodeRenderer(INodeRenderer):
    """Renders TipTap rich text with interpolated expressions."""

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        styles = context.block_styles(node)
        converter = TipTapConverter(context, styles)
        flowables = converter.convert(node.props.get("content"))
        # Paragraph styles already carry the text background
        box_styles = {k: v for k, v in styles.items() if k != "backgroundColor"}
        return wrap_box(flowables, box_styles, context.available_width)


@register_node_renderer("conditional")
class ConditionalNodeRenderer(INodeRenderer):
    """
    Renders children only when the condition holds.

    Props:
        condition: Expression
        inverse: Render when the condition does NOT hold
    """

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        result = context.evaluate_condition(node.props.get("condition"))
        if prop_flag(node.props.get("inverse")):
            result = not result
        if not result:
            return []
        return context.for_node(node).render_children(node)


@register_node_renderer("loop")
class LoopNodeRenderer(INodeRenderer):
    """
    Renders children once per element of an iterable.

    Props:
        expression: Expression yielding the collection
        itemAlias: Name bound to the current element (default "item")
        indexAlias: Optional name bound to the zero-based index
    """

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        items = context.evaluate_iterable(node.props.get("expression"))
        item_alias = node.props.get("itemAlias") or "item"
        index_alias = node.props.get("indexAlias")

        node_context = context.for_node(node)
        flowables: List[Flowable] = []
        for index, item in enumerate(items):
            bindings = loop_bindings(item_alias, index_alias, item, index, len(items))
            flowables.extend(node_context.with_bindings(bindings).render_children(node))
        return flowables


@register_node_renderer("pagebreak")
class PageBreakNodeRenderer(INodeRenderer):

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        return [PageBreak()]


@register_node_renderer("pageheader", "pagefooter")
class PageDecorationNodeRenderer(INodeRenderer):
    """Headers and footers are drawn on every page by the PDF renderer, not in the flow."""

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        return []
