"""
Node renderers for grid layouts: columns, table and datatable.

All three produce a reportlab Table whose cells hold the flowables of
the corresponding slots.
"""

from typing import Dict, Any, List, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.platypus import Flowable, Table, TableStyle

from modules.generation.core.interfaces import INodeRenderer
from modules.generation.core.registry import register_node_renderer
from modules.generation.templates.model import Node
from modules.generation.rendering.context import RenderContext, loop_bindings
from modules.generation.rendering.nodes import prop_flag, wrap_box
from modules.generation.rendering.styles import parse_size
from modules.generation.rendering.tiptap import TipTapConverter

BORDER_COLOR = colors.grey
BORDER_WIDTH = 0.5
CELL_PADDING = 6.0
DEFAULT_COLUMN_GAP = 8.0
DEFAULT_DATATABLE_COLUMN_WIDTH = 33.0


def relative_widths(weights: Optional[Sequence[Any]], count: int, total: float) -> List[float]:
    """Split a width by relative weights; missing or mismatched weights give equal columns."""
    parsed: List[float] = []
    for weight in weights or []:
        try:
            parsed.append(max(float(weight), 0.0))
        except (TypeError, ValueError):
            parsed = []
            break
    if len(parsed) != count or sum(parsed) <= 0:
        parsed = [1.0] * count
    weight_sum = sum(parsed)
    return [total * w / weight_sum for w in parsed]


def border_commands(border_style: Optional[str]) -> List[Tuple]:
    style = (border_style or "all").lower()
    if style == "none":
        return []
    if style == "horizontal":
        return [
            ("LINEABOVE", (0, 0), (-1, 0), BORDER_WIDTH, BORDER_COLOR),
            ("LINEBELOW", (0, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR),
        ]
    if style == "vertical":
        return [
            ("LINEBEFORE", (0, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR),
            ("LINEAFTER", (-1, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR),
        ]
    return [("GRID", (0, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR)]


def cell_padding_commands(padding: float) -> List[Tuple]:
    return [
        ("TOPPADDING", (0, 0), (-1, -1), padding),
        ("BOTTOMPADDING", (0, 0), (-1, -1), padding),
        ("LEFTPADDING", (0, 0), (-1, -1), padding),
        ("RIGHTPADDING", (0, 0), (-1, -1), padding),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]


def header_context(context: RenderContext) -> RenderContext:
    return context.with_inherited({**context.inherited_styles, "fontWeight": "bold"})


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ==============================================================================
# COLUMNS
# ==============================================================================

@register_node_renderer("columns")
class ColumnsNodeRenderer(INodeRenderer):
    """
    Side-by-side columns.

    Slots are named "column-0", "column-1", ... and laid out by index.

    Props:
        columnSizes: Relative column widths (default equal)
        gap: Space between columns (default 8)
    """

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        slots = [context.document.get_slot(slot_id) for slot_id in node.slots]
        slots = [slot for slot in slots if slot is not None]
        if not slots:
            return []
        slots.sort(key=lambda slot: _as_int(slot.name.replace("column-", ""), 0))

        styles = context.block_styles(node)
        gap = parse_size(node.props.get("gap"))
        gap = DEFAULT_COLUMN_GAP if gap is None else gap
        widths = relative_widths(node.props.get("columnSizes"), len(slots), context.available_width)

        node_context = context.for_node(node)
        row: List[List[Flowable]] = []
        for index, slot in enumerate(slots):
            left = 0 if index == 0 else gap / 2
            right = 0 if index == len(slots) - 1 else gap / 2
            column_context = node_context.with_width(widths[index] - left - right)
            row.append(column_context.render_slot(slot.id))

        commands: List[Tuple] = [("VALIGN", (0, 0), (-1, -1), "TOP"),
                                 ("TOPPADDING", (0, 0), (-1, -1), 0),
                                 ("BOTTOMPADDING", (0, 0), (-1, -1), 0)]
        for index in range(len(slots)):
            commands.append(("LEFTPADDING", (index, 0), (index, 0), 0 if index == 0 else gap / 2))
            commands.append(("RIGHTPADDING", (index, 0), (index, 0), 0 if index == len(slots) - 1 else gap / 2))

        table = Table([row], colWidths=widths)
        table.setStyle(TableStyle(commands))
        return wrap_box([table], {k: v for k, v in styles.items() if k.startswith("margin")}, context.available_width)


# ==============================================================================
# TABLE
# ==============================================================================

@register_node_renderer("table")
class TableNodeRenderer(INodeRenderer):
    """
    Static table with one slot per cell, named "cell-{row}-{col}".

    Props:
        rows, columns: Grid size
        columnWidths: Relative column widths (optional)
        headerRows: Leading rows rendered bold and repeated on page breaks
        borderStyle: all | horizontal | vertical | none
        merges: List of {row, col, rowSpan, colSpan}
    """

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        row_count = _as_int(node.props.get("rows"))
        col_count = _as_int(node.props.get("columns"))
        if row_count <= 0 or col_count <= 0:
            return []

        header_rows = min(max(_as_int(node.props.get("headerRows")), 0), row_count)
        widths = relative_widths(node.props.get("columnWidths"), col_count, context.available_width)
        merges = self._parse_merges(node.props.get("merges"), row_count, col_count)
        covered = self._covered_cells(merges)

        node_context = context.for_node(node)
        slots_by_name: Dict[str, str] = {}
        for slot_id in node.slots:
            slot = context.document.get_slot(slot_id)
            if slot is not None:
                slots_by_name[slot.name] = slot.id

        rows: List[List[Any]] = []
        for row in range(row_count):
            row_context = header_context(node_context) if row < header_rows else node_context
            cells: List[Any] = []
            for col in range(col_count):
                slot_id = slots_by_name.get(f"cell-{row}-{col}")
                if (row, col) in covered or slot_id is None:
                    cells.append("")
                    continue
                span = merges.get((row, col), (1, 1))
                cell_width = sum(widths[col:col + span[1]]) - 2 * CELL_PADDING
                cells.append(row_context.with_width(cell_width).render_slot(slot_id))
            rows.append(cells)

        commands = cell_padding_commands(CELL_PADDING) + border_commands(node.props.get("borderStyle"))
        for (row, col), (row_span, col_span) in sorted(merges.items()):
            commands.append(("SPAN", (col, row), (col + col_span - 1, row + row_span - 1)))

        table = Table(rows, colWidths=widths, repeatRows=header_rows)
        table.setStyle(TableStyle(commands))
        styles = context.block_styles(node)
        return wrap_box([table], {k: v for k, v in styles.items() if k.startswith("margin")}, context.available_width)

    @staticmethod
    def _parse_merges(raw: Any, row_count: int, col_count: int) -> Dict[Tuple[int, int], Tuple[int, int]]:
        """Anchor (row, col) to (rowSpan, colSpan); spans are clipped to the grid."""
        merges: Dict[Tuple[int, int], Tuple[int, int]] = {}
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            row, col = _as_int(entry.get("row"), -1), _as_int(entry.get("col"), -1)
            row_span, col_span = _as_int(entry.get("rowSpan"), 0), _as_int(entry.get("colSpan"), 0)
            if not (0 <= row < row_count and 0 <= col < col_count) or row_span < 1 or col_span < 1:
                continue
            merges[(row, col)] = (min(row_span, row_count - row), min(col_span, col_count - col))
        return merges

    @staticmethod
    def _covered_cells(merges: Dict[Tuple[int, int], Tuple[int, int]]) -> set:
        covered = set()
        for (row, col), (row_span, col_span) in merges.items():
            for r in range(row, row + row_span):
                for c in range(col, col + col_span):
                    if (r, c) != (row, col):
                        covered.add((r, c))
        return covered


# ==============================================================================
# DATATABLE
# ==============================================================================

@register_node_renderer("datatable")
class DatatableNodeRenderer(INodeRenderer):
    """
    Data-driven table: one row per element of an iterable.

    Column definitions are "datatable-column" children of the first slot,
    each with props header and width (percent) and a body slot rendered
    once per row with the loop bindings in scope.

    Props:
        expression, itemAlias, indexAlias: As for loop nodes
        headerEnabled: Render the header row (default true)
        borderStyle: all | horizontal | vertical | none
    """

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        expression = node.props.get("expression")
        if not expression:
            return []

        items = context.evaluate_iterable(expression)
        header_enabled = prop_flag(node.props.get("headerEnabled"), default=True)
        if not items and not header_enabled:
            return []

        columns = self._column_nodes(node, context)
        if not columns:
            return []

        widths = relative_widths(
            [c.props.get("width", DEFAULT_DATATABLE_COLUMN_WIDTH) for c in columns],
            len(columns),
            context.available_width,
        )
        node_context = context.for_node(node)
        item_alias = node.props.get("itemAlias") or "item"
        index_alias = node.props.get("indexAlias")

        rows: List[List[Any]] = []
        if header_enabled:
            bold_context = header_context(node_context)
            rows.append([
                self._header_cell(column, bold_context.for_node(column), widths[i])
                for i, column in enumerate(columns)
            ])

        for index, item in enumerate(items):
            row_context = node_context.with_bindings(loop_bindings(item_alias, index_alias, item, index, len(items)))
            row = []
            for i, column in enumerate(columns):
                column_context = row_context.for_node(column).with_width(widths[i] - 2 * CELL_PADDING)
                body = column.slots[0] if column.slots else None
                row.append(column_context.render_slot(body) if body else "")
            rows.append(row)

        if not rows:
            return []

        commands = cell_padding_commands(CELL_PADDING) + border_commands(node.props.get("borderStyle"))
        table = Table(rows, colWidths=widths, repeatRows=1 if header_enabled else 0)
        table.setStyle(TableStyle(commands))
        styles = context.block_styles(node)
        return wrap_box([table], {k: v for k, v in styles.items() if k.startswith("margin")}, context.available_width)

    @staticmethod
    def _column_nodes(node: Node, context: RenderContext) -> List[Node]:
        if not node.slots:
            return []
        slot = context.document.get_slot(node.slots[0])
        if slot is None:
            return []
        columns = [context.document.get_node(child_id) for child_id in slot.children]
        return [c for c in columns if c is not None and c.type == "datatable-column"]

    @staticmethod
    def _header_cell(column: Node, context: RenderContext, width: float) -> List[Flowable]:
        header = column.props.get("header")
        if not header:
            return []
        converter = TipTapConverter(context.with_width(width - 2 * CELL_PADDING), context.block_styles(column))
        return converter.convert(str(header))


@register_node_renderer("datatable-column")
class DatatableColumnNodeRenderer(INodeRenderer):
    """Columns are rendered by their datatable; outside one they produce nothing."""

    def render(self, node: Node, context: RenderContext) -> List[Flowable]:
        return []
