"""
Dotted/indexed property access evaluator.

Supports "customer.name", "items.0.name" and "items[0].name".
"""

import re
from typing import Any, Dict, List, Optional
from collections.abc import Mapping

from modules.generation.core.interfaces import IExpressionEvaluator
from modules.generation.core.registry import register_expression_language
from modules.generation.core.exceptions import ExpressionException
from modules.generation.expressions.base import merge_scope

_SEGMENT = re.compile(r"^[A-Za-z_$][\w$-]*$|^\d+$")
_BRACKET = re.compile(r"\[(\d+)\]")


def split_path(path: str) -> List[str]:
    """
    Split a path into segments.

    Raises:
        ExpressionException: If a segment is not a name or an index
    """
    normalized = _BRACKET.sub(r".\1", path.strip())
    segments = [s for s in normalized.split(".")]
    for segment in segments:
        if not _SEGMENT.match(segment):
            raise ExpressionException(f"Invalid path expression: '{path}'")
    return segments


def resolve_path(scope: Any, segments: List[str]) -> Any:
    """Walk segments through nested mappings and lists; None when a step is missing."""
    current = scope
    for segment in segments:
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
    return current


@register_expression_language("simple_path")
class SimplePathEvaluator(IExpressionEvaluator):
    """Evaluates plain property paths against data merged with the loop scope."""

    def evaluate(
        self,
        expression: str,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        segments = split_path(expression)
        return resolve_path(merge_scope(data, loop_context), segments)
