"""
JSONata query-language evaluator.

Used for aggregation, filtering and transforms, e.g. "$sum(items.price)"
or "items[qty > 1].name".
"""

from typing import Any, Dict, Optional

import jsonata

from modules.generation.core.interfaces import IExpressionEvaluator
from modules.generation.core.registry import register_expression_language
from modules.generation.core.exceptions import ExpressionException
from modules.generation.expressions.base import merge_scope


@register_expression_language("jsonata")
class JsonataEvaluator(IExpressionEvaluator):
    """
    Evaluates JSONata expressions.

    Expressions are compiled per call; compiled objects are not shared
    across concurrent renders.
    """

    def evaluate(
        self,
        expression: str,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            compiled = jsonata.Jsonata(expression)
        except Exception as e:
            raise ExpressionException(f"Invalid JSONata expression '{expression}': {e}") from e

        try:
            result = compiled.evaluate(merge_scope(data, loop_context))
        except Exception as e:
            raise ExpressionException(f"JSONata evaluation failed for '{expression}': {e}") from e

        if isinstance(result, list):
            return list(result)
        return result
