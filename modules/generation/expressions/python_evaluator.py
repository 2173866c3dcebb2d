"""
Sandboxed python-style expression evaluator.

Uses simpleeval, so "total > 100 and customer.vip" or
"len(items) - 1" work without exposing builtins.
"""

from typing import Any, Dict, Optional

from simpleeval import (
    EvalWithCompoundTypes,
    DEFAULT_FUNCTIONS,
    NameNotDefined,
    AttributeDoesNotExist,
    InvalidExpression,
)

from modules.generation.core.interfaces import IExpressionEvaluator
from modules.generation.core.registry import register_expression_language
from modules.generation.core.exceptions import ExpressionException
from modules.generation.expressions.base import merge_scope

FUNCTIONS = {
    **DEFAULT_FUNCTIONS,
    "len": len,
    "sum": sum,
    "min": min,
    "max": max,
    "abs": abs,
    "round": round,
    "sorted": sorted,
    "upper": lambda s: str(s).upper(),
    "lower": lambda s: str(s).lower(),
}


@register_expression_language("python")
class PythonExpressionEvaluator(IExpressionEvaluator):
    """Evaluates python expressions with simpleeval; unknown names resolve to None."""

    def evaluate(
        self,
        expression: str,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        evaluator = EvalWithCompoundTypes(
            names=merge_scope(data, loop_context),
            functions=FUNCTIONS,
        )
        try:
            return evaluator.eval(expression)
        except (NameNotDefined, AttributeDoesNotExist, KeyError, IndexError, TypeError):
            return None
        except (InvalidExpression, SyntaxError) as e:
            raise ExpressionException(f"Invalid expression '{expression}': {e}") from e
