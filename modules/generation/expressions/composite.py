"""
Composite expression evaluator.

Dispatches to the registered language evaluator and applies the
best-effort policy: an expression that cannot be resolved yields None
unless it is marked required.
"""

import re
from typing import Any, Dict, List, Optional, Union

from modules.generation.core.registry import ExpressionLanguageRegistry
from modules.generation.core.exceptions import ExpressionException
from modules.generation.expressions.base import (
    Expression,
    value_to_string,
    is_truthy,
    to_iterable,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.+?)\}\}")

ExpressionLike = Union[Expression, str, Dict[str, Any], None]


class CompositeExpressionEvaluator:
    """
    Main entry point for expression evaluation during rendering.

    Example:
        >>> evaluator = CompositeExpressionEvaluator()
        >>> evaluator.process_template("Hello {{customer.name}}!", {"customer": {"name": "Ada"}})
        'Hello Ada!'
    """

    def __init__(self, default_language: str = "simple_path"):
        if not ExpressionLanguageRegistry.is_registered(default_language):
            raise ValueError(
                f"Unknown expression language '{default_language}'. "
                f"Available: {ExpressionLanguageRegistry.list_languages()}"
            )
        self.default_language = default_language

    def _coerce(self, expression: ExpressionLike) -> Optional[Expression]:
        if isinstance(expression, Expression):
            return expression
        return Expression.from_value(expression)

    def evaluate(
        self,
        expression: ExpressionLike,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Evaluate an expression.

        Returns:
            The value, or None for empty or unresolvable expressions

        Raises:
            ExpressionException: If a required expression fails or yields None
        """
        expr = self._coerce(expression)
        if expr is None:
            return None

        language = expr.language or self.default_language
        try:
            evaluator = ExpressionLanguageRegistry.get(language)
        except ValueError as e:
            raise ExpressionException(str(e)) from e

        try:
            value = evaluator.evaluate(expr.raw, data, loop_context)
        except (ExpressionException, ArithmeticError, ValueError, TypeError) as e:
            if expr.required:
                raise ExpressionException(f"Required expression '{expr.raw}' failed: {e}") from e
            logger.debug(f"Expression '{expr.raw}' ({language}) unresolved: {e}")
            return None

        if value is None and expr.required:
            raise ExpressionException(f"Required expression '{expr.raw}' has no value")
        return value

    def evaluate_to_string(
        self,
        expression: ExpressionLike,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Evaluate and convert the result to display text."""
        return value_to_string(self.evaluate(expression, data, loop_context))

    def evaluate_condition(
        self,
        expression: ExpressionLike,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Evaluate a condition; unresolvable conditions are false."""
        return is_truthy(self.evaluate(expression, data, loop_context))

    def evaluate_iterable(
        self,
        expression: ExpressionLike,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> List[Any]:
        """Evaluate an expression that should yield a collection."""
        return to_iterable(self.evaluate(expression, data, loop_context))

    def process_template(
        self,
        template: str,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
        language: Optional[str] = None,
    ) -> str:
        """
        Replace {{expression}} placeholders in text.

        All placeholders in one string use the same language.
        """
        if "{{" not in template:
            return template

        def _replace(match: re.Match) -> str:
            expr = Expression(raw=match.group(1).strip(), language=language)
            return self.evaluate_to_string(expr, data, loop_context)

        return PLACEHOLDER_PATTERN.sub(_replace, template)
