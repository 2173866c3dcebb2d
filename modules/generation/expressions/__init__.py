"""
Expression languages for template rendering.

Importing this package registers every built-in language.
"""

from modules.generation.expressions.base import (
    Expression,
    merge_scope,
    value_to_string,
    is_truthy,
    to_iterable,
)
from modules.generation.expressions.path_evaluator import SimplePathEvaluator
from modules.generation.expressions.jsonata_evaluator import JsonataEvaluator
from modules.generation.expressions.python_evaluator import PythonExpressionEvaluator
from modules.generation.expressions.composite import CompositeExpressionEvaluator

__all__ = [
    "Expression",
    "merge_scope",
    "value_to_string",
    "is_truthy",
    "to_iterable",
    "SimplePathEvaluator",
    "JsonataEvaluator",
    "PythonExpressionEvaluator",
    "CompositeExpressionEvaluator",
]
