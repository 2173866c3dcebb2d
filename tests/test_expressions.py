"""
Tests for expression evaluation: paths, JSONata, python and placeholders.
"""

import pytest

from modules.generation.core.exceptions import ExpressionException
from modules.generation.expressions import (
    CompositeExpressionEvaluator,
    Expression,
    is_truthy,
    to_iterable,
    value_to_string,
)
from modules.generation.expressions.path_evaluator import split_path

DATA = {
    "customer": {"name": "Ada", "vip": True},
    "items": [{"name": "Widget", "price": 10, "qty": 2}, {"name": "Gadget", "price": 2.5, "qty": 1}],
    "total": 22.5,
}


@pytest.fixture
def evaluator():
    return CompositeExpressionEvaluator()


# ==============================================================================
# COERCION
# ==============================================================================

def test_value_to_string():
    assert value_to_string(None) == ""
    assert value_to_string(True) == "true"
    assert value_to_string(3.0) == "3"
    assert value_to_string(2.5) == "2.5"
    assert value_to_string(["a", 1]) == "a, 1"


def test_is_truthy():
    for value in (None, False, 0, 0.0, "", [], {}):
        assert is_truthy(value) is False
    for value in (True, 1, "no", [0], {"a": 1}, object()):
        assert is_truthy(value) is True


def test_to_iterable():
    assert to_iterable(None) == []
    assert to_iterable((1, 2)) == [1, 2]
    assert to_iterable({"a": 1}) == [{"a": 1}]


def test_expression_from_value():
    assert Expression.from_value("  ") is None
    assert Expression.from_value({"raw": "a.b", "language": "jsonata", "required": True}) == Expression(
        raw="a.b", language="jsonata", required=True
    )
    assert Expression.from_value(42) is None


# ==============================================================================
# PATHS
# ==============================================================================

def test_simple_path(evaluator):
    assert evaluator.evaluate("customer.name", DATA) == "Ada"
    assert evaluator.evaluate("items.1.name", DATA) == "Gadget"
    assert evaluator.evaluate("items[0].price", DATA) == 10
    assert evaluator.evaluate("items.5.name", DATA) is None
    assert evaluator.evaluate("customer.missing.deeper", DATA) is None


def test_loop_bindings_shadow_data(evaluator):
    data = {"item": "from data"}
    assert evaluator.evaluate("item", data, {"item": "from loop"}) == "from loop"
    assert evaluator.evaluate("item", data) == "from data"


def test_invalid_path_is_rejected():
    with pytest.raises(ExpressionException):
        split_path("customer..name")


def test_unresolvable_expression_yields_none(evaluator):
    assert evaluator.evaluate("customer name", DATA) is None


def test_required_expression_raises(evaluator):
    with pytest.raises(ExpressionException):
        evaluator.evaluate({"raw": "customer.email", "required": True}, DATA)


def test_unknown_default_language():
    with pytest.raises(ValueError):
        CompositeExpressionEvaluator(default_language="cobol")


# ==============================================================================
# OTHER LANGUAGES
# ==============================================================================

def test_jsonata_aggregation(evaluator):
    expression = {"raw": "$sum(items.(price * qty))", "language": "jsonata"}
    assert evaluator.evaluate(expression, DATA) == 22.5


def test_jsonata_filter(evaluator):
    expression = {"raw": "items[qty > 1].name", "language": "jsonata"}
    assert evaluator.evaluate(expression, DATA) == "Widget"


def test_python_expressions(evaluator):
    assert evaluator.evaluate({"raw": "total > 20 and customer.vip", "language": "python"}, DATA) is True
    assert evaluator.evaluate({"raw": "len(items)", "language": "python"}, DATA) == 2
    assert evaluator.evaluate({"raw": "unknown_name + 1", "language": "python"}, DATA) is None


def test_python_evaluator_blocks_builtins(evaluator):
    assert evaluator.evaluate({"raw": "open('x')", "language": "python"}, DATA) is None


# ==============================================================================
# PLACEHOLDERS
# ==============================================================================

def test_process_template(evaluator):
    text = "Dear {{customer.name}}, you owe {{total}} for {{ items.0.name }}."
    assert evaluator.process_template(text, DATA) == "Dear Ada, you owe 22.5 for Widget."


def test_process_template_missing_values_are_blank(evaluator):
    assert evaluator.process_template("[{{customer.email}}]", DATA) == "[]"


def test_process_template_with_language(evaluator):
    text = "Total: {{$sum(items.price)}}"
    assert evaluator.process_template(text, DATA, language="jsonata") == "Total: 12.5"


def test_conditions_and_iterables(evaluator):
    assert evaluator.evaluate_condition("customer.vip", DATA) is True
    assert evaluator.evaluate_condition("customer.missing", DATA) is False
    assert len(evaluator.evaluate_iterable("items", DATA)) == 2
    assert evaluator.evaluate_iterable("customer", DATA) == [DATA["customer"]]
