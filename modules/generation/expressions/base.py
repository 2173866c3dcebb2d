"""
Expression model and value coercion helpers shared by every language.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from collections.abc import Mapping


@dataclass(frozen=True)
class Expression:
    """
    An expression embedded in a template node.

    Nodes store expressions either as a plain string or as an object
    {"raw": "...", "language": "jsonata", "required": true}.
    """
    raw: str
    language: Optional[str] = None
    required: bool = False

    @classmethod
    def from_value(cls, value: Any) -> Optional["Expression"]:
        """
        Parse an expression from a node property.

        Returns:
            Expression, or None when the property is empty
        """
        if value is None:
            return None
        if isinstance(value, str):
            raw = value.strip()
            return cls(raw=raw) if raw else None
        if isinstance(value, Mapping):
            raw = str(value.get("raw") or value.get("expression") or "").strip()
            if not raw:
                return None
            return cls(
                raw=raw,
                language=value.get("language"),
                required=bool(value.get("required", False)),
            )
        return None


def merge_scope(data: Optional[Dict[str, Any]], loop_context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Combine input data with loop bindings; loop bindings win."""
    scope: Dict[str, Any] = dict(data or {})
    if loop_context:
        scope.update(loop_context)
    return scope


def value_to_string(value: Any) -> str:
    """
    Convert an evaluated value to display text.

    None becomes "", whole floats print without a fraction and booleans
    print in lowercase.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(value_to_string(v) for v in value)
    return str(value)


def is_truthy(value: Any) -> bool:
    """None, False, 0, "" and empty collections are false; everything else is true."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (list, tuple, set, Mapping)):
        return len(value) > 0
    return True


def to_iterable(value: Any) -> List[Any]:
    """None is empty, sequences are kept, anything else is a single element."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
