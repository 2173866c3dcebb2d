"""
Input data validation against a template's data model (JSON Schema).
"""

from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from modules.generation.core.exceptions import TemplateValidationException


def collect_validation_errors(data: Dict[str, Any], data_model: Optional[Dict[str, Any]]) -> List[str]:
    """
    Validate data against a JSON Schema.

    Returns:
        Error messages ordered by data path, empty when valid or when no schema is set

    Raises:
        TemplateValidationException: If the schema itself is invalid
    """
    if not data_model:
        return []
    try:
        Draft202012Validator.check_schema(data_model)
    except SchemaError as e:
        raise TemplateValidationException(f"Template data model is not a valid JSON Schema: {e.message}") from e

    validator = Draft202012Validator(data_model)
    errors = sorted(validator.iter_errors(data), key=lambda err: list(err.absolute_path))
    messages = []
    for err in errors:
        path = "/".join(str(p) for p in err.absolute_path) or "(root)"
        messages.append(f"{path}: {err.message}")
    return messages


def validate_template_data(data: Dict[str, Any], data_model: Optional[Dict[str, Any]]) -> None:
    """
    Raise when data does not satisfy the template data model.

    Raises:
        TemplateValidationException: With every validation error attached
    """
    errors = collect_validation_errors(data, data_model)
    if errors:
        raise TemplateValidationException(
            f"Input data does not match template data model: {'; '.join(errors)}",
            errors,
        )
