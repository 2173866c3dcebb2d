"""
Tests for variant selection.
"""

import pytest

from modules.generation.core.exceptions import AmbiguousVariantException, VariantResolutionException
from modules.generation.templates import TemplateVariant, VariantResolver, VariantSelectionCriteria


def variant(variant_id: str, is_default: bool = False, **attributes) -> TemplateVariant:
    return TemplateVariant(id=variant_id, template_id="letter", attributes=attributes, is_default=is_default)


VARIANTS = [
    variant("en", language="en", is_default=True),
    variant("en-formal", language="en", tone="formal"),
    variant("de", language="de"),
    variant("de-formal", language="de", tone="formal"),
]


def criteria(required=None, optional=None) -> VariantSelectionCriteria:
    return VariantSelectionCriteria.from_dict({"required": required or {}, "optional": optional or {}})


def test_optional_attributes_break_ties():
    resolver = VariantResolver()
    selected = resolver.resolve(VARIANTS, criteria({"language": "de"}, {"tone": "formal"}), "letter")
    assert selected.id == "de-formal"


def test_all_required_attributes_must_match():
    resolver = VariantResolver()
    selected = resolver.resolve(VARIANTS, criteria({"language": "en", "tone": "formal"}), "letter")
    assert selected.id == "en-formal"


def test_tie_is_an_error():
    resolver = VariantResolver()
    with pytest.raises(AmbiguousVariantException) as exc_info:
        resolver.resolve(VARIANTS, criteria({"language": "de"}), "letter")
    assert exc_info.value.variant_ids == ["de", "de-formal"]


def test_no_match_falls_back_to_default():
    resolver = VariantResolver()
    selected = resolver.resolve(VARIANTS, criteria({"language": "fr"}), "letter")
    assert selected.id == "en"


def test_no_match_without_default_fails():
    resolver = VariantResolver()
    variants = [v for v in VARIANTS if not v.is_default]
    with pytest.raises(VariantResolutionException):
        resolver.resolve(variants, criteria({"language": "fr"}), "letter")


def test_empty_criteria_with_single_variant():
    resolver = VariantResolver()
    assert resolver.resolve([variant("only")], criteria(), "letter").id == "only"


def test_criteria_values_are_strings():
    parsed = VariantSelectionCriteria.from_dict({"required": {"year": 2024}})
    assert parsed.required == {"year": "2024"}
    assert parsed.optional == {}
