"""
Template model, catalog and variant selection for generation module.
"""

from modules.generation.templates.model import (
    TemplateDocument,
    Node,
    Slot,
    ThemeRef,
    PageSettings,
    Margins,
    DEFAULT_PAGE_SETTINGS,
    Tenant,
    DocumentTemplate,
    TemplateVariant,
    TemplateVersion,
    VersionStatus,
)
from modules.generation.templates.variant_resolver import VariantResolver, VariantSelectionCriteria
from modules.generation.templates.catalog import ITemplateCatalog, InMemoryTemplateCatalog
from modules.generation.templates.validation import validate_template_data, collect_validation_errors

__all__ = [
    "TemplateDocument",
    "Node",
    "Slot",
    "ThemeRef",
    "PageSettings",
    "Margins",
    "DEFAULT_PAGE_SETTINGS",
    "Tenant",
    "DocumentTemplate",
    "TemplateVariant",
    "TemplateVersion",
    "VersionStatus",
    "VariantResolver",
    "VariantSelectionCriteria",
    "ITemplateCatalog",
    "InMemoryTemplateCatalog",
    "validate_template_data",
    "collect_validation_errors",
]
