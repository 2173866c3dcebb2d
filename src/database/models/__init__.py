"""
Database ORM models package.
"""

from src.database.models.generation import (
    GenerationBatchRecord,
    GenerationRequestRecord,
    GenerationItemRecord,
    DocumentRecord,
)
from src.database.models.catalog import (
    TenantRecord,
    EnvironmentRecord,
    ThemeRecord,
    DocumentTemplateRecord,
    TemplateVariantRecord,
    TemplateVersionRecord,
    EnvironmentActivationRecord,
)

__all__ = [
    "GenerationBatchRecord",
    "GenerationRequestRecord",
    "GenerationItemRecord",
    "DocumentRecord",
    "TenantRecord",
    "EnvironmentRecord",
    "ThemeRecord",
    "DocumentTemplateRecord",
    "TemplateVariantRecord",
    "TemplateVersionRecord",
    "EnvironmentActivationRecord",
]
