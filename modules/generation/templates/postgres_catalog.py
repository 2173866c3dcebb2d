"""
Database-backed template catalog.

Reads the shared catalog tables; writes belong to the editor service.
"""

from typing import Any, Callable, List, Optional, AsyncContextManager

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from modules.generation.templates.catalog import ITemplateCatalog
from modules.generation.templates.model import (
    Tenant,
    DocumentTemplate,
    TemplateVariant,
    TemplateVersion,
    TemplateDocument,
    PageSettings,
    VersionStatus,
)
from modules.generation.themes.model import Theme
from src.database.connection import get_session
from src.database.models.catalog import (
    TenantRecord,
    EnvironmentRecord,
    ThemeRecord,
    DocumentTemplateRecord,
    TemplateVariantRecord,
    TemplateVersionRecord,
    EnvironmentActivationRecord,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


def version_from_record(record: TemplateVersionRecord) -> TemplateVersion:
    return TemplateVersion(
        id=record.id,
        variant_id=record.variant_id,
        status=VersionStatus(record.status),
        template_model=TemplateDocument.from_dict(record.template_model) if record.template_model else None,
        published_at=record.published_at,
    )


class PostgresTemplateCatalog(ITemplateCatalog):
    """Template catalog over the catalog tables."""

    def __init__(self, session_factory: Callable[[], AsyncContextManager[AsyncSession]] = get_session):
        self._session = session_factory

    async def _first(self, stmt) -> Optional[Any]:
        async with self._session() as session:
            return (await session.execute(stmt)).scalars().first()

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        record = await self._first(select(TenantRecord).where(TenantRecord.id == tenant_id))
        if record is None:
            return None
        return Tenant(id=record.id, name=record.name, default_theme_id=record.default_theme_id)

    async def get_template(self, tenant_id: str, template_id: str) -> Optional[DocumentTemplate]:
        record = await self._first(
            select(DocumentTemplateRecord).where(
                DocumentTemplateRecord.tenant_id == tenant_id,
                DocumentTemplateRecord.id == template_id,
            )
        )
        if record is None:
            return None
        return DocumentTemplate(
            id=record.id,
            tenant_id=record.tenant_id,
            name=record.name,
            default_theme_id=record.default_theme_id,
            data_model=record.data_model,
        )

    async def list_variants(self, tenant_id: str, template_id: str) -> List[TemplateVariant]:
        async with self._session() as session:
            records = (
                await session.execute(
                    select(TemplateVariantRecord)
                    .where(
                        TemplateVariantRecord.tenant_id == tenant_id,
                        TemplateVariantRecord.template_id == template_id,
                    )
                    .order_by(TemplateVariantRecord.id)
                )
            ).scalars().all()

        return [
            TemplateVariant(
                id=r.id,
                template_id=r.template_id,
                attributes={str(k): str(v) for k, v in (r.attributes or {}).items()},
                is_default=bool(r.is_default),
            )
            for r in records
        ]

    async def get_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        version_id: int,
    ) -> Optional[TemplateVersion]:
        record = await self._first(
            select(TemplateVersionRecord).where(
                TemplateVersionRecord.tenant_id == tenant_id,
                TemplateVersionRecord.template_id == template_id,
                TemplateVersionRecord.variant_id == variant_id,
                TemplateVersionRecord.id == int(version_id),
            )
        )
        return version_from_record(record) if record is not None else None

    async def get_active_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        environment_id: str,
    ) -> Optional[TemplateVersion]:
        activation = EnvironmentActivationRecord
        record = await self._first(
            select(TemplateVersionRecord)
            .join(
                activation,
                and_(
                    activation.tenant_id == TemplateVersionRecord.tenant_id,
                    activation.template_id == TemplateVersionRecord.template_id,
                    activation.variant_id == TemplateVersionRecord.variant_id,
                    activation.version_id == TemplateVersionRecord.id,
                ),
            )
            .where(
                activation.tenant_id == tenant_id,
                activation.template_id == template_id,
                activation.variant_id == variant_id,
                activation.environment_id == environment_id,
                TemplateVersionRecord.status == VersionStatus.PUBLISHED.value,
            )
        )
        return version_from_record(record) if record is not None else None

    async def environment_exists(self, tenant_id: str, environment_id: str) -> bool:
        record = await self._first(
            select(EnvironmentRecord).where(
                EnvironmentRecord.tenant_id == tenant_id,
                EnvironmentRecord.id == environment_id,
            )
        )
        return record is not None

    async def get_theme(self, tenant_id: str, theme_id: str) -> Optional[Theme]:
        record = await self._first(
            select(ThemeRecord).where(ThemeRecord.tenant_id == tenant_id, ThemeRecord.id == theme_id)
        )
        if record is None:
            return None
        presets = Theme.from_dict({"id": record.id, "blockStylePresets": record.block_style_presets}).block_style_presets
        return Theme(
            id=record.id,
            tenant_id=record.tenant_id,
            name=record.name,
            document_styles=dict(record.document_styles or {}),
            page_settings=PageSettings.from_dict(record.page_settings),
            block_style_presets=presets,
        )
