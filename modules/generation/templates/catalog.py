"""
Template catalog: read contracts for tenants, templates, variants,
versions, environment activations and themes.

Catalog CRUD lives elsewhere; generation only reads. The in-memory
catalog is filled programmatically or loaded from a directory of YAML
files, the database catalog reads the shared tables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Tuple, TYPE_CHECKING
from pathlib import Path
import json
import yaml

from modules.generation.core.exceptions import ConfigurationException
from modules.generation.templates.model import (
    Tenant,
    DocumentTemplate,
    TemplateVariant,
    TemplateVersion,
    TemplateDocument,
    VersionStatus,
)
from shared.utils.logger import setup_logger

if TYPE_CHECKING:
    from modules.generation.themes.model import Theme

logger = setup_logger(__name__)


class ITemplateCatalog(ABC):
    """
    Abstract read interface over template and theme definitions.

    Lookups return None when the record does not exist or belongs to
    another tenant; callers branch on presence.
    """

    @abstractmethod
    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    async def get_template(self, tenant_id: str, template_id: str) -> Optional[DocumentTemplate]:
        pass

    @abstractmethod
    async def list_variants(self, tenant_id: str, template_id: str) -> List[TemplateVariant]:
        pass

    @abstractmethod
    async def get_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        version_id: int,
    ) -> Optional[TemplateVersion]:
        pass

    @abstractmethod
    async def get_active_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        environment_id: str,
    ) -> Optional[TemplateVersion]:
        """Return the published version activated for an environment."""
        pass

    @abstractmethod
    async def environment_exists(self, tenant_id: str, environment_id: str) -> bool:
        pass

    @abstractmethod
    async def get_theme(self, tenant_id: str, theme_id: str) -> Optional[Theme]:
        pass

    async def get_variant(self, tenant_id: str, template_id: str, variant_id: str) -> Optional[TemplateVariant]:
        for variant in await self.list_variants(tenant_id, template_id):
            if variant.id == variant_id:
                return variant
        return None


class InMemoryTemplateCatalog(ITemplateCatalog):
    """
    In-memory catalog.

    Good for tests, local runs and file-based deployments.
    """

    def __init__(self):
        self._tenants: Dict[str, Tenant] = {}
        self._environments: Dict[str, set] = {}
        self._templates: Dict[Tuple[str, str], DocumentTemplate] = {}
        self._variants: Dict[Tuple[str, str], List[TemplateVariant]] = {}
        self._versions: Dict[Tuple[str, str, str, int], TemplateVersion] = {}
        self._activations: Dict[Tuple[str, str, str, str], int] = {}
        self._themes: Dict[Tuple[str, str], Theme] = {}

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def add_tenant(self, tenant: Tenant, environments: Optional[List[str]] = None) -> None:
        self._tenants[tenant.id] = tenant
        self._environments.setdefault(tenant.id, set()).update(environments or [])

    def add_environment(self, tenant_id: str, environment_id: str) -> None:
        self._environments.setdefault(tenant_id, set()).add(environment_id)

    def add_template(self, template: DocumentTemplate) -> None:
        self._templates[(template.tenant_id, template.id)] = template
        self._variants.setdefault((template.tenant_id, template.id), [])

    def add_variant(self, tenant_id: str, variant: TemplateVariant) -> None:
        variants = self._variants.setdefault((tenant_id, variant.template_id), [])
        variants[:] = [v for v in variants if v.id != variant.id] + [variant]

    def add_version(self, tenant_id: str, template_id: str, version: TemplateVersion) -> None:
        """
        Add a version.

        Raises:
            ConfigurationException: If the variant already has a different DRAFT version
        """
        if version.status == VersionStatus.DRAFT:
            for (t, tpl, var, vid), existing in self._versions.items():
                if (t, tpl, var) == (tenant_id, template_id, version.variant_id) \
                        and existing.status == VersionStatus.DRAFT and vid != version.id:
                    raise ConfigurationException(
                        f"Variant '{version.variant_id}' already has draft version {vid}"
                    )
        self._versions[(tenant_id, template_id, version.variant_id, version.id)] = version

    def activate(self, tenant_id: str, template_id: str, variant_id: str, environment_id: str, version_id: int) -> None:
        """
        Bind an environment to a published version.

        Raises:
            ConfigurationException: If the version is missing or not published
        """
        version = self._versions.get((tenant_id, template_id, variant_id, version_id))
        if version is None or version.status != VersionStatus.PUBLISHED:
            raise ConfigurationException(
                f"Only published versions can be activated (version {version_id} of variant '{variant_id}')"
            )
        self.add_environment(tenant_id, environment_id)
        self._activations[(tenant_id, template_id, variant_id, environment_id)] = version_id

    def add_theme(self, theme: Theme) -> None:
        self._themes[(theme.tenant_id, theme.id)] = theme

    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        return self._tenants.get(tenant_id)

    async def get_template(self, tenant_id: str, template_id: str) -> Optional[DocumentTemplate]:
        return self._templates.get((tenant_id, template_id))

    async def list_variants(self, tenant_id: str, template_id: str) -> List[TemplateVariant]:
        return list(self._variants.get((tenant_id, template_id), []))

    async def get_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        version_id: int,
    ) -> Optional[TemplateVersion]:
        return self._versions.get((tenant_id, template_id, variant_id, int(version_id)))

    async def get_active_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        environment_id: str,
    ) -> Optional[TemplateVersion]:
        version_id = self._activations.get((tenant_id, template_id, variant_id, environment_id))
        if version_id is None:
            return None
        return self._versions.get((tenant_id, template_id, variant_id, version_id))

    async def environment_exists(self, tenant_id: str, environment_id: str) -> bool:
        return environment_id in self._environments.get(tenant_id, set())

    async def get_theme(self, tenant_id: str, theme_id: str) -> Optional[Theme]:
        return self._themes.get((tenant_id, theme_id))

    # ------------------------------------------------------------------
    # Directory loading
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, directory: Path) -> "InMemoryTemplateCatalog":
        """
        Load a catalog from YAML files.

        Every *.yaml / *.yml file holds one record with a "kind" of
        tenant, theme or template. Templates nest their variants, versions
        and environment activations:

            kind: template
            tenantId: acme
            id: invoice
            defaultThemeId: corporate
            dataModel: {...}
            variants:
              - id: invoice-en
                attributes: {language: en}
                isDefault: true
                versions:
                  - id: 1
                    status: PUBLISHED
                    templateModelFile: invoice-en-v1.json
                activations:
                  production: 1

        Raises:
            ConfigurationException: If the directory or a file is invalid
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise ConfigurationException(f"Template catalog directory not found: {directory}")

        catalog = cls()
        files = sorted(list(directory.glob("*.yaml")) + list(directory.glob("*.yml")))
        # Tenants and themes first so templates can refer to them
        records = [(path, cls._read_yaml(path)) for path in files]
        order = {"tenant": 0, "theme": 1, "template": 2}
        records.sort(key=lambda r: order.get(str(r[1].get("kind")), 3))

        for path, record in records:
            kind = record.get("kind")
            try:
                if kind == "tenant":
                    catalog.add_tenant(
                        Tenant(
                            id=str(record["id"]),
                            name=str(record.get("name", "")),
                            default_theme_id=record.get("defaultThemeId"),
                        ),
                        environments=[str(e) for e in record.get("environments") or []],
                    )
                elif kind == "theme":
                    from modules.generation.themes.model import Theme

                    catalog.add_theme(Theme.from_dict(record))
                elif kind == "template":
                    catalog._load_template(record, path.parent)
                else:
                    logger.warning(f"Skipping {path.name}: unknown kind '{kind}'")
            except KeyError as e:
                raise ConfigurationException(f"Missing field {e} in catalog file {path.name}") from e

        logger.info(
            f"Loaded template catalog from {directory}: "
            f"{len(catalog._tenants)} tenants, {len(catalog._templates)} templates, {len(catalog._themes)} themes"
        )
        return catalog

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r") as f:
                record = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Invalid YAML in catalog file '{path.name}': {str(e)}") from e
        if not isinstance(record, dict):
            raise ConfigurationException(f"Catalog file '{path.name}' must contain a mapping")
        return record

    def _load_template(self, record: Dict[str, Any], base_dir: Path) -> None:
        tenant_id = str(record["tenantId"])
        template_id = str(record["id"])
        self.add_template(
            DocumentTemplate(
                id=template_id,
                tenant_id=tenant_id,
                name=str(record.get("name", "")),
                default_theme_id=record.get("defaultThemeId"),
                data_model=record.get("dataModel"),
            )
        )
        for variant_record in record.get("variants") or []:
            variant = TemplateVariant(
                id=str(variant_record["id"]),
                template_id=template_id,
                attributes={str(k): str(v) for k, v in (variant_record.get("attributes") or {}).items()},
                is_default=bool(variant_record.get("isDefault", False)),
            )
            self.add_variant(tenant_id, variant)

            for version_record in variant_record.get("versions") or []:
                model_data = version_record.get("templateModel")
                if model_data is None and version_record.get("templateModelFile"):
                    with open(base_dir / version_record["templateModelFile"], "r") as f:
                        model_data = json.load(f)
                self.add_version(
                    tenant_id,
                    template_id,
                    TemplateVersion(
                        id=int(version_record["id"]),
                        variant_id=variant.id,
                        status=VersionStatus(version_record.get("status", "DRAFT")),
                        template_model=TemplateDocument.from_dict(model_data) if model_data else None,
                    ),
                )

            for environment_id, version_id in (variant_record.get("activations") or {}).items():
                self.activate(tenant_id, template_id, variant.id, str(environment_id), int(version_id))
