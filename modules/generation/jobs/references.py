"""
Template reference resolution shared by request validation and execution.

An item names a template plus either an explicit version or an
environment whose activation points at a version. The variant is either
named or selected from variant attributes.
"""

from typing import Dict, Optional, Tuple

from modules.generation.core.exceptions import TemplateNotFoundException, VariantResolutionException
from modules.generation.templates.catalog import ITemplateCatalog
from modules.generation.templates.model import DocumentTemplate, TemplateVariant, TemplateVersion
from modules.generation.templates.variant_resolver import VariantResolver, VariantSelectionCriteria


async def resolve_template(catalog: ITemplateCatalog, tenant_id: str, template_id: str) -> DocumentTemplate:
    template = await catalog.get_template(tenant_id, template_id)
    if template is None:
        raise TemplateNotFoundException(f"Template '{template_id}' not found for tenant '{tenant_id}'")
    return template


async def resolve_variant(
    catalog: ITemplateCatalog,
    resolver: VariantResolver,
    tenant_id: str,
    template_id: str,
    variant_id: Optional[str],
    variant_attributes: Optional[Dict[str, Dict[str, str]]],
) -> TemplateVariant:
    """
    Resolve the variant an item renders with.

    A named variant wins; otherwise the attributes select one. Without
    either, the template's default variant is used.

    Raises:
        TemplateNotFoundException: Named variant does not exist
        VariantResolutionException: Attribute selection found nothing usable
    """
    if variant_id:
        variant = await catalog.get_variant(tenant_id, template_id, variant_id)
        if variant is None:
            raise TemplateNotFoundException(f"Variant '{variant_id}' not found for template '{template_id}'")
        return variant

    variants = await catalog.list_variants(tenant_id, template_id)
    criteria = VariantSelectionCriteria.from_dict(variant_attributes)
    if not criteria.required and not criteria.optional:
        default = next((v for v in variants if v.is_default), None)
        if default is None:
            raise VariantResolutionException(f"Template '{template_id}' has no default variant")
        return default
    return resolver.resolve(variants, criteria, template_id)


async def resolve_version(
    catalog: ITemplateCatalog,
    tenant_id: str,
    template_id: str,
    variant_id: str,
    version_id: Optional[int],
    environment_id: Optional[str],
) -> TemplateVersion:
    """
    Explicit version, else the version activated for the environment.

    Raises:
        TemplateNotFoundException: No such version or no activation
    """
    if version_id is not None:
        version = await catalog.get_version(tenant_id, template_id, variant_id, version_id)
        if version is None:
            raise TemplateNotFoundException(
                f"Version {version_id} not found for variant '{variant_id}' of template '{template_id}'"
            )
        return version

    version = await catalog.get_active_version(tenant_id, template_id, variant_id, environment_id)
    if version is None:
        raise TemplateNotFoundException(
            f"No active version of variant '{variant_id}' in environment '{environment_id}'"
        )
    return version


async def resolve_reference(
    catalog: ITemplateCatalog,
    resolver: VariantResolver,
    tenant_id: str,
    template_id: str,
    variant_id: Optional[str],
    variant_attributes: Optional[Dict[str, Dict[str, str]]],
    version_id: Optional[int],
    environment_id: Optional[str],
) -> Tuple[DocumentTemplate, TemplateVariant, TemplateVersion]:
    template = await resolve_template(catalog, tenant_id, template_id)
    variant = await resolve_variant(catalog, resolver, tenant_id, template_id, variant_id, variant_attributes)
    version = await resolve_version(catalog, tenant_id, template_id, variant.id, version_id, environment_id)
    return template, variant, version
