"""
Tests for the in-memory template catalog and data model validation.
"""

import json

import pytest
import yaml

from modules.generation.core.exceptions import ConfigurationException, TemplateValidationException
from modules.generation.templates import (
    InMemoryTemplateCatalog,
    TemplateVersion,
    VersionStatus,
    collect_validation_errors,
    validate_template_data,
)

from conftest import INVOICE_DATA_MODEL, TENANT_ID, invoice_model


def write_yaml(path, record: dict) -> None:
    path.write_text(yaml.safe_dump(record))


@pytest.fixture
def catalog_dir(tmp_path):
    write_yaml(tmp_path / "tenant.yaml", {"kind": "tenant", "id": TENANT_ID, "name": "Acme", "environments": ["staging"]})
    write_yaml(tmp_path / "theme.yml", {
        "kind": "theme",
        "tenantId": TENANT_ID,
        "id": "corporate",
        "documentStyles": {"fontFamily": "Georgia"},
    })
    (tmp_path / "invoice-en-v1.json").write_text(json.dumps(invoice_model()))
    write_yaml(tmp_path / "invoice.yaml", {
        "kind": "template",
        "tenantId": TENANT_ID,
        "id": "invoice",
        "defaultThemeId": "corporate",
        "dataModel": INVOICE_DATA_MODEL,
        "variants": [
            {
                "id": "invoice-en",
                "attributes": {"language": "en"},
                "isDefault": True,
                "versions": [
                    {"id": 1, "status": "PUBLISHED", "templateModelFile": "invoice-en-v1.json"},
                    {"id": 2, "status": "DRAFT", "templateModel": invoice_model()},
                ],
                "activations": {"production": 1},
            }
        ],
    })
    write_yaml(tmp_path / "notes.yaml", {"kind": "notes"})
    return tmp_path


@pytest.mark.asyncio
async def test_from_directory(catalog_dir):
    catalog = InMemoryTemplateCatalog.from_directory(catalog_dir)

    tenant = await catalog.get_tenant(TENANT_ID)
    template = await catalog.get_template(TENANT_ID, "invoice")
    active = await catalog.get_active_version(TENANT_ID, "invoice", "invoice-en", "production")
    theme = await catalog.get_theme(TENANT_ID, "corporate")

    assert tenant.name == "Acme"
    assert template.default_theme_id == "corporate"
    assert active.id == 1
    assert active.template_model.root == "root"
    assert theme.document_styles == {"fontFamily": "Georgia"}
    assert await catalog.environment_exists(TENANT_ID, "staging")
    assert await catalog.environment_exists(TENANT_ID, "production")
    assert (await catalog.get_variant(TENANT_ID, "invoice", "invoice-en")).is_default


def test_missing_directory(tmp_path):
    with pytest.raises(ConfigurationException):
        InMemoryTemplateCatalog.from_directory(tmp_path / "nope")


def test_invalid_yaml(tmp_path):
    (tmp_path / "broken.yaml").write_text("kind: [unclosed")
    with pytest.raises(ConfigurationException):
        InMemoryTemplateCatalog.from_directory(tmp_path)


def test_second_draft_is_rejected(catalog):
    with pytest.raises(ConfigurationException):
        catalog.add_version(TENANT_ID, "invoice", TemplateVersion(id=3, variant_id="invoice-en", status=VersionStatus.DRAFT))


def test_only_published_versions_activate(catalog):
    with pytest.raises(ConfigurationException):
        catalog.activate(TENANT_ID, "invoice", "invoice-en", "staging", 2)


@pytest.mark.asyncio
async def test_tenants_are_isolated(catalog):
    assert await catalog.get_template("globex", "invoice") is None
    assert await catalog.get_theme("globex", "corporate") is None
    assert await catalog.list_variants("globex", "invoice") == []


def test_version_status_moves_forward_only():
    assert VersionStatus.DRAFT.can_transition_to(VersionStatus.PUBLISHED)
    assert VersionStatus.PUBLISHED.can_transition_to(VersionStatus.ARCHIVED)
    assert not VersionStatus.PUBLISHED.can_transition_to(VersionStatus.DRAFT)
    assert not VersionStatus.DRAFT.can_transition_to(VersionStatus.ARCHIVED)


def test_data_model_validation():
    assert collect_validation_errors({"customer": {"name": "Ada"}}, INVOICE_DATA_MODEL) == []
    assert collect_validation_errors({}, None) == []

    with pytest.raises(TemplateValidationException) as exc_info:
        validate_template_data({"customer": {"name": 42}}, INVOICE_DATA_MODEL)
    assert exc_info.value.errors == ["customer/name: 42 is not of type 'string'"]


def test_invalid_data_model():
    with pytest.raises(TemplateValidationException):
        collect_validation_errors({}, {"type": "no-such-type"})
