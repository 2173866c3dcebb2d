"""
Shared fixtures: an in-memory catalog with one tenant and an invoice
template, an in-memory generation store and a test configuration.
"""

import copy

import pytest

from modules.generation.config import GenerationConfig
from modules.generation.jobs import GenerationCommands, GenerationExecutor
from modules.generation.storage import InMemoryGenerationStore
from modules.generation.templates import (
    DocumentTemplate,
    InMemoryTemplateCatalog,
    TemplateDocument,
    TemplateVariant,
    TemplateVersion,
    Tenant,
    VersionStatus,
)
from modules.generation.themes import Theme

TENANT_ID = "acme"

INVOICE_DATA_MODEL = {
    "type": "object",
    "required": ["customer"],
    "properties": {
        "customer": {
            "type": "object",
            "required": ["name"],
            "properties": {"name": {"type": "string"}},
        },
    },
}

INVOICE_MODEL = {
    "modelVersion": 2,
    "root": "root",
    "nodes": {
        "root": {"id": "root", "type": "root", "slots": ["root-body"]},
        "title": {
            "id": "title",
            "type": "text",
            "props": {
                "content": {
                    "type": "doc",
                    "content": [
                        {
                            "type": "heading",
                            "attrs": {"level": 1},
                            "content": [{"type": "text", "text": "Invoice for {{customer.name}}"}],
                        }
                    ],
                }
            },
        },
        "vip": {"id": "vip", "type": "conditional", "slots": ["vip-body"], "props": {"condition": "customer.vip"}},
        "vip-text": {"id": "vip-text", "type": "text", "props": {"content": "Priority customer"}},
        "lines": {
            "id": "lines",
            "type": "loop",
            "slots": ["lines-body"],
            "props": {"expression": "items", "itemAlias": "line"},
        },
        "line-text": {"id": "line-text", "type": "text", "props": {"content": "{{line.name}}: {{line.price}}"}},
        "header": {"id": "header", "type": "pageheader", "slots": ["header-body"]},
        "header-text": {"id": "header-text", "type": "text", "props": {"content": "Page {{pageNumber}}"}},
    },
    "slots": {
        "root-body": {"id": "root-body", "nodeId": "root", "name": "children", "children": ["header", "title", "vip", "lines"]},
        "vip-body": {"id": "vip-body", "nodeId": "vip", "name": "children", "children": ["vip-text"]},
        "lines-body": {"id": "lines-body", "nodeId": "lines", "name": "children", "children": ["line-text"]},
        "header-body": {"id": "header-body", "nodeId": "header", "name": "children", "children": ["header-text"]},
    },
    "themeRef": {"type": "inherit"},
}


def invoice_model(**overrides) -> dict:
    model = copy.deepcopy(INVOICE_MODEL)
    model.update(overrides)
    return model


def invoice_data(name: str = "Ada", **extra) -> dict:
    data = {"customer": {"name": name}, "items": [{"name": "Widget", "price": 10}, {"name": "Gadget", "price": 2.5}]}
    data.update(extra)
    return data


@pytest.fixture
def generation_config():
    return GenerationConfig(
        polling_enabled=False,
        polling_interval_ms=50,
        max_concurrent_jobs=2,
        claim_batch_size=1,
        job_retention_days=7,
        document_retention_days=30,
    )


@pytest.fixture
def catalog():
    """
    Tenant "acme" (default theme "corporate") with an "invoice" template:
    variant invoice-en (language=en, default) and invoice-de (language=de,
    overriding the theme with "modern"). Version 1 of both is published
    and active in "production"; invoice-en also has a draft version 2.
    """
    catalog = InMemoryTemplateCatalog()
    catalog.add_tenant(Tenant(id=TENANT_ID, name="Acme", default_theme_id="corporate"), environments=["production", "staging"])
    catalog.add_theme(Theme.from_dict({
        "id": "corporate",
        "tenantId": TENANT_ID,
        "documentStyles": {"fontFamily": "Georgia", "fontSize": "11pt", "color": "#222222"},
        "blockStylePresets": {"emphasis": {"label": "Emphasis", "styles": {"fontWeight": "bold"}}},
    }))
    catalog.add_theme(Theme.from_dict({
        "id": "modern",
        "tenantId": TENANT_ID,
        "documentStyles": {"fontFamily": "Arial"},
        "pageSettings": {"format": "A4", "orientation": "landscape", "margins": {"top": 10, "right": 10, "bottom": 10, "left": 10}},
    }))
    catalog.add_template(DocumentTemplate(id="invoice", tenant_id=TENANT_ID, name="Invoice", data_model=INVOICE_DATA_MODEL))
    catalog.add_variant(TENANT_ID, TemplateVariant(id="invoice-en", template_id="invoice", attributes={"language": "en"}, is_default=True))
    catalog.add_variant(TENANT_ID, TemplateVariant(id="invoice-de", template_id="invoice", attributes={"language": "de"}))

    catalog.add_version(TENANT_ID, "invoice", TemplateVersion(
        id=1,
        variant_id="invoice-en",
        status=VersionStatus.PUBLISHED,
        template_model=TemplateDocument.from_dict(invoice_model()),
    ))
    catalog.add_version(TENANT_ID, "invoice", TemplateVersion(
        id=2,
        variant_id="invoice-en",
        status=VersionStatus.DRAFT,
        template_model=TemplateDocument.from_dict(invoice_model()),
    ))
    catalog.add_version(TENANT_ID, "invoice", TemplateVersion(
        id=1,
        variant_id="invoice-de",
        status=VersionStatus.PUBLISHED,
        template_model=TemplateDocument.from_dict(invoice_model(themeRef={"type": "override", "themeId": "modern"})),
    ))
    catalog.activate(TENANT_ID, "invoice", "invoice-en", "production", 1)
    catalog.activate(TENANT_ID, "invoice", "invoice-de", "production", 1)
    return catalog


@pytest.fixture
def store():
    return InMemoryGenerationStore()


@pytest.fixture
def executor(store, catalog, generation_config):
    return GenerationExecutor(store, catalog, config=generation_config)


@pytest.fixture
def commands(store, catalog, generation_config):
    return GenerationCommands(store, catalog, generation_config)
