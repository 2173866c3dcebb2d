"""
Tests for the generation REST API.

The app runs against in-memory storage; jobs are executed by driving the
poller directly.
"""

import importlib
import uuid
import warnings

import httpx
import pytest
from pydantic.warnings import PydanticDeprecatedSince20

from modules.generation.storage import InMemoryGenerationStore
from modules.maintenance import InMemoryPartitionBackend
from shared.utils.config import Settings
import src.api.config
import src.api.v1.models.requests
import src.api.v1.models.responses
from src.api.main import create_application
from src.api.services.generation_runtime import build_runtime

from conftest import TENANT_ID, invoice_data

BASE = f"/api/v1/tenants/{TENANT_ID}/generation"


@pytest.fixture
def runtime(catalog):
    settings = Settings(GENERATION_POLLING_ENABLED=False, PARTITIONS_ENABLED=True)
    return build_runtime(
        settings,
        store=InMemoryGenerationStore(),
        catalog=catalog,
        partition_backend=InMemoryPartitionBackend(),
    )


@pytest.fixture
def client(runtime):
    app = create_application(runtime=runtime, run_worker=False)
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


async def run_pending(runtime) -> None:
    while await runtime.poller.poll_once():
        pass
    assert await runtime.poller.await_idle(timeout=10)


def document_body(**overrides) -> dict:
    body = {"template_id": "invoice", "environment_id": "production", "data": invoice_data(), "filename": "invoice.pdf"}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_health(client):
    async with client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["polling"] is False


@pytest.mark.asyncio
async def test_generate_and_download(client, runtime):
    async with client:
        response = await client.post(f"{BASE}/documents", json=document_body(correlation_id="order-7"))
        assert response.status_code == 202
        request_id = response.json()["request_ids"][0]
        assert response.json()["batch_id"] is None

        job = (await client.get(f"{BASE}/jobs/{request_id}")).json()
        assert job["status"] == "PENDING"

        await run_pending(runtime)

        job = (await client.get(f"{BASE}/jobs/{request_id}")).json()
        assert job["status"] == "COMPLETED"
        assert job["completed_count"] == 1
        assert job["correlation_id"] == "order-7"
        document_id = job["items"][0]["document_id"]

        download = await client.get(f"{BASE}/documents/{document_id}")
        assert download.status_code == 200
        assert download.headers["content-type"] == "application/pdf"
        assert 'filename="invoice.pdf"' in download.headers["content-disposition"]
        assert download.content.startswith(b"%PDF")

        assert (await client.delete(f"{BASE}/documents/{document_id}")).status_code == 204
        assert (await client.get(f"{BASE}/documents/{document_id}")).status_code == 404
        assert (await client.delete(f"{BASE}/documents/{document_id}")).status_code == 404


@pytest.mark.asyncio
async def test_batch_with_chunks(client, runtime):
    items = [document_body(filename=f"doc-{i}.pdf") for i in range(3)]
    items[1]["data"] = {"customer": {}}

    async with client:
        response = await client.post(f"{BASE}/batches", json={"items": items, "chunk_size": 2})
        assert response.status_code == 202
        submission = response.json()
        assert len(submission["request_ids"]) == 2
        assert submission["total_count"] == 3

        await run_pending(runtime)

        batch = (await client.get(f"{BASE}/batches/{submission['batch_id']}")).json()
        assert (batch["completed_count"], batch["failed_count"]) == (2, 1)
        assert batch["completed_at"] is not None

        listing = (await client.get(f"{BASE}/jobs", params={"status": "COMPLETED"})).json()
        assert len(listing["jobs"]) == 2


@pytest.mark.asyncio
async def test_invalid_batch_is_rejected_whole(client, runtime):
    items = [document_body(), document_body(template_id="missing", filename="other.pdf")]

    async with client:
        response = await client.post(f"{BASE}/batches", json={"items": items})
        listing = (await client.get(f"{BASE}/jobs")).json()

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"
    assert response.json()["errors"][0].startswith("Item 1: Template 'missing' not found")
    assert listing["jobs"] == []


@pytest.mark.asyncio
async def test_both_version_and_environment(client):
    async with client:
        response = await client.post(f"{BASE}/documents", json=document_body(version_id=1))
    assert response.status_code == 400
    assert response.json()["errors"] == ["Item 0: exactly one of versionId or environmentId must be set"]


@pytest.mark.asyncio
async def test_cancel(client, runtime):
    async with client:
        request_id = (await client.post(f"{BASE}/documents", json=document_body())).json()["request_ids"][0]

        first = await client.post(f"{BASE}/jobs/{request_id}/cancel")
        second = await client.post(f"{BASE}/jobs/{request_id}/cancel")
        job = (await client.get(f"{BASE}/jobs/{request_id}")).json()

    assert first.json()["cancelled"] is True
    assert second.status_code == 200
    assert second.json()["cancelled"] is False
    assert job["status"] == "CANCELLED"
    assert job["items"][0]["error_message"] == "Job cancelled by user"


@pytest.mark.asyncio
async def test_unknown_job(client):
    missing = uuid.uuid4()
    async with client:
        job = await client.get(f"{BASE}/jobs/{missing}")
        cancel = await client.post(f"{BASE}/jobs/{missing}/cancel")
        other_tenant = await client.get(f"/api/v1/tenants/globex/generation/batches/{missing}")

    assert job.status_code == 404
    assert job.json()["error"] == "not_found"
    assert cancel.status_code == 404
    assert other_tenant.status_code == 404


@pytest.mark.parametrize("module", [src.api.config, src.api.v1.models.requests, src.api.v1.models.responses])
def test_api_models_define_without_deprecated_config(module):
    with warnings.catch_warnings():
        warnings.simplefilter("error", PydanticDeprecatedSince20)
        importlib.reload(module)


def test_api_settings_config():
    config = src.api.config.APISettings.model_config
    assert config["env_prefix"] == "API_"
    assert config["extra"] == "ignore"
    example = src.api.v1.models.requests.GenerationItemRequest.model_json_schema()["example"]
    assert example["template_id"] == "invoice"
