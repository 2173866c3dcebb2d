"""
Tests for request execution: per-item outcomes, batches and cancellation races.
"""

import uuid

import pytest

from modules.generation.core.interfaces import (
    CANCELLED_ITEM_MESSAGE,
    Document,
    ItemStatus,
    RequestStatus,
)
from modules.generation.jobs import GenerationItemInput

from conftest import TENANT_ID, invoice_data


def item(name: str = "Ada", **kwargs) -> GenerationItemInput:
    kwargs.setdefault("environment_id", "production")
    kwargs.setdefault("data", invoice_data(name))
    return GenerationItemInput(template_id="invoice", **kwargs)


async def claim_one(store):
    claimed = await store.claim_pending_requests("test-worker", 1)
    assert len(claimed) == 1
    return claimed[0]


@pytest.mark.asyncio
async def test_single_document(commands, executor, store):
    request = await commands.submit_document(TENANT_ID, item(filename="ada.pdf", correlation_id="order-1"))

    await executor.execute(await claim_one(store))

    job = await commands.get_job(TENANT_ID, request.id)
    assert job.status == RequestStatus.COMPLETED
    assert (job.completed_count, job.failed_count) == (1, 0)
    assert job.correlation_id == "order-1"
    assert job.expires_at is not None

    document = await commands.get_document(TENANT_ID, job.items[0].document_id)
    assert document.filename == "ada.pdf"
    assert document.content_type == "application/pdf"
    assert document.content.startswith(b"%PDF")
    assert (document.template_id, document.variant_id, document.version_id) == ("invoice", "invoice-en", 1)


@pytest.mark.asyncio
async def test_partial_failure_does_not_stop_siblings(commands, executor, store):
    items = [item("Ada"), item(data={"customer": {}}), item("Grace")]
    submission = await commands.submit_batch(TENANT_ID, items)

    await executor.execute(await claim_one(store))

    job = await commands.get_job(TENANT_ID, submission.request_ids[0])
    assert job.status == RequestStatus.COMPLETED
    assert (job.total_count, job.completed_count, job.failed_count) == (3, 2, 1)
    statuses = [i.status for i in job.items]
    assert statuses == [ItemStatus.COMPLETED, ItemStatus.FAILED, ItemStatus.COMPLETED]
    assert "customer" in job.items[1].error_message
    assert job.items[1].document_id is None


@pytest.mark.asyncio
async def test_variant_selected_from_attributes(commands, executor, store):
    request = await commands.submit_document(
        TENANT_ID,
        item(variant_attributes={"required": {"language": "de"}}, filename="de.pdf"),
    )
    await executor.execute(await claim_one(store))

    job = await commands.get_job(TENANT_ID, request.id)
    document = await commands.get_document(TENANT_ID, job.items[0].document_id)
    assert document.variant_id == "invoice-de"


@pytest.mark.asyncio
async def test_explicit_version_without_model_fails_item(commands, executor, store, catalog):
    request = await commands.submit_document(
        TENANT_ID,
        item(environment_id=None, version_id=2, variant_id="invoice-en"),
    )
    catalog._versions[(TENANT_ID, "invoice", "invoice-en", 2)].template_model = None

    await executor.execute(await claim_one(store))

    job = await commands.get_job(TENANT_ID, request.id)
    assert job.status == RequestStatus.COMPLETED
    assert job.failed_count == 1
    assert "no template model" in job.items[0].error_message


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded_per_item(commands, executor, store, monkeypatch):
    async def explode(*args, **kwargs):
        raise ZeroDivisionError("boom")

    monkeypatch.setattr(executor.render_service, "render", explode)
    request = await commands.submit_document(TENANT_ID, item())

    await executor.execute(await claim_one(store))

    job = await commands.get_job(TENANT_ID, request.id)
    assert job.items[0].status == ItemStatus.FAILED
    assert job.items[0].error_message == "ZeroDivisionError: boom"


@pytest.mark.asyncio
async def test_size_ceiling(commands, executor, store):
    executor.config.max_document_size_mb = 0
    request = await commands.submit_document(TENANT_ID, item())

    await executor.execute(await claim_one(store))

    job = await commands.get_job(TENANT_ID, request.id)
    assert job.failed_count == 1
    assert "limit" in job.items[0].error_message


@pytest.mark.asyncio
async def test_batch_completes_after_last_request(commands, executor, store):
    submission = await commands.submit_batch(TENANT_ID, [item("A"), item("B"), item("C")], chunk_size=2)
    assert submission.batch is not None
    assert [r.total_count for r in submission.requests] == [2, 1]

    await executor.execute(await claim_one(store))
    batch = await commands.get_batch(TENANT_ID, submission.batch.id)
    assert batch.completed_count == 2
    assert batch.completed_at is None

    await executor.execute(await claim_one(store))
    batch = await commands.get_batch(TENANT_ID, submission.batch.id)
    assert (batch.total_count, batch.completed_count, batch.failed_count) == (3, 3, 0)
    assert batch.completed_at is not None


@pytest.mark.asyncio
async def test_cancel_pending_request(commands, store):
    submission = await commands.submit_batch(TENANT_ID, [item("A"), item("B")])
    request_id = submission.request_ids[0]

    assert await commands.cancel(TENANT_ID, request_id) is True

    job = await commands.get_job(TENANT_ID, request_id)
    assert job.status == RequestStatus.CANCELLED
    assert job.failed_count == 2
    assert all(i.status == ItemStatus.FAILED for i in job.items)
    assert all(i.error_message == CANCELLED_ITEM_MESSAGE for i in job.items)
    assert job.expires_at is not None
    assert await store.claim_pending_requests("test-worker", 1) == []


@pytest.mark.asyncio
async def test_cancel_completed_request_is_refused(commands, executor, store):
    request = await commands.submit_document(TENANT_ID, item())
    await executor.execute(await claim_one(store))

    assert await commands.cancel(TENANT_ID, request.id) is False

    job = await commands.get_job(TENANT_ID, request.id)
    assert job.status == RequestStatus.COMPLETED


@pytest.mark.asyncio
async def test_cancel_wins_over_item_completion(commands, store):
    request = await commands.submit_document(TENANT_ID, item())
    claimed = await claim_one(store)
    running = await store.claim_next_item(claimed.id)

    assert await commands.cancel(TENANT_ID, request.id) is True

    late = Document(id=uuid.uuid4(), tenant_id=TENANT_ID, filename="late.pdf", content=b"%PDF-late")
    assert await store.complete_item(claimed.id, running.id, late) is False
    assert await store.get_document(TENANT_ID, late.id) is None
    assert await store.finalize_request(claimed.id, 7) is False

    job = await commands.get_job(TENANT_ID, request.id)
    assert job.status == RequestStatus.CANCELLED
    assert (job.completed_count, job.failed_count) == (0, 1)
    assert job.items[0].error_message == CANCELLED_ITEM_MESSAGE


@pytest.mark.asyncio
async def test_cancel_refreshes_batch(commands, executor, store):
    submission = await commands.submit_batch(TENANT_ID, [item("A"), item("B")], chunk_size=1)
    await executor.execute(await claim_one(store))

    assert await commands.cancel(TENANT_ID, submission.request_ids[1]) is True

    batch = await commands.get_batch(TENANT_ID, submission.batch.id)
    assert (batch.completed_count, batch.failed_count) == (1, 1)
    assert batch.completed_at is not None
