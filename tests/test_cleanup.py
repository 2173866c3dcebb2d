"""
Tests for row cleanup, batch reconciliation and periodic tasks.
"""

import asyncio
import uuid
from datetime import timedelta

import pytest

from modules.generation.core.interfaces import Document, GenerationBatch, GenerationItem, GenerationRequest, RequestStatus
from modules.generation.storage.job_storage import utcnow
from modules.maintenance import DocumentCleanupScheduler, PeriodicTask

TENANT_ID = "acme"


def request_with_items(count: int = 1, batch_id=None) -> GenerationRequest:
    request_id = uuid.uuid4()
    return GenerationRequest(
        id=request_id,
        tenant_id=TENANT_ID,
        batch_id=batch_id,
        items=[
            GenerationItem(id=uuid.uuid4(), request_id=request_id, template_id="invoice", data={}, version_id=1)
            for _ in range(count)
        ],
    )


async def run_to_completion(store, request: GenerationRequest, retention_days: int = 7, created_at=None) -> Document:
    """Claim a request, complete its single item with a document and finalize it."""
    [claimed] = await store.claim_pending_requests("cleanup-test", 1)
    assert claimed.id == request.id
    item = await store.claim_next_item(request.id)
    document = Document(id=uuid.uuid4(), tenant_id=TENANT_ID, filename="x.pdf", content=b"%PDF", created_at=created_at)
    assert await store.complete_item(request.id, item.id, document)
    assert await store.finalize_request(request.id, retention_days)
    return document


@pytest.mark.asyncio
async def test_expired_jobs_are_deleted(store, generation_config):
    expired = request_with_items()
    await store.create_requests([expired])
    await run_to_completion(store, expired, retention_days=0)
    fresh = request_with_items()
    await store.create_requests([fresh])

    cleanup = DocumentCleanupScheduler(store, generation_config)
    deleted = await cleanup.cleanup_expired_jobs(utcnow() + timedelta(seconds=1))

    assert deleted == 1
    assert await store.get_request(TENANT_ID, expired.id) is None
    assert (await store.get_request(TENANT_ID, fresh.id)).status == RequestStatus.PENDING


@pytest.mark.asyncio
async def test_old_documents_are_deleted(store, generation_config):
    old_request, new_request = request_with_items(), request_with_items()
    await store.create_requests([old_request])
    old = await run_to_completion(store, old_request, created_at=utcnow() - timedelta(days=31))
    await store.create_requests([new_request])
    new = await run_to_completion(store, new_request)

    cleanup = DocumentCleanupScheduler(store, generation_config)
    await cleanup.run()

    assert await store.get_document(TENANT_ID, old.id) is None
    assert await store.get_document(TENANT_ID, new.id) is not None


@pytest.mark.asyncio
async def test_reconcile_recovers_missed_batch_completion(store, generation_config):
    batch = GenerationBatch(id=uuid.uuid4(), tenant_id=TENANT_ID, total_count=2)
    first, second = request_with_items(batch_id=batch.id), request_with_items(batch_id=batch.id)
    await store.create_requests([first, second], batch)
    await run_to_completion(store, first)
    await run_to_completion(store, second)

    # Nobody refreshed the batch after the last request finished
    assert (await store.get_batch(TENANT_ID, batch.id)).completed_at is None

    cleanup = DocumentCleanupScheduler(store, generation_config)
    assert await cleanup.reconcile_batches() == 1

    reconciled = await store.get_batch(TENANT_ID, batch.id)
    assert reconciled.completed_count == 2
    assert reconciled.completed_at is not None
    assert await cleanup.reconcile_batches() == 0


@pytest.mark.asyncio
async def test_batch_completed_at_is_written_once(store):
    batch = GenerationBatch(id=uuid.uuid4(), tenant_id=TENANT_ID, total_count=1)
    request = request_with_items(batch_id=batch.id)
    await store.create_requests([request], batch)
    await run_to_completion(store, request)

    first = await store.refresh_batch(batch.id)
    second = await store.refresh_batch(batch.id)

    assert first.completed_at is not None
    assert second.completed_at == first.completed_at


@pytest.mark.asyncio
async def test_periodic_task_survives_errors():
    calls = []

    async def flaky():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("database unavailable")

    task = PeriodicTask("flaky", 0.01, flaky)
    assert await task.run_once() is False
    assert await task.run_once() is True

    task.start()
    await asyncio.sleep(0.05)
    await task.stop()

    assert len(calls) > 2
    assert not task.running


def test_periodic_task_rejects_bad_interval():
    with pytest.raises(ValueError):
        PeriodicTask("bad", 0, lambda: None)
