"""
Tests for submission validation, chunking and job queries.
"""

import uuid

import pytest

from modules.generation.core.exceptions import BatchValidationException, JobNotFoundException
from modules.generation.core.interfaces import JobKind, RequestStatus
from modules.generation.jobs import GenerationItemInput
from modules.generation.jobs.commands import chunk

from conftest import TENANT_ID, invoice_data


def item(**kwargs) -> GenerationItemInput:
    kwargs.setdefault("environment_id", "production")
    kwargs.setdefault("data", invoice_data())
    return GenerationItemInput(template_id=kwargs.pop("template_id", "invoice"), **kwargs)


async def rejected(commands, items, tenant_id: str = TENANT_ID):
    with pytest.raises(BatchValidationException) as exc_info:
        await commands.submit_batch(tenant_id, items)
    return exc_info.value.errors


def test_chunk():
    assert chunk([1, 2, 3], 0) == [[1, 2, 3]]
    assert chunk([1, 2, 3], 3) == [[1, 2, 3]]
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]


@pytest.mark.asyncio
async def test_submit_document_creates_single_request(commands, store):
    request = await commands.submit_document(TENANT_ID, item(correlation_id="c-1"))

    stored = await store.get_request(TENANT_ID, request.id)
    assert stored.job_kind == JobKind.SINGLE
    assert stored.status == RequestStatus.PENDING
    assert stored.total_count == 1
    assert stored.correlation_id == "c-1"
    assert stored.items[0].environment_id == "production"


@pytest.mark.asyncio
async def test_unchunked_batch_is_one_request(commands):
    submission = await commands.submit_batch(TENANT_ID, [item(), item(), item()])

    assert submission.batch is None
    assert len(submission.requests) == 1
    assert submission.requests[0].job_kind == JobKind.BATCH
    assert submission.to_dict()["total_count"] == 3


@pytest.mark.asyncio
async def test_configured_chunk_size_applies(commands, generation_config):
    generation_config.batch_chunk_size = 2
    submission = await commands.submit_batch(TENANT_ID, [item() for _ in range(5)])

    assert submission.batch.total_count == 5
    assert [r.total_count for r in submission.requests] == [2, 2, 1]
    assert all(r.batch_id == submission.batch.id for r in submission.requests)
    assert submission.to_dict()["batch_id"] == str(submission.batch.id)


@pytest.mark.asyncio
async def test_empty_submission(commands):
    assert await rejected(commands, []) == ["At least one item is required"]


@pytest.mark.asyncio
async def test_unknown_tenant(commands):
    assert await rejected(commands, [item()], tenant_id="globex") == ["Tenant 'globex' not found"]


@pytest.mark.asyncio
async def test_version_and_environment_are_exclusive(commands):
    errors = await rejected(commands, [item(version_id=1), item(environment_id=None)])
    assert errors == [
        "Item 0: exactly one of versionId or environmentId must be set",
        "Item 1: exactly one of versionId or environmentId must be set",
    ]


@pytest.mark.asyncio
async def test_every_problem_is_reported(commands, store):
    errors = await rejected(commands, [
        item(filename="a.pdf"),
        item(template_id="receipt"),
        item(variant_id="invoice-fr"),
        item(environment_id=None, version_id=9, variant_id="invoice-en"),
        item(environment_id="qa"),
        item(filename="a.pdf"),
    ])

    assert len(errors) == 5
    assert errors[0].startswith("Item 1: Template 'receipt' not found")
    assert errors[1].startswith("Item 2: Variant 'invoice-fr' not found")
    assert errors[2] == "Item 3: version 9 not found for variant 'invoice-en'"
    assert errors[3] == "Item 4: environment 'qa' not found"
    assert errors[4] == "Item 5: duplicate filename 'a.pdf' (first used by item 0)"
    assert await store.list_requests(TENANT_ID) == []


@pytest.mark.asyncio
async def test_ambiguous_variant_is_rejected(commands, catalog):
    errors = await rejected(commands, [item(variant_attributes={"optional": {"tone": "formal"}})])
    assert "Ambiguous variant resolution" in errors[0]


@pytest.mark.asyncio
async def test_duplicate_correlation_ids(commands):
    errors = await rejected(commands, [item(correlation_id="x"), item(correlation_id="y"), item(correlation_id="x")])
    assert errors == ["Item 2: duplicate correlationId 'x' (first used by item 0)"]


@pytest.mark.asyncio
async def test_queries_are_tenant_scoped(commands):
    request = await commands.submit_document(TENANT_ID, item())

    assert (await commands.get_job(TENANT_ID, request.id)).id == request.id
    with pytest.raises(JobNotFoundException):
        await commands.get_job("globex", request.id)
    with pytest.raises(JobNotFoundException):
        await commands.cancel("globex", request.id)
    with pytest.raises(JobNotFoundException):
        await commands.get_batch(TENANT_ID, uuid.uuid4())
    assert await commands.list_jobs("globex") == []


@pytest.mark.asyncio
async def test_list_jobs_newest_first_with_status_filter(commands):
    first = await commands.submit_document(TENANT_ID, item())
    second = await commands.submit_document(TENANT_ID, item())
    await commands.cancel(TENANT_ID, first.id)

    assert [j.id for j in await commands.list_jobs(TENANT_ID)] == [second.id, first.id]
    assert [j.id for j in await commands.list_jobs(TENANT_ID, status=RequestStatus.CANCELLED)] == [first.id]
    assert [j.id for j in await commands.list_jobs(TENANT_ID, limit=1, offset=1)] == [first.id]
