"""
Tests for the job poller: claim exclusivity, concurrency bounds and
dispatch failures.
"""

import asyncio
import uuid

import pytest

from modules.generation.core.interfaces import GenerationItem, GenerationRequest, RequestStatus
from modules.generation.jobs import JobPoller


class RecordingExecutor:
    """Records executed requests; optionally blocks until released."""

    def __init__(self, block: bool = False, error: Exception = None):
        self.executed = []
        self.running = 0
        self.max_running = 0
        self.release = asyncio.Event()
        if not block:
            self.release.set()
        self.error = error

    async def execute(self, request):
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await self.release.wait()
            if self.error is not None:
                raise self.error
            self.executed.append(request.id)
        finally:
            self.running -= 1


def pending_request(tenant_id: str = "acme") -> GenerationRequest:
    request_id = uuid.uuid4()
    return GenerationRequest(
        id=request_id,
        tenant_id=tenant_id,
        items=[GenerationItem(id=uuid.uuid4(), request_id=request_id, template_id="invoice", data={}, version_id=1)],
    )


async def seed(store, count: int):
    requests = [pending_request() for _ in range(count)]
    await store.create_requests(requests)
    return [r.id for r in requests]


@pytest.mark.asyncio
async def test_one_request_is_claimed_by_exactly_one_poller(store, generation_config):
    await seed(store, 1)
    executor = RecordingExecutor()
    pollers = [JobPoller(store, executor, generation_config, instance_id=f"worker-{i}") for i in range(5)]

    claimed = await asyncio.gather(*(p.poll_once() for p in pollers))
    for poller in pollers:
        assert await poller.await_idle(timeout=5)

    assert sum(claimed) == 1
    assert len(executor.executed) == 1


@pytest.mark.asyncio
async def test_many_pollers_never_share_a_request(store, generation_config):
    ids = await seed(store, 12)
    executor = RecordingExecutor()
    pollers = [JobPoller(store, executor, generation_config, instance_id=f"worker-{i}") for i in range(4)]

    for _ in range(6):
        await asyncio.gather(*(p.poll_once() for p in pollers))
    for poller in pollers:
        assert await poller.await_idle(timeout=5)

    assert sorted(executor.executed) == sorted(ids)
    assert len(set(executor.executed)) == len(ids)


@pytest.mark.asyncio
async def test_claim_records_owner(store, generation_config):
    [request_id] = await seed(store, 1)
    poller = JobPoller(store, RecordingExecutor(), generation_config, instance_id="host-42")

    await poller.poll_once()
    await poller.await_idle(timeout=5)

    request = await store.get_request("acme", request_id, include_items=False)
    assert request.claimed_by == "host-42"
    assert request.claimed_at is not None
    assert request.started_at is not None


@pytest.mark.asyncio
async def test_concurrency_is_bounded(store, generation_config):
    await seed(store, 5)
    executor = RecordingExecutor(block=True)
    poller = JobPoller(store, executor, generation_config, instance_id="bounded")

    for _ in range(5):
        await poller.poll_once()
    await asyncio.sleep(0)

    assert poller.in_flight == generation_config.max_concurrent_jobs
    assert poller.free_slots == 0
    assert await poller.poll_once() == 0

    executor.release.set()
    assert await poller.await_idle(timeout=5)
    assert executor.max_running == generation_config.max_concurrent_jobs
    assert len(executor.executed) == 5
    assert poller.in_flight == 0


@pytest.mark.asyncio
async def test_finished_job_drains_immediately(store, generation_config):
    await seed(store, 3)
    executor = RecordingExecutor()
    poller = JobPoller(store, executor, generation_config, instance_id="drainer")

    assert await poller.poll_once() == 1
    assert await poller.await_idle(timeout=5)

    assert len(executor.executed) == 3


@pytest.mark.asyncio
async def test_dispatch_failure_marks_request_failed(store, generation_config, monkeypatch):
    [request_id] = await seed(store, 1)
    poller = JobPoller(store, RecordingExecutor(), generation_config, instance_id="broken")

    def refuse(coro):
        raise RuntimeError("executor shut down")

    monkeypatch.setattr(poller, "_spawn", refuse)

    assert await poller.poll_once() == 1

    request = await store.get_request("acme", request_id, include_items=False)
    assert request.status == RequestStatus.FAILED
    assert request.error_message == "Failed to start job: executor shut down"
    assert poller.in_flight == 0


@pytest.mark.asyncio
async def test_executor_crash_marks_request_failed(store, generation_config):
    [request_id] = await seed(store, 1)
    poller = JobPoller(store, RecordingExecutor(error=RuntimeError("lost connection")), generation_config)

    await poller.poll_once()
    await poller.await_idle(timeout=5)

    request = await store.get_request("acme", request_id, include_items=False)
    assert request.status == RequestStatus.FAILED
    assert request.error_message == "lost connection"
    assert request.expires_at is not None


@pytest.mark.asyncio
async def test_start_and_stop(store, generation_config):
    await seed(store, 2)
    generation_config.polling_enabled = True
    executor = RecordingExecutor()
    poller = JobPoller(store, executor, generation_config, instance_id="timer")

    poller.start()
    assert poller.running
    for _ in range(100):
        if len(executor.executed) == 2:
            break
        await asyncio.sleep(0.01)
    await poller.stop(timeout=5)

    assert not poller.running
    assert len(executor.executed) == 2


@pytest.mark.asyncio
async def test_start_is_noop_when_disabled(store, generation_config):
    poller = JobPoller(store, RecordingExecutor(), generation_config)
    poller.start()
    assert not poller.running
    await poller.stop(timeout=1)
