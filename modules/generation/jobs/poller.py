"""
Job poller.

Claims pending generation requests and runs them on bounded background
tasks. Any number of pollers, in any number of processes, can share one
store: the store's atomic claim is the only arbiter.
"""

from typing import Any, Awaitable, Optional, Set
import asyncio
import os
import socket

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.core.interfaces import GenerationRequest
from modules.generation.storage.job_storage import IGenerationStore
from shared.utils.logger import log_error, setup_logger

logger = setup_logger(__name__)


def default_instance_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class JobPoller:
    """
    Per-process claim loop.

    A tick claims up to min(claim_batch_size, free slots) requests. When a
    job finishes the poller drains immediately instead of waiting for the
    next tick; concurrent drain requests coalesce into one running drain.

    Attributes:
        instance_id: Identity written to claimed_by
        in_flight: Jobs claimed by this instance and not yet finished
    """

    def __init__(
        self,
        store: IGenerationStore,
        executor: Any,
        config: Optional[GenerationConfig] = None,
        instance_id: Optional[str] = None,
    ):
        """
        Initialize poller.

        Args:
            store: Generation store
            executor: Object with an async execute(request) method
            config: Generation configuration
            instance_id: Claim owner identity (hostname-pid when omitted)
        """
        self.store = store
        self.executor = executor
        self.config = config or get_generation_config()
        self.instance_id = instance_id or default_instance_id()

        self.in_flight = 0
        self._claim_lock = asyncio.Lock()
        self._jobs: Set[asyncio.Task] = set()
        self._drain_task: Optional[asyncio.Task] = None
        self._drain_again = False
        self._tick_task: Optional[asyncio.Task] = None
        self._stopping = False

    @property
    def free_slots(self) -> int:
        return max(self.config.max_concurrent_jobs - self.in_flight, 0)

    @property
    def running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    # ------------------------------------------------------------------
    # Claiming and dispatch
    # ------------------------------------------------------------------

    async def poll_once(self) -> int:
        """
        Claim and dispatch what fits in the free slots.

        Returns:
            Number of requests claimed
        """
        async with self._claim_lock:
            limit = min(self.config.claim_batch_size, self.free_slots)
            if limit <= 0:
                logger.debug(f"Poller {self.instance_id} at capacity ({self.in_flight} in flight)")
                return 0

            # Reserve the slots before the claim so a concurrent drain cannot overshoot
            self.in_flight += limit
            try:
                claimed = await self.store.claim_pending_requests(self.instance_id, limit)
            finally:
                self.in_flight -= limit

            if not claimed:
                logger.debug(f"Poller {self.instance_id}: no pending requests")
                return 0

            for request in claimed:
                logger.info(f"Claimed generation request {request.id} ({request.total_count} items) as {self.instance_id}")
                self.in_flight += 1
                await self._dispatch(request)
            return len(claimed)

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(coro)

    async def _dispatch(self, request: GenerationRequest) -> None:
        coro = self._run_job(request)
        try:
            task = self._spawn(coro)
        except Exception as e:
            coro.close()
            self.in_flight -= 1
            logger.error(f"Failed to dispatch generation request {request.id}: {e}")
            await self.store.mark_request_failed(
                request.id,
                f"Failed to start job: {e}",
                self.config.job_retention_days,
            )
            return

        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    async def _run_job(self, request: GenerationRequest) -> None:
        try:
            await self.executor.execute(request)
        except Exception as e:
            logger.error(f"Generation request {request.id} aborted: {e}", exc_info=True)
            await self.store.mark_request_failed(request.id, str(e), self.config.job_retention_days)
        finally:
            self.in_flight -= 1
            self.request_drain()

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------

    def request_drain(self) -> None:
        """Claim more work now; coalesces with a drain already running."""
        if self._stopping:
            return
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_again = True
            return
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while not self._stopping:
            self._drain_again = False
            try:
                claimed = await self.poll_once()
            except Exception as e:
                log_error(logger, e, f"Poller {self.instance_id} drain failed")
                return
            if claimed == 0 and not self._drain_again:
                return

    async def _tick_loop(self) -> None:
        interval = self.config.polling_interval_seconds
        while not self._stopping:
            self.request_drain()
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the polling timer (no-op when polling is disabled)."""
        if not self.config.polling_enabled:
            logger.info("Generation polling disabled")
            return
        if self.running:
            return
        self._stopping = False
        self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())
        logger.info(
            f"Job poller {self.instance_id} started "
            f"(interval={self.config.polling_interval_ms}ms, max_concurrent={self.config.max_concurrent_jobs})"
        )

    async def await_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no job and no drain is running.

        Returns:
            False if the timeout expired first
        """
        async def _wait() -> None:
            while True:
                pending = set(self._jobs)
                if self._drain_task is not None and not self._drain_task.done():
                    pending.add(self._drain_task)
                if not pending:
                    return
                await asyncio.wait(pending)

        try:
            await asyncio.wait_for(_wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop claiming and wait for in-flight jobs to finish."""
        self._stopping = True
        if self._tick_task is not None:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

        if not await self.await_idle(timeout):
            logger.warning(f"Poller {self.instance_id} stopped with {self.in_flight} job(s) still running")
        logger.info(f"Job poller {self.instance_id} stopped")


