"""
Fixed-interval background tasks.
"""

from typing import Awaitable, Callable, Optional
import asyncio

from shared.utils.logger import log_error, setup_logger

logger = setup_logger(__name__)


class PeriodicTask:
    """
    Runs an async callable every interval_seconds until stopped.

    Errors are logged and the next run happens on schedule.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Awaitable[object]],
        run_at_start: bool = True,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self.func = func
        self.run_at_start = run_at_start
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """Run the callable once; False if it raised."""
        try:
            await self.func()
            return True
        except Exception as e:
            log_error(logger, e, f"Periodic task '{self.name}' failed")
            return False

    async def _loop(self) -> None:
        if not self.run_at_start:
            await asyncio.sleep(self.interval_seconds)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Started periodic task '{self.name}' (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped periodic task '{self.name}'")
