"""
Periodic deadline sweep owned by the application runtime.
"""

import asyncio
from typing import Optional

from fypflow.engines.deadlines.processor import DeadlineProcessor
from fypflow.logging_config import get_logger
from fypflow.runtime import Runtime

logger = get_logger(__name__)


class DeadlineSweepScheduler:
    """
    Runs the deadline sweep every interval_seconds in a background task.

    Usage:
        scheduler = DeadlineSweepScheduler(runtime)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(self, runtime: Runtime, interval_seconds: Optional[float] = None):
        self.processor = DeadlineProcessor(runtime)
        self.interval_seconds = interval_seconds or runtime.settings.deadline_sweep_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="deadline-sweep")
        logger.info("Deadline sweep scheduled", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Deadline sweep stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.processor.run_deadline_sweep()
            except Exception:
                # A failed run must not kill the schedule; the next run resumes
                logger.exception("Deadline sweep run failed")
            self.runs += 1
            await asyncio.sleep(self.interval_seconds)
