from __future__ import annotations

import asyncio
import contextlib
import logging

from ..config import DEFAULT_MIN_RESULT_COUNT, DEFAULT_POLL_INTERVAL_SECS
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class PollScheduler:
    """Fixed-interval backstop for missed or unsupported push notifications."""

    def __init__(
        self,
        engine: SyncEngine,
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SECS,
        min_result_count: int = DEFAULT_MIN_RESULT_COUNT,
    ) -> None:
        self.engine = engine
        self.interval = interval
        self.min_result_count = min_result_count
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="ledgersync-poll")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.ticks += 1
            logger.debug("poll tick %d", self.ticks)
            await self.engine.synchronize(self.min_result_count)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
