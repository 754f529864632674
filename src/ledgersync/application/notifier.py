from __future__ import annotations

import asyncio
import logging
from typing import Any, Hashable

from ..config import DEFAULT_DEBOUNCE_SECS, DEFAULT_MIN_RESULT_COUNT
from ..domain.value_types import EVENT_KINDS
from ..ports.ledger import LedgerClient
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class DebouncedNotifier:
    """
    Collapses bursts of push notifications into one `synchronize()` call.
    Every notification (re)arms a single timer; only its expiry syncs.
    """
    def __init__(
        self,
        ledger: LedgerClient,
        engine: SyncEngine,
        *,
        delay: float = DEFAULT_DEBOUNCE_SECS,
        min_result_count: int = DEFAULT_MIN_RESULT_COUNT,
    ) -> None:
        self.ledger = ledger
        self.engine = engine
        self.delay = delay
        self.min_result_count = min_result_count
        self.fired = 0
        self._handles: list[Hashable] = []
        self._timer: asyncio.TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._timer is not None

    async def start(self) -> None:
        for kind in EVENT_KINDS:
            try:
                self._handles.append(await self.ledger.subscribe(kind, self.notify))
            except Exception as e:
                # polling still covers this kind
                logger.warning("subscribe(%s) failed: %s: %s", kind, type(e).__name__, e)
        logger.debug("subscribed to %d/%d event channels", len(self._handles), len(EVENT_KINDS))

    def notify(self, *_: Any) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self.fired += 1
        logger.debug("new ledger events detected; syncing")
        self.engine.spawn(self.engine.synchronize(self.min_result_count))

    async def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        handles, self._handles = self._handles, []
        for h in handles:
            try:
                await self.ledger.unsubscribe(h)
            except Exception as e:
                logger.warning("unsubscribe(%r) failed: %s: %s", h, type(e).__name__, e)
