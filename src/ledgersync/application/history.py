"""
Transaction history service: the object the presentation layer talks to.

Owns one SyncEngine and the two automatic triggers (push notifications and
polling) for a single exchange contract. Callers only read immutable views
and status; the cache itself is never handed out.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from ..config import SyncConfig
from ..domain.models import Event, FilterSpec, SyncStatus
from ..domain.value_types import ALL, EVENT_KINDS, KindSelector
from ..ports.ledger import LedgerClient
from .notifier import DebouncedNotifier
from .poller import PollScheduler
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class TransactionHistory:
    def __init__(
        self,
        ledger: LedgerClient,
        config: SyncConfig | None = None,
        *,
        kind: KindSelector = ALL,
        actor: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SyncConfig()
        self.engine = SyncEngine(ledger, self.config, clock=clock)
        self.notifier = DebouncedNotifier(
            ledger, self.engine,
            delay=self.config.debounce_secs,
            min_result_count=self.config.min_result_count,
        )
        self.poller = PollScheduler(
            self.engine,
            interval=self.config.poll_interval_secs,
            min_result_count=self.config.min_result_count,
        )
        self._filter = FilterSpec()
        self.set_filter(kind, actor)
        self._started = False

    # lifecycle

    async def start(self) -> None:
        """Run the initial sync, then subscribe and start polling."""
        if self._started:
            return
        self._started = True
        logger.info("transaction history starting (lookback=%d, retention=%d, poll=%.0fs, debounce=%.1fs)",
                    self.config.lookback_blocks, self.config.retention_limit,
                    self.config.poll_interval_secs, self.config.debounce_secs)
        await self.engine.synchronize(self.config.min_result_count)
        await self.notifier.start()
        self.poller.start()

    async def close(self) -> None:
        await self.poller.stop()
        await self.notifier.stop()
        await self.engine.aclose()
        self._started = False

    async def __aenter__(self) -> "TransactionHistory":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # presentation API

    @property
    def filter(self) -> FilterSpec:
        return self._filter

    def get_view(self, spec: FilterSpec | None = None) -> tuple[Event, ...]:
        return self.engine.view(spec or self._filter)

    def all_events(self) -> tuple[Event, ...]:
        return self.engine.snapshot()

    def refresh(self, force: bool = False) -> asyncio.Task:
        """Fire-and-forget sync; observe the outcome through get_status()."""
        return self.engine.spawn(self.engine.synchronize(self.config.min_result_count, force))

    def set_filter(self, kind: KindSelector = ALL, actor: str | None = None) -> None:
        if kind != ALL and kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind {kind!r}; expected 'All' or one of {EVENT_KINDS}")
        self._filter = FilterSpec(kind=kind, actor=actor or None)

    def my_events(self, address: str) -> None:
        self.set_filter(ALL, address)

    def clear_filters(self) -> None:
        self._filter = FilterSpec()

    def get_status(self) -> SyncStatus:
        return self.engine.status()
