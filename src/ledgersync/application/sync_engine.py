"""
Incremental synchronization of ledger events into the in-memory cache.

One cycle walks `idle -> fetching_head -> fetching_ranges -> merging -> idle`.
Only one cycle runs at a time: a non-forced trigger that arrives while a cycle
is in flight just marks `pending_rerun`, and all pending marks collapse into a
single follow-up cycle once the current one finishes. Forced triggers queue on
the same lock instead of bypassing it.

Failures never escape `synchronize()`; they are logged and recorded as the
`last_error` kind in the status.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Sequence

from ..config import SyncConfig
from ..domain.cache import EventCache
from ..domain.decoding import normalize
from ..domain.errors import LedgerConnectionError, NormalizationError, QueryError
from ..domain.models import Event, FilterSpec, RawEvent, SyncState, SyncStatus
from ..domain.value_types import EVENT_KINDS
from ..domain.view import filter_view
from ..ports.ledger import LedgerClient

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(
        self,
        ledger: LedgerClient,
        config: SyncConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        self.config = config or SyncConfig()
        self._clock = clock
        self._cache = EventCache()
        self._state = SyncState()
        self._lock = asyncio.Lock()
        self._block_times: dict[int, int] = {}
        self._views: dict[FilterSpec, tuple[Event, ...]] = {}
        self._views_version = -1
        self._rerun_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    # ---------------------------- read side -----------------------------------

    def view(self, spec: FilterSpec | None = None) -> tuple[Event, ...]:
        """Filtered, tie-break ordered events; memoized per (cache version, spec)."""
        spec = spec or FilterSpec()
        if self._views_version != self._cache.version:
            self._views.clear()
            self._views_version = self._cache.version
        out = self._views.get(spec)
        if out is None:
            out = self._views[spec] = filter_view(self._cache.all(), spec)
        return out

    def snapshot(self) -> tuple[Event, ...]:
        return self.view(FilterSpec())

    def status(self) -> SyncStatus:
        st = self._state
        return SyncStatus(
            loading=st.in_flight,
            error=st.last_error,
            last_sync_time=st.last_sync_time,
            last_synced_block=st.last_synced_block,
            phase=st.phase,
        )

    @property
    def last_synced_block(self) -> int:
        return self._state.last_synced_block

    @property
    def pending_rerun(self) -> bool:
        return self._state.pending_rerun

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ---------------------------- write side ----------------------------------

    async def synchronize(self, min_result_count: int = 10, force: bool = False) -> tuple[Event, ...]:
        st = self._state
        if self._closed:
            return self.snapshot()
        if st.in_flight and not force:
            if not st.pending_rerun:
                logger.debug("sync in flight; queueing one rerun")
            st.pending_rerun = True
            return self.snapshot()

        async with self._lock:
            st.in_flight = True
            try:
                await self._run_cycle(min_result_count, force)
            finally:
                st.in_flight = False
                st.phase = "idle"
                if st.pending_rerun:
                    st.pending_rerun = False
                    self._schedule_rerun(min_result_count)
        return self.snapshot()

    def spawn(self, coro: Awaitable) -> asyncio.Task:
        """Run `coro` as a tracked background task (cancelled on close)."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self) -> None:
        self._closed = True
        if self._rerun_handle is not None:
            self._rerun_handle.cancel()
            self._rerun_handle = None
        tasks = [t for t in self._tasks if not t.done()]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ---------------------------- internals -----------------------------------

    async def _run_cycle(self, min_result_count: int, force: bool) -> None:
        st = self._state
        st.phase = "fetching_head"
        try:
            head = int(await self.ledger.get_head_block())
        except Exception as e:
            logger.warning("head block lookup failed: %s: %s", type(e).__name__, e)
            st.last_error = LedgerConnectionError.kind
            return

        if head == st.last_synced_block and len(self._cache) and not force:
            logger.debug("head unchanged at %d; nothing to do", head)
            return

        if st.last_synced_block > 0:
            from_block = st.last_synced_block + 1
        else:
            from_block = max(0, head - self.config.lookback_blocks)
        if from_block > head:
            # nothing new to fetch; bookkeeping still advances
            st.last_synced_block = head
            st.last_sync_time = self._clock()
            return

        st.phase = "fetching_ranges"
        logger.debug("querying blocks [%d, %d]", from_block, head)
        results = await asyncio.gather(
            *(self.ledger.query_events(k, from_block, head) for k in EVENT_KINDS),
            return_exceptions=True,
        )
        raws: list[RawEvent] = []
        failed: list[str] = []
        for kind, res in zip(EVENT_KINDS, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                logger.warning("%s query [%d, %d] failed: %s: %s",
                               kind, from_block, head, type(res).__name__, res)
                failed.append(kind)
            else:
                raws.extend(res)

        if len(failed) == len(EVENT_KINDS):
            st.last_error = QueryError.kind
            return

        st.phase = "merging"
        prev_size = len(self._cache)
        candidates, inserted, rejected = await self._merge(raws)
        evicted = self._cache.evict_to_limit(
            self.config.retention_limit, max(min_result_count, prev_size)
        )
        self._prune_block_times()

        st.last_synced_block = head
        st.last_sync_time = self._clock()
        if failed:
            st.last_error = QueryError.kind
        elif candidates and rejected == candidates:
            st.last_error = NormalizationError.kind
        else:
            st.last_error = None
        logger.info(
            "synced to block %d: %d new, %d rejected, %d evicted, %d cached",
            head, inserted, rejected, evicted, len(self._cache),
        )

    async def _merge(self, raws: Sequence[RawEvent]) -> tuple[int, int, int]:
        """Normalize and insert unseen events; return (candidates, inserted, rejected)."""
        fresh: dict[str, RawEvent] = {}
        for raw in raws:
            eid = raw.event_id
            if eid in self._cache or eid in fresh:
                continue
            fresh[eid] = raw

        missing = {r.block_number for r in fresh.values()} - self._block_times.keys()
        await asyncio.gather(*(self._resolve_timestamp(b) for b in sorted(missing)))

        inserted = rejected = 0
        for eid, raw in fresh.items():
            ts = self._block_times.get(raw.block_number)
            if ts is None:
                rejected += 1
                logger.error("dropping %s: no timestamp for block %d", eid, raw.block_number)
                continue
            try:
                ev = normalize(raw, ts)
            except NormalizationError as e:
                rejected += 1
                logger.warning("skipping %s: %s", eid, e)
                continue
            if self._cache.insert(ev):
                inserted += 1
        return len(fresh), inserted, rejected

    def _prune_block_times(self) -> None:
        """Drop timestamps of blocks that no cached event refers to."""
        live = {ev.block_number for ev in self._cache.all()}
        for b in [b for b in self._block_times if b not in live]:
            del self._block_times[b]

    async def _resolve_timestamp(self, block_number: int) -> None:
        try:
            self._block_times[block_number] = int(await self.ledger.get_block_timestamp(block_number))
        except Exception as e:
            logger.warning("timestamp lookup for block %d failed: %s: %s",
                           block_number, type(e).__name__, e)

    def _schedule_rerun(self, min_result_count: int) -> None:
        if self._closed or self._rerun_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._rerun_handle = loop.call_later(
            self.config.rerun_delay_secs, self._fire_rerun, min_result_count
        )

    def _fire_rerun(self, min_result_count: int) -> None:
        self._rerun_handle = None
        self.spawn(self.synchronize(min_result_count))
