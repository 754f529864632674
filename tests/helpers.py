"""In-memory ledger double and RawEvent builders shared by the tests."""
from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

from ledgersync.domain.errors import LedgerConnectionError, QueryError
from ledgersync.domain.models import RawEvent
from ledgersync.domain.value_types import EVENT_KINDS

ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20
E18 = 10**18


def swap(tx: str, log_index: int, block: int, *, user: str = ALICE,
         amount_in: int = E18, amount_out: int = 2 * E18, forward: bool = True) -> RawEvent:
    return RawEvent(tx, log_index, block, "Swap", (user, amount_in, amount_out, forward))


def liquidity(kind: str, tx: str, log_index: int, block: int, *, user: str = ALICE,
              a: int = E18, b: int = E18, lp: int = E18) -> RawEvent:
    return RawEvent(tx, log_index, block, kind, (user, a, b, lp))


def block_ts(block: int) -> int:
    return 1_700_000_000 + 12 * block


class FakeLedger:
    """Scriptable LedgerClient: fixed head, canned events per kind, injectable failures."""

    def __init__(self, head: int = 100) -> None:
        self.head = head
        self.events: dict[str, list[RawEvent]] = {k: [] for k in EVENT_KINDS}
        self.fail_kinds: set[str] = set()
        self.head_error: Exception | None = None
        self.timestamps: dict[int, int] = {}
        self.timestamp_failures: set[int] = set()
        self.ignore_ranges = False
        self.gate: asyncio.Event | None = None
        self.calls: Counter[str] = Counter()
        self.ranges: list[tuple[str, int, int]] = []
        self.subs: dict[int, tuple[str, Any]] = {}
        self.subscribe_failures: set[str] = set()
        self._next_handle = 0

    def add(self, *raws: RawEvent) -> None:
        for r in raws:
            self.events[r.kind].append(r)

    async def get_head_block(self) -> int:
        self.calls["head"] += 1
        if self.head_error is not None:
            raise self.head_error
        return self.head

    async def get_block_timestamp(self, block_number: int) -> int:
        self.calls["timestamp"] += 1
        if block_number in self.timestamp_failures:
            raise LedgerConnectionError(f"block {block_number} unavailable")
        return self.timestamps.get(block_number, block_ts(block_number))

    async def query_events(self, kind, from_block, to_block):
        self.calls["query"] += 1
        self.ranges.append((kind, from_block, to_block))
        if self.gate is not None:
            await self.gate.wait()
        if kind in self.fail_kinds:
            raise QueryError(f"{kind} query failed")
        if self.ignore_ranges:
            return list(self.events[kind])
        return [e for e in self.events[kind] if from_block <= e.block_number <= to_block]

    async def subscribe(self, kind, callback):
        if kind in self.subscribe_failures:
            raise LedgerConnectionError(f"cannot subscribe to {kind}")
        self._next_handle += 1
        self.subs[self._next_handle] = (kind, callback)
        return self._next_handle

    async def unsubscribe(self, handle) -> None:
        self.subs.pop(handle, None)

    def emit(self, kind: str | None = None) -> None:
        for k, cb in list(self.subs.values()):
            if kind is None or k == kind:
                cb()


class StubEngine:
    """Counts synchronize() calls; enough surface for the notifier and poller."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, bool]] = []
        self.tasks: list[asyncio.Task] = []

    async def synchronize(self, min_result_count: int = 10, force: bool = False):
        self.calls.append((min_result_count, force))
        return ()

    def spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self.tasks.append(task)
        return task
