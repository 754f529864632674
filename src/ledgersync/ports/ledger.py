# ledgersync/ports/ledger.py
from __future__ import annotations

from typing import Any, Awaitable, Callable, Hashable, Protocol, Union
from ..domain.models import RawEvent
from ..domain.value_types import EventKind

# Push callbacks may be plain functions or coroutine functions.
NotifyCallback = Callable[[], Union[None, Awaitable[None]]]


class LedgerClient(Protocol):
    """Port defining the contract for the exchange ledger (chain node) client."""

    async def get_head_block(self) -> int:
        """Return the latest block number."""

    async def get_block_timestamp(self, block_number: int) -> int:
        """Return the unix timestamp (seconds) of `block_number`."""

    async def query_events(self, kind: EventKind, from_block: int, to_block: int) -> list[RawEvent]:
        """Return decoded events of `kind` in [from_block, to_block] inclusive."""

    async def subscribe(self, kind: EventKind, callback: NotifyCallback) -> Hashable:
        """Invoke `callback` whenever new `kind` events appear; return a handle."""

    async def unsubscribe(self, handle: Any) -> None:
        """Stop notifications for a handle returned by `subscribe`."""
