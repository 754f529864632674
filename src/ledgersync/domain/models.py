from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from .value_types import ALL, ErrorKind, EventKind, KindSelector, Phase


@dataclass(slots=True, frozen=True)
class RawEvent:
    """A decoded log as returned by the ledger client, before normalization."""
    tx_hash: str
    log_index: int
    block_number: int
    kind: EventKind
    args: tuple[Any, ...]

    @property
    def event_id(self) -> str:
        return event_id(self.tx_hash, self.log_index)


@dataclass(slots=True, frozen=True)
class Event:
    id: str
    kind: EventKind
    actor: str
    tx_hash: str
    block_number: int
    log_index: int
    timestamp: int
    # Swap
    amount_in: int | None = None
    amount_out: int | None = None
    is_forward_direction: bool | None = None
    # AddLiquidity / RemoveLiquidity
    amount_a: int | None = None
    amount_b: int | None = None
    liquidity_delta: int | None = None


@dataclass(slots=True, frozen=True)
class FilterSpec:
    kind: KindSelector = ALL
    actor: str | None = None


@dataclass(slots=True)
class SyncState:
    last_synced_block: int = 0          # 0 == never synced
    in_flight: bool = False
    pending_rerun: bool = False
    last_sync_time: float = 0.0
    last_error: ErrorKind | None = None
    phase: Phase = "idle"


@dataclass(slots=True, frozen=True)
class SyncStatus:
    loading: bool
    error: ErrorKind | None
    last_sync_time: float
    last_synced_block: int
    phase: Phase


def event_id(tx_hash: str, log_index: int) -> str:
    return f"{tx_hash}-{log_index}"
