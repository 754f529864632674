from __future__ import annotations
import os
from typing import Iterable

import pyarrow as pa
import pyarrow.parquet as pq

from ..domain.models import Event

EVENTS_SCHEMA = pa.schema([
    pa.field("id",                   pa.string()),
    pa.field("kind",                 pa.string()),
    pa.field("actor",                pa.string()),
    pa.field("tx_hash",              pa.string()),
    pa.field("block_number",         pa.int64()),
    pa.field("log_index",            pa.int64()),
    pa.field("timestamp",            pa.int64()),
    pa.field("amount_in",            pa.string()),   # big ints as strings
    pa.field("amount_out",           pa.string()),
    pa.field("is_forward_direction", pa.bool_()),
    pa.field("amount_a",             pa.string()),
    pa.field("amount_b",             pa.string()),
    pa.field("liquidity_delta",      pa.string()),
])

_BIG_INTS = ("amount_in", "amount_out", "amount_a", "amount_b", "liquidity_delta")


def events_to_table(events: Iterable[Event]) -> pa.Table:
    """Column-wise Arrow table; row order is the caller's (view) order."""
    evs = list(events)
    cols: dict[str, list] = {f.name: [] for f in EVENTS_SCHEMA}
    for e in evs:
        for name in cols:
            v = getattr(e, name)
            cols[name].append(str(v) if name in _BIG_INTS and v is not None else v)
    return pa.Table.from_pydict(
        {k: pa.array(v, type=EVENTS_SCHEMA.field(k).type) for k, v in cols.items()},
        schema=EVENTS_SCHEMA,
    )


def write_events_parquet(path: str, events: Iterable[Event], *, codec: str = "zstd") -> int:
    """Write `events` atomically (tmp + replace); return the row count."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    table = events_to_table(events)
    tmp = path + ".tmp"
    pq.write_table(table, tmp, compression=codec)
    os.replace(tmp, path)
    return len(table)
