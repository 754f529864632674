from __future__ import annotations
from typing import Iterable

from .models import Event, FilterSpec
from .value_types import ALL


def sort_key(ev: Event) -> tuple[int, int, int]:
    """Tie-break order key; sort ascending on it for (timestamp, block, logIndex) desc."""
    return (-ev.timestamp, -ev.block_number, -ev.log_index)


def filter_view(events: Iterable[Event], spec: FilterSpec) -> tuple[Event, ...]:
    out = events
    if spec.kind != ALL:
        out = (e for e in out if e.kind == spec.kind)
    if spec.actor:
        actor = spec.actor.lower()
        out = (e for e in out if e.actor.lower() == actor)
    return tuple(sorted(out, key=sort_key))
