from __future__ import annotations

from .models import Event
from .view import sort_key


class EventCache:
    """
    Normalized events keyed by id, plus the retention policy.
    Insert is idempotent: an id that is already present is never overwritten.
    `version` increases on every mutation that changes the contents.
    """
    def __init__(self) -> None:
        self._by_id: dict[str, Event] = {}
        self.version = 0

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._by_id

    def insert(self, event: Event) -> bool:
        if event.id in self._by_id:
            return False
        self._by_id[event.id] = event
        self.version += 1
        return True

    def all(self) -> list[Event]:
        return list(self._by_id.values())

    def evict_to_limit(self, limit: int, min_keep: int = 0) -> int:
        """Keep the newest max(limit, min_keep) events by tie-break order; return #evicted."""
        keep = max(limit, min_keep)
        if len(self._by_id) <= keep:
            return 0
        ordered = sorted(self._by_id.values(), key=sort_key)
        dropped = ordered[keep:]
        for ev in dropped:
            del self._by_id[ev.id]
        self.version += 1
        return len(dropped)
