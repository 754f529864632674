"""ledgersync — incremental, deduplicated sync of DEX ledger events."""
from .application.history import TransactionHistory
from .application.sync_engine import SyncEngine
from .config import SyncConfig
from .domain.models import Event, FilterSpec, RawEvent, SyncStatus

__all__ = [
    "Event",
    "FilterSpec",
    "RawEvent",
    "SyncConfig",
    "SyncEngine",
    "SyncStatus",
    "TransactionHistory",
]
