from __future__ import annotations

from .value_types import ErrorKind


class SyncError(Exception):
    """Base class for failures of one synchronization cycle."""

    kind: ErrorKind


class LedgerConnectionError(SyncError, ConnectionError):
    """Ledger unreachable or head-block lookup failed. Nothing advances."""

    kind: ErrorKind = "ConnectionError"


class QueryError(SyncError):
    """One or more ranged event queries failed for this cycle."""

    kind: ErrorKind = "QueryError"


class NormalizationError(SyncError, ValueError):
    """A single raw event could not be turned into an Event."""

    kind: ErrorKind = "NormalizationError"


class RPCError(RuntimeError):
    """JSON-RPC level error returned by the node."""

    def __init__(self, method: str, code: int | None, message: str | None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"{method} RPC error code={code} message={message}")
