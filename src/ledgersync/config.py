"""
Runtime configuration for the ledger event sync.

Defaults live in module constants; `SyncConfig.from_env()` lets deployments
override them through `LEDGERSYNC_*` environment variables.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Final, Mapping

DEFAULT_LOOKBACK_BLOCKS: Final = 1000
"""Blocks scanned on the first sync, when there is no checkpoint yet."""

DEFAULT_RETENTION_LIMIT: Final = 20
"""Maximum events kept after eviction (never below what is already shown)."""

DEFAULT_MIN_RESULT_COUNT: Final = 20
"""min_result_count passed by the notifier, poller and manual refresh."""

DEFAULT_DEBOUNCE_SECS: Final = 2.0
DEFAULT_POLL_INTERVAL_SECS: Final = 60.0
DEFAULT_RERUN_DELAY_SECS: Final = 1.0

DEFAULT_TIMEOUT_SECS: Final = 20
DEFAULT_SUBSCRIPTION_POLL_SECS: Final = 4.0
"""How often the HTTP adapter checks its log filters for new events."""

ENV_PREFIX: Final = "LEDGERSYNC_"


@dataclass(slots=True, frozen=True)
class SyncConfig:
    lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS
    retention_limit: int = DEFAULT_RETENTION_LIMIT
    min_result_count: int = DEFAULT_MIN_RESULT_COUNT
    debounce_secs: float = DEFAULT_DEBOUNCE_SECS
    poll_interval_secs: float = DEFAULT_POLL_INTERVAL_SECS
    rerun_delay_secs: float = DEFAULT_RERUN_DELAY_SECS

    def __post_init__(self) -> None:
        if self.lookback_blocks < 0:
            raise ValueError(f"lookback_blocks must be >= 0, got {self.lookback_blocks}")
        if self.retention_limit < 1 or self.min_result_count < 0:
            raise ValueError("retention_limit must be >= 1 and min_result_count >= 0")
        for name in ("debounce_secs", "poll_interval_secs", "rerun_delay_secs"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "SyncConfig":
        """Build a config from LEDGERSYNC_<FIELD> variables, then apply non-None overrides."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            conv = float if f.name.endswith("_secs") else int
            try:
                values[f.name] = conv(raw)
            except ValueError:
                raise ValueError(f"Invalid {ENV_PREFIX}{f.name.upper()}: {raw!r}") from None
        cfg = cls(**values)
        extra = {k: v for k, v in overrides.items() if v is not None}
        return replace(cfg, **extra) if extra else cfg
