"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import itertools

import pytest

from ledgersync.application.sync_engine import SyncEngine
from ledgersync.config import SyncConfig

from .helpers import FakeLedger


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(head=100)


@pytest.fixture
def clock():
    ticks = itertools.count(1_000)
    return lambda: float(next(ticks))


@pytest.fixture
def fast_config() -> SyncConfig:
    return SyncConfig(
        lookback_blocks=1000,
        retention_limit=20,
        min_result_count=10,
        debounce_secs=0.05,
        poll_interval_secs=0.05,
        rerun_delay_secs=0.01,
    )


@pytest.fixture
def engine(ledger, fast_config, clock) -> SyncEngine:
    return SyncEngine(ledger, fast_config, clock=clock)
