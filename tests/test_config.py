from __future__ import annotations

import pytest

from ledgersync.config import DEFAULT_LOOKBACK_BLOCKS, SyncConfig


def test_defaults():
    cfg = SyncConfig()
    assert cfg.lookback_blocks == DEFAULT_LOOKBACK_BLOCKS == 1000
    assert (cfg.debounce_secs, cfg.poll_interval_secs) == (2.0, 60.0)


def test_from_env_and_overrides():
    env = {"LEDGERSYNC_LOOKBACK_BLOCKS": "250", "LEDGERSYNC_DEBOUNCE_SECS": "0.5", "OTHER": "x"}
    cfg = SyncConfig.from_env(env, retention_limit=50, poll_interval_secs=None)
    assert cfg.lookback_blocks == 250
    assert cfg.debounce_secs == 0.5
    assert cfg.retention_limit == 50
    assert cfg.poll_interval_secs == 60.0


@pytest.mark.parametrize("env", [
    {"LEDGERSYNC_LOOKBACK_BLOCKS": "ten"},
    {"LEDGERSYNC_POLL_INTERVAL_SECS": "0"},
    {"LEDGERSYNC_RETENTION_LIMIT": "0"},
])
def test_invalid_values_raise(env):
    with pytest.raises(ValueError):
        SyncConfig.from_env(env)
