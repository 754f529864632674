"""Tests for the debounced push notifier and the poll scheduler."""
from __future__ import annotations

import asyncio

from ledgersync.application.notifier import DebouncedNotifier
from ledgersync.application.poller import PollScheduler
from ledgersync.domain.value_types import EVENT_KINDS

from .helpers import FakeLedger, StubEngine


async def test_notifier_subscribes_once_per_kind():
    ledger, engine = FakeLedger(), StubEngine()
    notifier = DebouncedNotifier(ledger, engine, delay=0.05)
    await notifier.start()
    assert sorted(k for k, _ in ledger.subs.values()) == sorted(EVENT_KINDS)
    await notifier.stop()
    assert ledger.subs == {}


async def test_burst_collapses_into_one_sync():
    ledger, engine = FakeLedger(), StubEngine()
    notifier = DebouncedNotifier(ledger, engine, delay=0.05, min_result_count=20)
    await notifier.start()

    for kind in ["Swap", "Swap", "AddLiquidity", "RemoveLiquidity", "Swap"]:
        ledger.emit(kind)
        await asyncio.sleep(0.005)
    assert engine.calls == []
    assert notifier.armed

    await asyncio.sleep(0.15)
    await asyncio.gather(*engine.tasks)

    assert engine.calls == [(20, False)]
    assert notifier.fired == 1
    await notifier.stop()


async def test_separate_bursts_sync_separately():
    ledger, engine = FakeLedger(), StubEngine()
    notifier = DebouncedNotifier(ledger, engine, delay=0.02)
    await notifier.start()

    ledger.emit("Swap")
    await asyncio.sleep(0.08)
    ledger.emit("Swap")
    await asyncio.sleep(0.08)

    assert len(engine.calls) == 2
    await notifier.stop()


async def test_stop_cancels_armed_timer():
    ledger, engine = FakeLedger(), StubEngine()
    notifier = DebouncedNotifier(ledger, engine, delay=0.03)
    await notifier.start()
    ledger.emit()
    await notifier.stop()

    await asyncio.sleep(0.08)
    assert engine.calls == []
    assert not notifier.armed


async def test_failed_subscription_keeps_other_channels():
    ledger, engine = FakeLedger(), StubEngine()
    ledger.subscribe_failures = {"AddLiquidity"}
    notifier = DebouncedNotifier(ledger, engine, delay=0.01)
    await notifier.start()
    assert sorted(k for k, _ in ledger.subs.values()) == ["RemoveLiquidity", "Swap"]
    await notifier.stop()


async def test_poller_triggers_on_interval_until_stopped():
    engine = StubEngine()
    poller = PollScheduler(engine, interval=0.02, min_result_count=7)
    poller.start()
    assert poller.running
    await asyncio.sleep(0.09)
    await poller.stop()

    seen = len(engine.calls)
    assert seen >= 2
    assert set(engine.calls) == {(7, False)}
    await asyncio.sleep(0.05)
    assert len(engine.calls) == seen
    assert not poller.running
