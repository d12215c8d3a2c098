"""Tests for the performance snapshotter: valuation, lock skip, duplicate timestamps."""

from datetime import datetime, timezone

import pytest

from arena_core.contracts import Position
from data.market_data import StaticMarketData
from engine.benchmark import BuyAndHoldBenchmark
from engine.snapshotter import PerformanceSnapshotter
from execution.trade_executor import TradeExecutor

FIXED = datetime(2025, 1, 2, 12, 0, 0, tzinfo=timezone.utc)


def test_records_balance_plus_positions(store, executor, trader, second_trader) -> None:
    executor.execute_buy(trader.id, "BTC", 50.0, "x", price=50_000.0)
    snap = PerformanceSnapshotter(store, executor, clock=lambda: FIXED)

    row = snap.record()

    assert row is not None
    assert row.values["Alpha"] == pytest.approx(50.0 + 0.000999 * 50_000.0)
    assert row.values["Beta"] == 100.0
    assert row.benchmark_value == 100.0
    stored = store.list_performance_snapshots()
    assert len(stored) == 1
    assert stored[0].timestamp == FIXED
    assert stored[0].values == row.values


def test_uses_stored_benchmark_value(store, executor, market, trader) -> None:
    bench = BuyAndHoldBenchmark(store, market.get_price)
    bench.prepare()
    bench.start()
    bench.update_value(55_000.0)

    row = PerformanceSnapshotter(store, executor, clock=lambda: FIXED).record()

    assert row.benchmark_value == pytest.approx(110.0)


def test_duplicate_timestamp_is_silently_dropped(store, executor, trader) -> None:
    snap = PerformanceSnapshotter(store, executor, clock=lambda: FIXED)
    assert snap.record() is not None
    assert snap.record() is None
    assert len(store.list_performance_snapshots()) == 1


def test_dust_positions_not_valued(store, executor, trader) -> None:
    store.insert_position(Position(
        trader_id=trader.id, asset="BTC", quantity=5e-9, entry_price=50_000.0,
        current_price=50_000.0, invested_value=1.0, current_value=0.00025,
    ))
    row = PerformanceSnapshotter(store, executor, clock=lambda: FIXED).record()
    assert row.values["Alpha"] == 100.0


def test_tick_during_trade_persists_nothing(store, trader) -> None:
    market = StaticMarketData({"BTC": 50_000.0})
    results = []

    def price_source(asset: str) -> float:
        results.append(snap.record())
        return market.get_price(asset)

    executor = TradeExecutor(store, price_source=price_source)
    snap = PerformanceSnapshotter(store, executor, clock=lambda: FIXED)

    executor.execute_buy(trader.id, "BTC", 10.0, "x")

    assert results == [None]
    assert store.list_performance_snapshots() == []
