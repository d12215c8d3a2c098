"""Tests for engine assembly from config."""

from pathlib import Path

import pytest

from config.loader import AppConfig, MarketDataConfig, StoreConfig, TraderConfig
from data.market_data import RandomWalkMarketData, StaticMarketData
from engine import build_engine, build_market_data


@pytest.fixture
def cfg(tmp_path: Path) -> AppConfig:
    return AppConfig(
        assets=("BTC", "ETH"),
        traders=(TraderConfig("Alpha", "momentum"), TraderConfig("Beta", "hold", 50.0)),
        store=StoreConfig(path=str(tmp_path / "arena.db")),
        market_data=MarketDataConfig(source="static", initial_prices={"BTC": 40_000.0}),
    )


def test_market_data_from_config(cfg: AppConfig) -> None:
    md = build_market_data(cfg)
    assert isinstance(md, StaticMarketData)
    assert md.get_price("BTC") == 40_000.0
    assert md.get_price("ETH") == 3_000.0

    walk = build_market_data(AppConfig(assets=("SOL",), market_data=MarketDataConfig(seed=1)))
    assert isinstance(walk, RandomWalkMarketData)
    assert walk.get_price("SOL") == 150.0


def test_initialize_creates_missing_traders(cfg: AppConfig) -> None:
    engine = build_engine(cfg)
    try:
        assert engine.initialize() == ["Alpha", "Beta"]
        assert engine.initialize() == []
        assert engine.store.get_trader_by_name("Beta").initial_balance == 50.0
        assert engine.store.get_benchmark("buy_and_hold") is not None
        assert engine.scheduler.enabled_strategies == ["momentum", "hold"]
        assert engine.cost_presets is not None
    finally:
        engine.scheduler.close()


def test_initialize_reset(cfg: AppConfig) -> None:
    engine = build_engine(cfg)
    try:
        engine.initialize()
        alpha = engine.store.get_trader_by_name("Alpha")
        engine.executor.execute_buy(alpha.id, "BTC", 10.0, "x")
        assert engine.initialize(reset=True, preset="zero") == ["Alpha", "Beta"]
        assert engine.store.list_active_positions() == []
        assert engine.cost_settings.get().fee_rate == 0.0
    finally:
        engine.scheduler.close()


def test_full_cycle_end_to_end(cfg: AppConfig) -> None:
    engine = build_engine(cfg)
    try:
        engine.initialize()
        engine.benchmark.start()
        report = engine.scheduler.run_decision_cycle(check_running_flag=False)
        assert len(report.decisions) == 2
        snap = engine.scheduler.run_snapshot_cycle()
        assert set(snap.values) == {"Alpha", "Beta"}
        assert snap.benchmark_value == pytest.approx(100.0)
    finally:
        engine.scheduler.close()
