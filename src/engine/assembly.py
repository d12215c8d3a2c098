"""
Engine assembly: AppConfig -> one fully wired engine.

The process that owns the engine (CLI run loop, tests) builds it here and
passes it around; there is no module-level instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from arena_core.costs import SlippageSource
from config.cost_settings import CostConfigError, CostPresets, CostSettingsCache, load_cost_presets
from config.loader import AppConfig
from data.ledger_store import LedgerStore
from data.market_data import DEFAULT_PRICES, MarketDataProvider, RandomWalkMarketData, StaticMarketData
from engine.benchmark import BuyAndHoldBenchmark
from engine.scheduler import CycleScheduler
from engine.snapshotter import PerformanceSnapshotter
from execution.risk_monitor import RiskMonitor
from execution.trade_executor import TradeExecutor


@dataclass
class Engine:
    config: AppConfig
    store: LedgerStore
    cost_settings: CostSettingsCache
    cost_presets: CostPresets | None
    market_data: MarketDataProvider
    executor: TradeExecutor
    risk_monitor: RiskMonitor
    snapshotter: PerformanceSnapshotter
    benchmark: BuyAndHoldBenchmark
    scheduler: CycleScheduler

    def initialize(self, *, reset: bool = False, preset: str | None = None) -> list[str]:
        """Create configured traders that do not exist yet and prepare the benchmark.

        Returns the names of traders created. ``reset`` wipes experiment rows first.
        """
        if reset:
            self.store.reset()
        if preset:
            self.cost_settings.apply_preset(preset, self.cost_presets)
        created = []
        for t in self.config.traders:
            if self.store.get_trader_by_name(t.name) is None:
                self.store.create_trader(t.name, t.provider, t.initial_balance)
                created.append(t.name)
        self.benchmark.prepare()
        return created


def build_market_data(cfg: AppConfig) -> MarketDataProvider:
    prices = {a: cfg.market_data.initial_prices.get(a, DEFAULT_PRICES.get(a, 1.0)) for a in cfg.assets}
    if cfg.market_data.source == "static":
        return StaticMarketData(prices)
    return RandomWalkMarketData(prices, seed=cfg.market_data.seed, volatility=cfg.market_data.volatility)


def build_engine(
    cfg: AppConfig,
    *,
    market_data: MarketDataProvider | None = None,
    slippage_source: SlippageSource | None = None,
    cost_presets: CostPresets | None = None,
    journal: Any = None,
    events: Any = None,
) -> Engine:
    store = LedgerStore(cfg.store.path)
    cost_settings = CostSettingsCache(store, ttl_seconds=cfg.costs.cache_ttl_seconds)
    if cost_presets is None:
        try:
            cost_presets = load_cost_presets()
        except CostConfigError:
            cost_presets = None
    market = market_data or build_market_data(cfg)
    executor = TradeExecutor(
        store,
        cost_settings=cost_settings,
        price_source=market.get_price,
        slippage_source=slippage_source,
        paper_mode=cfg.engine.paper_mode,
    )
    risk = RiskMonitor(store, executor, price_source=market.get_price)
    snapshotter = PerformanceSnapshotter(store, executor)
    benchmark = BuyAndHoldBenchmark(
        store,
        market.get_price,
        asset=cfg.benchmark.asset,
        initial_balance=cfg.benchmark.initial_balance,
    )
    scheduler = CycleScheduler(
        store,
        executor,
        risk,
        snapshotter,
        market,
        assets=cfg.assets,
        cost_settings=cost_settings,
        cost_presets=cost_presets,
        benchmark=benchmark,
        journal=journal,
        events=events,
        decision_interval_minutes=cfg.engine.decision_interval_minutes,
        snapshot_interval_seconds=cfg.engine.snapshot_interval_seconds,
        call_timeout_seconds=cfg.engine.call_timeout_seconds,
        enabled_strategies=cfg.enabled_strategies,
        selected_models=cfg.engine.selected_models,
    )
    return Engine(
        config=cfg,
        store=store,
        cost_settings=cost_settings,
        cost_presets=cost_presets,
        market_data=market,
        executor=executor,
        risk_monitor=risk,
        snapshotter=snapshotter,
        benchmark=benchmark,
        scheduler=scheduler,
    )
