"""Pytest fixtures: temp SQLite store, deterministic prices and zero slippage."""

from pathlib import Path

import pytest

from arena_core.contracts import Trader
from arena_core.costs import FixedSlippage
from config.cost_settings import CostSettingsCache
from data.ledger_store import LedgerStore
from data.market_data import StaticMarketData
from execution.trade_executor import TradeExecutor


@pytest.fixture
def store(tmp_path: Path) -> LedgerStore:
    return LedgerStore(tmp_path / "arena.db")


@pytest.fixture
def market() -> StaticMarketData:
    return StaticMarketData({"BTC": 50_000.0, "ETH": 3_000.0})


@pytest.fixture
def cost_cache(store: LedgerStore) -> CostSettingsCache:
    """Stored settings start empty, so the defaults apply: 0.1% fee."""
    return CostSettingsCache(store, ttl_seconds=300)


@pytest.fixture
def executor(store: LedgerStore, market: StaticMarketData, cost_cache: CostSettingsCache) -> TradeExecutor:
    return TradeExecutor(
        store,
        cost_settings=cost_cache,
        price_source=market.get_price,
        slippage_source=FixedSlippage(0.0),
    )


@pytest.fixture
def trader(store: LedgerStore) -> Trader:
    return store.create_trader("Alpha", "momentum", 100.0)


@pytest.fixture
def second_trader(store: LedgerStore) -> Trader:
    return store.create_trader("Beta", "mean_reversion", 100.0)
