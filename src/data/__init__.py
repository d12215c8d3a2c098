"""
Data layer: durable ledger store (SQLite) and market data providers.

Depends on arena_core.contracts for row types; no dependency from arena_core back to data.
"""

from data.ledger_store import LedgerStore
from data.market_data import MarketDataProvider, RandomWalkMarketData, StaticMarketData

__all__ = [
    "LedgerStore",
    "MarketDataProvider",
    "RandomWalkMarketData",
    "StaticMarketData",
]
