"""Buy-and-hold benchmark: the whole initial balance in one asset, never traded."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from arena_core.errors import StateInconsistency
from data.ledger_store import LedgerStore

logger = logging.getLogger("arena.benchmark")

STRATEGY = "buy_and_hold"


@dataclass(frozen=True)
class BenchmarkPerformance:
    current_value: float
    pnl: float
    pnl_pct: float


class BuyAndHoldBenchmark:
    """
    Two-phase lifecycle: ``prepare()`` at init creates an empty row,
    ``start()`` when trading begins buys the asset at the then-current price.
    Both are idempotent.
    """

    def __init__(
        self,
        store: LedgerStore,
        price_source: Callable[[str], float],
        *,
        asset: str = "BTC",
        initial_balance: float = 100.0,
    ) -> None:
        self._store = store
        self._price_source = price_source
        self.asset = asset.upper()
        self.initial_balance = initial_balance

    def prepare(self) -> bool:
        created = self._store.insert_benchmark(STRATEGY, self.asset, self.initial_balance)
        if created:
            logger.info("Benchmark prepared: %.2f in %s on start", self.initial_balance, self.asset)
        return created

    def is_started(self) -> bool:
        row = self._store.get_benchmark(STRATEGY)
        return bool(row and row["holdings"])

    def start(self) -> float:
        """Buy the benchmark asset; returns units held. Raises if not prepared."""
        row = self._store.get_benchmark(STRATEGY)
        if row is None:
            raise StateInconsistency("Benchmark not prepared; call prepare() first")
        if row["holdings"]:
            logger.info("Benchmark already started")
            return float(row["holdings"].get(row["asset"], 0.0))
        price = self._price_source(row["asset"])
        units = row["initial_balance"] / price
        self._store.update_benchmark(
            STRATEGY,
            current_value=row["initial_balance"],
            holdings={row["asset"]: units},
            total_pnl=0.0,
            pnl_pct=0.0,
        )
        logger.info("Benchmark started: %.8f %s @ %.2f", units, row["asset"], price)
        return units

    def update_value(self, price: float | None = None) -> float:
        """Revalue holdings. Before start() the stored value is returned untouched."""
        row = self._store.get_benchmark(STRATEGY)
        if row is None:
            logger.warning("Benchmark not initialized")
            return 0.0
        units = row["holdings"].get(row["asset"], 0.0)
        if not units:
            return float(row["current_value"])
        if price is None:
            price = self._price_source(row["asset"])
        value = units * price
        pnl = value - row["initial_balance"]
        self._store.update_benchmark(
            STRATEGY,
            current_value=value,
            total_pnl=pnl,
            pnl_pct=pnl / row["initial_balance"] * 100 if row["initial_balance"] else 0.0,
        )
        return value

    def performance(self) -> BenchmarkPerformance:
        row = self._store.get_benchmark(STRATEGY)
        if row is None:
            return BenchmarkPerformance(current_value=self.initial_balance, pnl=0.0, pnl_pct=0.0)
        return BenchmarkPerformance(
            current_value=row["current_value"],
            pnl=row["total_pnl"],
            pnl_pct=row["pnl_pct"],
        )
