"""
Performance snapshotter: one immutable valuation row per tick.

Reads only. A tick that starts while the executor holds its lock is
skipped outright; duplicate-timestamp conflicts are dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from arena_core.contracts import PerformanceSnapshot
from arena_core.errors import PersistenceConflict
from arena_core.portfolio import trader_valuation
from data.ledger_store import LedgerStore
from engine.benchmark import STRATEGY
from execution.trade_executor import TradeExecutor

logger = logging.getLogger("arena.snapshot")


def _now_seconds() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class PerformanceSnapshotter:
    def __init__(
        self,
        store: LedgerStore,
        executor: TradeExecutor,
        *,
        clock: Callable[[], datetime] = _now_seconds,
    ) -> None:
        self._store = store
        self._executor = executor
        self._clock = clock

    def valuations(self) -> dict[str, float]:
        """Trader name -> balance + stored value of active non-dust positions."""
        positions = self._store.list_active_positions()
        return {t.name: trader_valuation(t, positions) for t in self._store.list_traders()}

    def record(self) -> PerformanceSnapshot | None:
        """Persist one row; None when skipped or when the timestamp already exists."""
        if self._executor.is_executing:
            logger.info("Skipping snapshot: trade execution in progress")
            return None
        values = self.valuations()
        benchmark = self._store.get_benchmark(STRATEGY)
        snapshot = PerformanceSnapshot(
            timestamp=self._clock(),
            values=values,
            benchmark_value=benchmark["current_value"] if benchmark else 100.0,
        )
        try:
            self._store.insert_performance_snapshot(snapshot)
        except PersistenceConflict:
            logger.debug("Snapshot at %s already recorded", snapshot.timestamp.isoformat())
            return None
        return snapshot
