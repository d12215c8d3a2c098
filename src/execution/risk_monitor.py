"""
Risk monitor: per-cycle sweep of every active position against its exit plan.

Profit target is checked before stop-loss, so a tick that crosses both
exits as a target hit. One position's failure never aborts the sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from arena_core.contracts import ExitReason, Position, Trade
from data.ledger_store import LedgerStore
from execution.trade_executor import TradeExecutor

logger = logging.getLogger("arena.risk")


@dataclass(frozen=True)
class ExitEvent:
    """A forced exit performed by the sweep."""

    trader_id: int
    asset: str
    reason: ExitReason
    price: float
    trade: Trade


@dataclass(frozen=True)
class SweepFailure:
    position_id: int | None
    asset: str
    error: str


class RiskMonitor:
    def __init__(
        self,
        store: LedgerStore,
        executor: TradeExecutor,
        price_source: Callable[[str], float] | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._price_source = price_source
        self.last_failures: list[SweepFailure] = []

    def _current_price(self, asset: str, prices: Mapping[str, float]) -> float:
        if asset in prices:
            return prices[asset]
        if self._price_source is None:
            raise LookupError(f"No price for {asset}")
        return self._price_source(asset)

    def _check(self, pos: Position, price: float) -> ExitEvent | None:
        if pos.profit_target is not None and price >= pos.profit_target:
            reason = ExitReason.TARGET_HIT
            note = f"Profit target reached at {price:.2f} (target {pos.profit_target:.2f})"
        elif pos.stop_loss is not None and price <= pos.stop_loss:
            reason = ExitReason.STOP_HIT
            note = f"Stop loss triggered at {price:.2f} (stop {pos.stop_loss:.2f})"
        else:
            value = price * pos.quantity
            pnl = (price - pos.entry_price) * pos.quantity
            self._store.update_position(
                pos.id,
                current_price=price,
                current_value=value,
                unrealized_pnl=pnl,
                pnl_pct=pnl / pos.invested_value * 100 if pos.invested_value else 0.0,
            )
            return None

        logger.info("%s for trader %s %s: %s", reason.value, pos.trader_id, pos.asset, note)
        trade = self._executor.execute_sell(pos.trader_id, pos.asset, pos.quantity, note, price=price)
        return ExitEvent(trader_id=pos.trader_id, asset=pos.asset, reason=reason, price=price, trade=trade)

    def sweep(self, prices: Mapping[str, float] | None = None) -> list[ExitEvent]:
        """Check every active position; return the exits taken.

        Prices come from ``prices`` first, then the price source.
        """
        prices = prices or {}
        exits: list[ExitEvent] = []
        failures: list[SweepFailure] = []
        for pos in self._store.list_active_positions():
            try:
                price = self._current_price(pos.asset, prices)
                event = self._check(pos, price)
            except Exception as exc:
                logger.error("Risk check failed for position %s (%s): %s", pos.id, pos.asset, exc)
                failures.append(SweepFailure(position_id=pos.id, asset=pos.asset, error=str(exc)))
                continue
            if event is not None:
                exits.append(event)
        self.last_failures = failures
        return exits
