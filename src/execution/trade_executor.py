"""
Trade executor: validated BUY/SELL against the ledger and trader balance.

Position lifecycle per (trader, asset): NONE -> OPEN -> (PARTIAL)* -> CLOSED.
A single execution lock is held for the whole of either operation so the
snapshot cycle never values a half-written ledger. It guards nothing else.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from arena_core.contracts import (
    DEFAULT_STOP_LOSS_PCT,
    DUST_EPSILON,
    ExitPlan,
    Position,
    Trade,
    Trader,
    TradeSide,
)
from arena_core.costs import SlippageSource, UniformSlippage, net_buy, net_sell
from arena_core.errors import (
    InsufficientBalance,
    InvalidOrder,
    PersistenceConflict,
    PositionExists,
    PositionNotFound,
    TraderNotFound,
)
from config.cost_settings import DEFAULT_COSTS, CostConfiguration, CostSettingsCache
from data.ledger_store import LedgerStore

logger = logging.getLogger("arena.executor")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TradeExecutor:
    """
    Validate and perform orders for any trader. One instance per engine.

    ``price_source`` is consulted only when the caller does not pass a price.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        cost_settings: CostSettingsCache | None = None,
        price_source: Callable[[str], float] | None = None,
        slippage_source: SlippageSource | None = None,
        paper_mode: bool = True,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._store = store
        self._cost_settings = cost_settings
        self._price_source = price_source
        self._slippage = slippage_source or UniformSlippage()
        self._clock = clock
        self.paper_mode = paper_mode
        self._lock = threading.Lock()

    @property
    def is_executing(self) -> bool:
        """True while a BUY or SELL is mid-flight."""
        return self._lock.locked()

    def _costs(self) -> CostConfiguration:
        if self._cost_settings is None:
            return DEFAULT_COSTS
        return self._cost_settings.get()

    def _price(self, asset: str, price: float | None) -> float:
        if price is None:
            if self._price_source is None:
                raise InvalidOrder(f"No price supplied for {asset} and no price source configured")
            price = self._price_source(asset)
        if price <= 0:
            raise InvalidOrder(f"Price for {asset} must be positive, got {price}")
        return price

    def _trader(self, trader_id: int) -> Trader:
        trader = self._store.get_trader(trader_id)
        if trader is None:
            raise TraderNotFound(f"Trader {trader_id} not found")
        return trader

    def execute_buy(
        self,
        trader_id: int,
        asset: str,
        investment: float,
        reasoning: str,
        exit_plan: ExitPlan | None = None,
        *,
        price: float | None = None,
    ) -> Trade:
        """
        Open a position in ``asset`` with ``investment`` quote currency.

        The gross investment is debited; fee and slippage come out of the units
        received, so the entry price is the effective price. Stop-loss defaults
        to 5% below the market price.

        Raises PositionExists, InsufficientBalance, TraderNotFound or InvalidOrder
        without touching the ledger.
        """
        asset = asset.upper()
        exit_plan = exit_plan or ExitPlan()
        self._lock.acquire()
        try:
            if investment <= 0:
                raise InvalidOrder(f"Investment must be positive, got {investment}")
            trader = self._trader(trader_id)
            if self._store.get_active_position(trader_id, asset) is not None:
                raise PositionExists(f"{trader.name} already holds an active position in {asset}")
            if trader.current_balance < investment:
                raise InsufficientBalance(
                    f"{trader.name} has {trader.current_balance:.2f}, needs {investment:.2f}"
                )
            market_price = self._price(asset, price)
            costs = net_buy(investment, market_price, self._costs(), self._slippage)
            if costs.net_amount <= 0:
                raise InvalidOrder(f"Costs consume the whole {investment:.2f} investment in {asset}")

            fee_usd = costs.fee * market_price
            slippage_usd = costs.slippage * market_price
            current_value = costs.net_amount * market_price
            stop_loss = exit_plan.stop_loss
            if stop_loss is None:
                stop_loss = market_price * (1 - DEFAULT_STOP_LOSS_PCT)
            now = self._clock()

            try:
                position = self._store.insert_position(
                    Position(
                        trader_id=trader_id,
                        asset=asset,
                        quantity=costs.net_amount,
                        entry_price=costs.effective_price,
                        current_price=market_price,
                        invested_value=investment,
                        current_value=current_value,
                        unrealized_pnl=current_value - investment,
                        pnl_pct=(current_value - investment) / investment * 100,
                        stop_loss=stop_loss,
                        profit_target=exit_plan.profit_target,
                        invalidation_condition=exit_plan.invalidation_condition,
                        confidence=exit_plan.confidence,
                        opened_at=now,
                        updated_at=now,
                    )
                )
            except PersistenceConflict as exc:
                raise PositionExists(str(exc)) from exc

            trade = Trade(
                trader_id=trader_id,
                side=TradeSide.BUY,
                asset=asset,
                price=market_price,
                quantity=costs.net_amount,
                gross_amount=costs.gross_amount,
                net_amount=costs.net_amount,
                total_value=investment,
                fee=fee_usd,
                slippage=slippage_usd,
                reasoning=reasoning,
                executed_at=now,
                position_id=position.id,
                is_paper=self.paper_mode,
            )
            trade_id = self._store.insert_trade(trade)
            self._store.apply_trader_delta(
                trader_id,
                balance=-investment,
                fees=fee_usd,
                slippage=slippage_usd,
            )
            logger.info(
                "%s bought %.8f %s @ %.2f for %.2f (fee %.4f, slippage %.4f)",
                trader.name, costs.net_amount, asset, market_price, investment, fee_usd, slippage_usd,
            )
            return Trade(**{**trade.__dict__, "id": trade_id})
        finally:
            self._lock.release()

    def execute_sell(
        self,
        trader_id: int,
        asset: str,
        amount: float,
        reasoning: str,
        *,
        price: float | None = None,
    ) -> Trade:
        """
        Sell up to ``amount`` units of the active position in ``asset``.

        The amount is clamped to the held quantity. Realized P&L is measured
        against the liquidated share of the invested value; a remainder at or
        below the dust epsilon closes the position.

        Raises PositionNotFound, TraderNotFound or InvalidOrder.
        """
        asset = asset.upper()
        self._lock.acquire()
        try:
            if amount <= 0:
                raise InvalidOrder(f"Sell amount must be positive, got {amount}")
            trader = self._trader(trader_id)
            position = self._store.get_active_position(trader_id, asset)
            if position is None:
                raise PositionNotFound(f"{trader.name} has no active position in {asset}")
            market_price = self._price(asset, price)
            cfg = self._costs()

            sell_amount = min(amount, position.quantity)
            costs = net_sell(sell_amount, market_price, cfg, self._slippage)
            fraction = sell_amount / position.quantity
            invested_portion = fraction * position.invested_value
            proceeds = costs.net_value if cfg.include_costs_in_pnl else costs.gross_value
            pnl = proceeds - invested_portion
            pnl_pct = pnl / invested_portion * 100 if invested_portion else 0.0
            now = self._clock()

            trade = Trade(
                trader_id=trader_id,
                side=TradeSide.SELL,
                asset=asset,
                price=market_price,
                quantity=sell_amount,
                gross_amount=sell_amount,
                net_amount=sell_amount,
                total_value=costs.net_value,
                fee=costs.fee,
                slippage=costs.slippage,
                reasoning=reasoning,
                executed_at=now,
                pnl=pnl,
                pnl_pct=pnl_pct,
                position_id=position.id,
                is_paper=self.paper_mode,
            )
            trade_id = self._store.insert_trade(trade)

            remaining = position.quantity - sell_amount
            if remaining <= DUST_EPSILON:
                logger.info("Closing position %s (%s %s), remaining %.10f", position.id, trader.name, asset, remaining)
                self._store.update_position(
                    position.id,
                    is_active=False,
                    current_price=market_price,
                    current_value=0.0,
                    unrealized_pnl=0.0,
                    realized_pnl=position.realized_pnl + pnl,
                )
            else:
                # Single lot: the remainder keeps a proportional cost basis.
                left_invested = position.invested_value - invested_portion
                left_value = remaining * market_price
                self._store.update_position(
                    position.id,
                    quantity=remaining,
                    invested_value=left_invested,
                    current_price=market_price,
                    current_value=left_value,
                    unrealized_pnl=left_value - left_invested,
                    pnl_pct=(left_value - left_invested) / left_invested * 100 if left_invested else 0.0,
                    realized_pnl=position.realized_pnl + pnl,
                )
                logger.info("Partial sell %s %s, remaining %.8f", trader.name, asset, remaining)

            self._store.apply_trader_delta(
                trader_id,
                balance=costs.net_value,
                pnl=pnl,
                trades=1,
                wins=1 if pnl > 0 else 0,
                losses=1 if pnl < 0 else 0,
                fees=costs.fee,
                slippage=costs.slippage,
            )
            logger.info(
                "%s sold %.8f %s for %.2f (fee %.4f, slippage %.4f, P&L %.2f)",
                trader.name, sell_amount, asset, costs.net_value, costs.fee, costs.slippage, pnl,
            )
            return Trade(**{**trade.__dict__, "id": trade_id})
        finally:
            self._lock.release()
