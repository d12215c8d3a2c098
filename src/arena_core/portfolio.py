"""Portfolio valuation: ledger rows + prices -> PortfolioState / total value."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from arena_core.contracts import Position, PortfolioState, PositionState, Trader


def build_portfolio_state(
    balance: float,
    positions: Iterable[Position],
    prices: Mapping[str, float],
    price_lookup: Callable[[str], float] | None = None,
) -> PortfolioState:
    """Cash plus non-dust positions marked at the given prices.

    Assets missing from ``prices`` are priced through ``price_lookup`` when
    given, else at the position's last stored price.
    """
    states = []
    for pos in positions:
        if not pos.is_active or pos.is_dust():
            continue
        if pos.asset in prices:
            current = prices[pos.asset]
        elif price_lookup is not None:
            current = price_lookup(pos.asset)
        else:
            current = pos.current_price
        states.append(
            PositionState(
                asset=pos.asset,
                quantity=pos.quantity,
                entry_price=pos.entry_price,
                current_price=current,
                pnl=(current - pos.entry_price) * pos.quantity,
            )
        )
    return PortfolioState(balance=balance, positions=tuple(states))


def trader_valuation(trader: Trader, positions: Iterable[Position]) -> float:
    """Balance plus stored value of the trader's active non-dust positions."""
    value = trader.current_balance
    for pos in positions:
        if pos.trader_id == trader.id and pos.is_active and not pos.is_dust():
            value += pos.current_price * pos.quantity
    return value
