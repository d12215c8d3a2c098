"""
Performance metrics: per-trader scoring over ledger rows.

All functions are pure: they take trader/trade/position rows and return a
number. ``TraderMetrics`` bundles them; ``summarize`` ranks the roster.

Conventions:
    - Returns and drawdowns are in percent.
    - Sharpe uses per-trade return (pnl / total_value) with a zero
      risk-free rate and population standard deviation.
    - Profit factor is inf when there is profit and no loss.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from arena_core.contracts import Position, Trade, Trader, TradeSide
from arena_core.portfolio import trader_valuation

# Below this age, trades-per-day is too noisy to report.
MIN_ACTIVE_DAYS = 0.01


def sharpe_ratio(trades: Sequence[Trade]) -> float:
    """Needs at least two closing trades; BUY rows carry no P&L and are ignored."""
    returns = [
        t.pnl / t.total_value * 100
        for t in trades
        if t.pnl is not None and t.total_value
    ]
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return mean / std


def total_return_pct(trader: Trader, positions: Iterable[Position]) -> float:
    """Return on total account value (cash + open positions), not cash alone."""
    if trader.initial_balance == 0:
        return 0.0
    value = trader_valuation(trader, positions)
    return (value - trader.initial_balance) / trader.initial_balance * 100


def win_rate(trader: Trader) -> float:
    decided = trader.winning_trades + trader.losing_trades
    if decided == 0:
        return 0.0
    return trader.winning_trades / decided * 100


def avg_holding_hours(closed_positions: Iterable[Position]) -> float:
    hours = [
        (p.updated_at - p.opened_at).total_seconds() / 3600
        for p in closed_positions
        if not p.is_active and p.opened_at is not None and p.updated_at is not None
    ]
    if not hours:
        return 0.0
    return sum(hours) / len(hours)


def trade_frequency(trader: Trader, now: datetime | None = None) -> float:
    """Closing trades per day since the trader was created."""
    if trader.total_trades == 0 or trader.created_at is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    days = (now - trader.created_at).total_seconds() / 86_400
    if days < MIN_ACTIVE_DAYS:
        return 0.0
    return trader.total_trades / days


def avg_position_size(trades: Iterable[Trade]) -> float:
    sizes = [t.total_value for t in trades if t.side is TradeSide.BUY]
    if not sizes:
        return 0.0
    return sum(sizes) / len(sizes)


def profit_factor(trades: Iterable[Trade]) -> float:
    gross_profit = 0.0
    gross_loss = 0.0
    for t in trades:
        if t.pnl is None:
            continue
        if t.pnl > 0:
            gross_profit += t.pnl
        elif t.pnl < 0:
            gross_loss += -t.pnl
    if gross_loss == 0:
        return math.inf if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def max_drawdown_pct(initial_balance: float, trades: Sequence[Trade]) -> float:
    """Largest peak-to-trough decline of the balance rebuilt from realized P&L."""
    balance = initial_balance
    peak = balance
    worst = 0.0
    for t in sorted(trades, key=lambda t: t.executed_at):
        if t.pnl is None:
            continue
        balance += t.pnl
        peak = max(peak, balance)
        if peak > 0:
            worst = max(worst, (peak - balance) / peak * 100)
    return worst


@dataclass(frozen=True)
class TraderMetrics:
    trader: str
    total_value: float
    total_return_pct: float
    sharpe_ratio: float
    win_rate: float
    avg_holding_hours: float
    trade_frequency: float
    avg_position_size: float
    max_drawdown_pct: float
    profit_factor: float


def compute_trader_metrics(
    trader: Trader,
    trades: Sequence[Trade],
    active_positions: Sequence[Position],
    closed_positions: Sequence[Position],
    now: datetime | None = None,
) -> TraderMetrics:
    return TraderMetrics(
        trader=trader.name,
        total_value=trader_valuation(trader, active_positions),
        total_return_pct=total_return_pct(trader, active_positions),
        sharpe_ratio=sharpe_ratio(trades),
        win_rate=win_rate(trader),
        avg_holding_hours=avg_holding_hours(closed_positions),
        trade_frequency=trade_frequency(trader, now),
        avg_position_size=avg_position_size(trades),
        max_drawdown_pct=max_drawdown_pct(trader.initial_balance, trades),
        profit_factor=profit_factor(trades),
    )


@dataclass(frozen=True)
class ExperimentSummary:
    best: TraderMetrics | None
    worst: TraderMetrics | None
    total_trades: int
    total_calls: int
    total_costs: float


def summarize(traders: Sequence[Trader], metrics: Sequence[TraderMetrics]) -> ExperimentSummary:
    ranked = sorted(metrics, key=lambda m: m.total_return_pct, reverse=True)
    return ExperimentSummary(
        best=ranked[0] if ranked else None,
        worst=ranked[-1] if ranked else None,
        total_trades=sum(t.total_trades for t in traders),
        total_calls=sum(t.call_count for t in traders),
        total_costs=sum(t.total_costs for t in traders),
    )
