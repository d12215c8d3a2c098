"""
Data contracts for arena-core: Trader, Position, Trade, DecisionRecord,
MarketSnapshot, PortfolioState.

arena-core consumes market snapshots and ledger rows and produces cost
breakdowns, decision variants and valuations. No I/O; these are plain
dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Quantities at or below this are floating-point residue, not holdings.
DUST_EPSILON = 1e-8

# Stop-loss placed below entry when the caller supplies none.
DEFAULT_STOP_LOSS_PCT = 0.05


class Action(str, Enum):
    """Action proposed by a decision provider."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class TradeSide(str, Enum):
    """Side of an executed trade."""

    BUY = "BUY"
    SELL = "SELL"


class ExitReason(str, Enum):
    """Why the risk sweep forced a position closed."""

    TARGET_HIT = "target hit"
    STOP_HIT = "stop hit"


@dataclass
class Trader:
    """One competing strategy and its lifetime aggregates."""

    id: int
    name: str
    provider: str
    initial_balance: float
    current_balance: float
    total_pnl: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_api_cost: float = 0.0
    total_trading_fees: float = 0.0
    total_slippage_cost: float = 0.0
    call_count: int = 0
    total_tokens: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_costs(self) -> float:
        return self.total_api_cost + self.total_trading_fees + self.total_slippage_cost


@dataclass
class ExitPlan:
    """Exit plan attached to a BUY: price levels and the thesis killer."""

    profit_target: float | None = None
    stop_loss: float | None = None
    invalidation_condition: str | None = None
    confidence: float | None = None


@dataclass
class Position:
    """Holding of one asset by one trader. At most one active per (trader, asset)."""

    trader_id: int
    asset: str
    quantity: float
    entry_price: float  # effective price, costs folded in
    current_price: float
    invested_value: float
    current_value: float
    unrealized_pnl: float = 0.0
    pnl_pct: float = 0.0
    realized_pnl: float = 0.0
    stop_loss: float | None = None
    profit_target: float | None = None
    invalidation_condition: str | None = None
    confidence: float | None = None
    is_active: bool = True
    opened_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    def is_dust(self) -> bool:
        return self.quantity <= DUST_EPSILON


@dataclass(frozen=True)
class Trade:
    """
    Immutable record of an executed order.

    BUY:  gross_amount / net_amount are units before / after costs,
          total_value is the gross investment in quote currency.
    SELL: gross_amount == net_amount == units sold,
          total_value is the net proceeds.
    fee and slippage are always in quote currency.
    """

    trader_id: int
    side: TradeSide
    asset: str
    price: float
    quantity: float
    gross_amount: float
    net_amount: float
    total_value: float
    fee: float
    slippage: float
    reasoning: str
    executed_at: datetime
    pnl: float | None = None
    pnl_pct: float | None = None
    position_id: int | None = None
    is_paper: bool = True
    id: int | None = None


@dataclass
class DecisionRecord:
    """One strategy invocation. Only `executed` changes after creation."""

    trader_id: int
    action: Action
    reasoning: str
    created_at: datetime
    asset: str | None = None
    amount: float | None = None
    confidence: float | None = None
    profit_target: float | None = None
    stop_loss: float | None = None
    invalidation_condition: str | None = None
    risk_usd: float | None = None
    api_cost: float = 0.0
    token_count: int = 0
    executed: bool = False
    id: int | None = None


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time market data for one asset. Value contract only."""

    asset: str
    price: float
    volume_24h: float = 0.0
    price_change_24h: float = 0.0
    indicators: dict[str, float] = field(default_factory=dict)
    series: dict[str, list[float]] = field(default_factory=dict)


@dataclass(frozen=True)
class PositionState:
    """A position as presented to a decision provider."""

    asset: str
    quantity: float
    entry_price: float
    current_price: float
    pnl: float


@dataclass(frozen=True)
class PortfolioState:
    """Trader cash plus open positions, as seen by a decision provider."""

    balance: float
    positions: tuple[PositionState, ...] = ()

    @property
    def positions_value(self) -> float:
        return sum(p.current_price * p.quantity for p in self.positions)

    @property
    def total_value(self) -> float:
        return self.balance + self.positions_value

    def holds(self, asset: str) -> PositionState | None:
        for p in self.positions:
            if p.asset == asset:
                return p
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": self.balance,
            "positions": [
                {
                    "asset": p.asset,
                    "quantity": p.quantity,
                    "entry_price": p.entry_price,
                    "current_price": p.current_price,
                    "pnl": p.pnl,
                }
                for p in self.positions
            ],
        }


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Immutable valuation row written by the snapshot cycle."""

    timestamp: datetime
    values: dict[str, float]
    benchmark_value: float
