"""
arena-core: pure trading-experiment domain layer.

No I/O, no network, no clocks beyond what callers pass in. Contracts,
the cost model, decision variants, valuation and performance metrics.
"""

from arena_core.contracts import (
    DUST_EPSILON,
    Action,
    ExitPlan,
    ExitReason,
    MarketSnapshot,
    PortfolioState,
    Position,
    Trade,
    Trader,
    TradeSide,
)
from arena_core.costs import (
    DEFAULT_COSTS,
    CostConfiguration,
    FixedSlippage,
    ModelPricing,
    UniformSlippage,
    net_buy,
    net_sell,
)
from arena_core.decisions import BuyDecision, HoldDecision, SellDecision, parse_decision

__all__ = [
    "Action",
    "BuyDecision",
    "CostConfiguration",
    "DEFAULT_COSTS",
    "DUST_EPSILON",
    "ExitPlan",
    "ExitReason",
    "FixedSlippage",
    "HoldDecision",
    "MarketSnapshot",
    "ModelPricing",
    "net_buy",
    "net_sell",
    "parse_decision",
    "PortfolioState",
    "Position",
    "SellDecision",
    "Trade",
    "Trader",
    "TradeSide",
    "UniformSlippage",
]
