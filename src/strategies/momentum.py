"""
Momentum: buy the strongest 24h gainer, sell held assets that turn down.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from arena_core.contracts import MarketSnapshot, PortfolioState
from strategies.base import hold, register_provider


@register_provider("momentum")
class Momentum:
    name = "momentum"

    def __init__(
        self,
        model: str | None = None,
        *,
        buy_threshold_pct: float = 2.0,
        sell_threshold_pct: float = -2.0,
        allocation: float = 0.25,
        target_pct: float = 0.05,
        stop_pct: float = 0.03,
        min_order: float = 1.0,
    ) -> None:
        self.model = model
        self.buy_threshold_pct = buy_threshold_pct
        self.sell_threshold_pct = sell_threshold_pct
        self.allocation = allocation
        self.target_pct = target_pct
        self.stop_pct = stop_pct
        self.min_order = min_order

    def make_decision(
        self,
        market_data: Sequence[MarketSnapshot],
        portfolio: PortfolioState,
        trader_id: int | None = None,
    ) -> Mapping[str, Any]:
        for m in market_data:
            held = portfolio.holds(m.asset)
            if held is not None and m.price_change_24h <= self.sell_threshold_pct:
                return {
                    "action": "SELL",
                    "asset": m.asset,
                    "amount": held.quantity,
                    "reasoning": f"{m.asset} momentum reversed ({m.price_change_24h:+.2f}% 24h)",
                    "confidence": 0.6,
                }

        candidates = [
            m for m in market_data
            if portfolio.holds(m.asset) is None and m.price_change_24h >= self.buy_threshold_pct
        ]
        if not candidates:
            return hold("No asset with enough momentum")
        best = max(candidates, key=lambda m: m.price_change_24h)
        investment = portfolio.balance * self.allocation
        if investment < self.min_order:
            return hold(f"Balance {portfolio.balance:.2f} too small to open {best.asset}")
        return {
            "action": "BUY",
            "asset": best.asset,
            "amount": investment,
            "reasoning": f"{best.asset} up {best.price_change_24h:+.2f}% over 24h",
            "confidence": min(0.5 + best.price_change_24h / 20, 0.95),
            "profit_target": best.price * (1 + self.target_pct),
            "stop_loss": best.price * (1 - self.stop_pct),
            "invalidation_condition": f"{best.asset} 24h change turns negative",
            "risk_usd": investment * self.stop_pct,
        }
