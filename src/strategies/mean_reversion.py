"""
Mean reversion: buy sharp dips or oversold RSI, sell held rebounds.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from arena_core.contracts import MarketSnapshot, PortfolioState
from strategies.base import hold, register_provider


@register_provider("mean_reversion")
class MeanReversion:
    name = "mean_reversion"

    def __init__(
        self,
        model: str | None = None,
        *,
        dip_pct: float = -3.0,
        rebound_pct: float = 0.03,
        oversold_rsi: float = 30.0,
        overbought_rsi: float = 70.0,
        allocation: float = 0.2,
        min_order: float = 1.0,
    ) -> None:
        self.model = model
        self.dip_pct = dip_pct
        self.rebound_pct = rebound_pct
        self.oversold_rsi = oversold_rsi
        self.overbought_rsi = overbought_rsi
        self.allocation = allocation
        self.min_order = min_order

    def make_decision(
        self,
        market_data: Sequence[MarketSnapshot],
        portfolio: PortfolioState,
        trader_id: int | None = None,
    ) -> Mapping[str, Any]:
        for m in market_data:
            held = portfolio.holds(m.asset)
            if held is None:
                continue
            rsi = m.indicators.get("rsi", 50.0)
            if m.price >= held.entry_price * (1 + self.rebound_pct) or rsi >= self.overbought_rsi:
                return {
                    "action": "SELL",
                    "asset": m.asset,
                    "amount": held.quantity,
                    "reasoning": f"{m.asset} reverted (price {m.price:.2f}, RSI {rsi:.1f})",
                    "confidence": 0.55,
                }

        dips = [
            m for m in market_data
            if portfolio.holds(m.asset) is None
            and (m.price_change_24h <= self.dip_pct or m.indicators.get("rsi", 50.0) <= self.oversold_rsi)
        ]
        if not dips:
            return hold("Nothing stretched far enough from its mean")
        pick = min(dips, key=lambda m: m.price_change_24h)
        investment = portfolio.balance * self.allocation
        if investment < self.min_order:
            return hold(f"Balance {portfolio.balance:.2f} too small to open {pick.asset}")
        return {
            "action": "BUY",
            "asset": pick.asset,
            "amount": investment,
            "reasoning": f"{pick.asset} stretched {pick.price_change_24h:+.2f}% over 24h",
            "confidence": 0.5,
            "profit_target": pick.price * (1 + self.rebound_pct),
            "invalidation_condition": f"{pick.asset} keeps falling past the default stop",
        }
