"""
Cost model: gross trade intent -> net amounts after fee and slippage.

Costs always work against the trader: a BUY receives fewer units than
investment / price, a SELL receives less than amount * price.

Slippage is drawn from an injectable ``SlippageSource`` so tests can pin it.
None of these functions raise; a missing configuration falls back to
``DEFAULT_COSTS``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Mapping, Protocol



@dataclass(frozen=True)
class CostConfiguration:
    """Global trading-cost settings. Defaults match the ``standard`` preset."""

    fee_rate: float = 0.001
    slippage_enabled: bool = True
    slippage_min: float = 0.0005
    slippage_max: float = 0.0015
    deduct_costs_from_balance: bool = True
    include_costs_in_pnl: bool = True


DEFAULT_COSTS = CostConfiguration()


@dataclass(frozen=True)
class ModelPricing:
    """USD per one million tokens."""

    input_price: float
    output_price: float


class SlippageSource(Protocol):
    """Draws a slippage fraction in [low, high]."""

    def draw(self, low: float, high: float) -> float: ...


class UniformSlippage:
    """Uniform draw between the configured bounds."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def draw(self, low: float, high: float) -> float:
        if high <= low:
            return low
        return self._rng.uniform(low, high)


class FixedSlippage:
    """Always the same fraction, regardless of bounds."""

    def __init__(self, fraction: float) -> None:
        self.fraction = fraction

    def draw(self, low: float, high: float) -> float:
        return self.fraction


_DEFAULT_SOURCE = UniformSlippage()


@dataclass(frozen=True)
class BuyCosts:
    """Units are in the base asset; effective_price in quote currency."""

    gross_amount: float
    fee: float
    slippage: float
    net_amount: float
    effective_price: float


@dataclass(frozen=True)
class SellCosts:
    """All values in quote currency."""

    gross_value: float
    fee: float
    slippage: float
    net_value: float
    effective_price: float


def fee(value: float, cfg: CostConfiguration | None = None) -> float:
    """Trading fee: value * fee_rate."""
    cfg = cfg or DEFAULT_COSTS
    return value * cfg.fee_rate


def slippage(
    value: float,
    cfg: CostConfiguration | None = None,
    source: SlippageSource | None = None,
) -> float:
    """Slippage: value * U(slippage_min, slippage_max), or 0 when disabled."""
    cfg = cfg or DEFAULT_COSTS
    if not cfg.slippage_enabled:
        return 0.0
    source = source or _DEFAULT_SOURCE
    return value * source.draw(cfg.slippage_min, cfg.slippage_max)


def net_buy(
    investment: float,
    price: float,
    cfg: CostConfiguration | None = None,
    source: SlippageSource | None = None,
) -> BuyCosts:
    """Units received for ``investment`` at ``price`` after fee and slippage.

    Fee and slippage are taken out of the unit amount, so
    net_amount <= investment / price and effective_price >= price.
    """
    if investment <= 0 or price <= 0:
        return BuyCosts(0.0, 0.0, 0.0, 0.0, max(price, 0.0))
    gross_amount = investment / price
    trading_fee = fee(gross_amount, cfg)
    slip = slippage(gross_amount, cfg, source)
    net_amount = gross_amount - trading_fee - slip
    if net_amount <= 0:
        return BuyCosts(gross_amount, trading_fee, slip, 0.0, float("inf"))
    return BuyCosts(
        gross_amount=gross_amount,
        fee=trading_fee,
        slippage=slip,
        net_amount=net_amount,
        effective_price=investment / net_amount,
    )


def net_sell(
    amount: float,
    price: float,
    cfg: CostConfiguration | None = None,
    source: SlippageSource | None = None,
) -> SellCosts:
    """Proceeds of selling ``amount`` units at ``price`` after fee and slippage."""
    if amount <= 0 or price <= 0:
        return SellCosts(0.0, 0.0, 0.0, 0.0, max(price, 0.0))
    gross_value = amount * price
    trading_fee = fee(gross_value, cfg)
    slip = slippage(gross_value, cfg, source)
    net_value = gross_value - trading_fee - slip
    return SellCosts(
        gross_value=gross_value,
        fee=trading_fee,
        slippage=slip,
        net_value=net_value,
        effective_price=net_value / amount,
    )


def usage_tokens(usage: Mapping[str, int | None] | None) -> tuple[int, int, int]:
    """(input, output, total) tokens from OpenAI- or Anthropic-style usage keys."""
    if not usage:
        return 0, 0, 0
    input_tokens = usage.get("input_tokens") or usage.get("prompt_tokens") or 0
    output_tokens = usage.get("output_tokens") or usage.get("completion_tokens") or 0
    total = usage.get("total_tokens") or (input_tokens + output_tokens)
    return int(input_tokens), int(output_tokens), int(total)


def usage_cost(usage: Mapping[str, int | None] | None, pricing: ModelPricing) -> float:
    """USD cost of one provider call from token usage and per-million pricing."""
    input_tokens, output_tokens, _ = usage_tokens(usage)
    return (input_tokens / 1_000_000) * pricing.input_price + (output_tokens / 1_000_000) * pricing.output_price
