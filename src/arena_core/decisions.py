"""
Decision variants: loosely-typed provider payload -> BUY | SELL | HOLD.

Each variant carries only the fields it needs, so the executor never has to
second-guess optional values at call sites. ``parse_decision`` raises
``DecisionPayloadError`` on anything it cannot turn into a valid variant;
``decision_or_hold`` is the boundary helper that degrades such failures to
HOLD with the error text as reasoning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from arena_core.contracts import Action, ExitPlan
from arena_core.errors import DecisionPayloadError


@dataclass(frozen=True)
class DecisionUsage:
    """Telemetry reported by a provider for one call."""

    tokens: dict[str, int] = field(default_factory=dict)
    cost: float | None = None


@dataclass(frozen=True)
class BuyDecision:
    asset: str
    amount: float  # quote currency to invest
    reasoning: str
    exit_plan: ExitPlan = field(default_factory=ExitPlan)
    risk_usd: float | None = None
    usage: DecisionUsage = field(default_factory=DecisionUsage)

    action = Action.BUY

    @property
    def confidence(self) -> float | None:
        return self.exit_plan.confidence


@dataclass(frozen=True)
class SellDecision:
    asset: str
    amount: float  # base-asset units to sell
    reasoning: str
    confidence: float | None = None
    usage: DecisionUsage = field(default_factory=DecisionUsage)

    action = Action.SELL


@dataclass(frozen=True)
class HoldDecision:
    reasoning: str
    confidence: float | None = None
    usage: DecisionUsage = field(default_factory=DecisionUsage)

    action = Action.HOLD


Decision = Union[BuyDecision, SellDecision, HoldDecision]


def _optional_float(payload: Mapping[str, Any], key: str) -> float | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise DecisionPayloadError(f"{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DecisionPayloadError(f"{key} must be a number, got {value!r}") from exc


def _parse_usage(payload: Mapping[str, Any]) -> DecisionUsage:
    raw = payload.get("usage") or {}
    if not isinstance(raw, Mapping):
        raise DecisionPayloadError(f"usage must be a mapping, got {type(raw).__name__}")
    tokens = {str(k): int(v) for k, v in raw.items() if isinstance(v, (int, float)) and not isinstance(v, bool)}
    cost = _optional_float(payload, "calculated_cost")
    if cost is None:
        cost = _optional_float(payload, "cost")
    return DecisionUsage(tokens=tokens, cost=cost)


def _required_asset(payload: Mapping[str, Any], action: Action) -> str:
    asset = payload.get("asset") or payload.get("coin")
    if not isinstance(asset, str) or not asset.strip():
        raise DecisionPayloadError(f"{action.value} decision requires an asset")
    return asset.strip().upper()


def _required_amount(payload: Mapping[str, Any], action: Action) -> float:
    amount = _optional_float(payload, "amount")
    if amount is None or amount <= 0:
        raise DecisionPayloadError(f"{action.value} decision requires a positive amount")
    return amount


def parse_decision(payload: Mapping[str, Any]) -> Decision:
    """Validate a provider payload into a decision variant."""
    if not isinstance(payload, Mapping):
        raise DecisionPayloadError(f"Decision payload must be a mapping, got {type(payload).__name__}")

    raw_action = str(payload.get("action", "")).strip().upper()
    try:
        action = Action(raw_action)
    except ValueError as exc:
        raise DecisionPayloadError(f"Unknown action {payload.get('action')!r}") from exc

    reasoning = str(payload.get("reasoning") or "")
    confidence = _optional_float(payload, "confidence")
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        raise DecisionPayloadError(f"confidence must be within [0, 1], got {confidence}")
    usage = _parse_usage(payload)

    if action is Action.HOLD:
        return HoldDecision(reasoning=reasoning, confidence=confidence, usage=usage)

    asset = _required_asset(payload, action)
    amount = _required_amount(payload, action)

    if action is Action.SELL:
        return SellDecision(asset=asset, amount=amount, reasoning=reasoning, confidence=confidence, usage=usage)

    invalidation = payload.get("invalidation_condition")
    return BuyDecision(
        asset=asset,
        amount=amount,
        reasoning=reasoning,
        exit_plan=ExitPlan(
            profit_target=_optional_float(payload, "profit_target"),
            stop_loss=_optional_float(payload, "stop_loss"),
            invalidation_condition=str(invalidation) if invalidation else None,
            confidence=confidence,
        ),
        risk_usd=_optional_float(payload, "risk_usd"),
        usage=usage,
    )


def decision_or_hold(payload: Any) -> Decision:
    """parse_decision, but a malformed payload becomes HOLD with the error as reasoning."""
    try:
        return parse_decision(payload)
    except DecisionPayloadError as exc:
        usage = DecisionUsage()
        if isinstance(payload, Mapping):
            try:
                usage = _parse_usage(payload)
            except DecisionPayloadError:
                pass
        return HoldDecision(reasoning=f"Rejected malformed decision: {exc}", usage=usage)
