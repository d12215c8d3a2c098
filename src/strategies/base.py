"""
Decision provider contract and registry.

A provider turns (market data, portfolio state) into a loosely-typed payload:

    {"action": "BUY" | "SELL" | "HOLD", "asset": ..., "amount": ...,
     "reasoning": ..., "confidence": ..., "profit_target": ...,
     "stop_loss": ..., "invalidation_condition": ..., "risk_usd": ...,
     "usage": {"prompt_tokens": ..., "completion_tokens": ...}, "cost": ...}

The engine validates the payload into a decision variant; providers do not
need to be trusted. External providers plug in with ``register_provider``.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence

from arena_core.contracts import MarketSnapshot, PortfolioState


class DecisionProvider(Protocol):
    name: str

    def make_decision(
        self,
        market_data: Sequence[MarketSnapshot],
        portfolio: PortfolioState,
        trader_id: int | None = None,
    ) -> Mapping[str, Any]:
        ...


ProviderFactory = Callable[[str | None], DecisionProvider]

_REGISTRY: dict[str, ProviderFactory] = {}


def register_provider(name: str, factory: ProviderFactory | None = None):
    """Register ``factory(model) -> DecisionProvider`` under ``name``.

    Usable directly or as a class decorator:

        @register_provider("momentum")
        class Momentum: ...
    """
    key = name.lower()

    def _register(f: ProviderFactory) -> ProviderFactory:
        _REGISTRY[key] = f
        return f

    if factory is not None:
        return _register(factory)
    return _register


def available_providers() -> list[str]:
    return sorted(_REGISTRY)


def get_decision_provider(name: str, model: str | None = None) -> DecisionProvider:
    """Build the provider registered under ``name``. Raises KeyError if unknown."""
    try:
        factory = _REGISTRY[name.lower()]
    except KeyError:
        raise KeyError(
            f"Unknown decision provider {name!r} (available: {', '.join(available_providers())})"
        ) from None
    return factory(model)


def hold(reasoning: str, confidence: float | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"action": "HOLD", "reasoning": reasoning}
    if confidence is not None:
        payload["confidence"] = confidence
    return payload
