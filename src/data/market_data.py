"""
Market data providers. The engine treats snapshots purely as a value contract.

Real exchange adapters are out of scope; these simulated providers back
paper runs and tests.
"""

from __future__ import annotations

import math
import random
from collections import deque
from typing import Iterable, Mapping, Protocol

from arena_core.contracts import MarketSnapshot
from arena_core.errors import ProviderError

DEFAULT_PRICES = {
    "BTC": 60_000.0,
    "ETH": 3_000.0,
    "SOL": 150.0,
    "BNB": 550.0,
    "XRP": 0.55,
    "DOGE": 0.15,
}


class MarketDataProvider(Protocol):
    """Protocol for market data. get_all may raise ProviderError."""

    def get_all(self, assets: Iterable[str]) -> list[MarketSnapshot]:
        ...

    def get_price(self, asset: str) -> float:
        ...


def _sma(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rsi(values: list[float], period: int = 14) -> float:
    """Simple-average RSI over the last ``period`` changes; 50 when flat or short."""
    if len(values) < 2:
        return 50.0
    window = values[-(period + 1):]
    gains = losses = 0.0
    for prev, cur in zip(window, window[1:]):
        delta = cur - prev
        if delta > 0:
            gains += delta
        else:
            losses -= delta
    if gains + losses == 0:
        return 50.0
    if losses == 0:
        return 100.0
    rs = gains / losses
    return 100.0 - 100.0 / (1.0 + rs)


def _snapshot(asset: str, history: list[float], volume: float, lookback: int) -> MarketSnapshot:
    price = history[-1]
    ref = history[-(lookback + 1)] if len(history) > lookback else history[0]
    change = (price - ref) / ref * 100 if ref else 0.0
    return MarketSnapshot(
        asset=asset,
        price=price,
        volume_24h=volume,
        price_change_24h=change,
        indicators={
            "sma": _sma(history[-lookback:]),
            "rsi": _rsi(history),
        },
        series={"price": list(history[-lookback:])},
    )


class StaticMarketData:
    """Fixed prices; tests move them with set_price."""

    def __init__(self, prices: Mapping[str, float] | None = None, *, volume: float = 0.0) -> None:
        self._prices: dict[str, float] = {k.upper(): float(v) for k, v in (prices or DEFAULT_PRICES).items()}
        self._history: dict[str, list[float]] = {k: [v] for k, v in self._prices.items()}
        self._volume = volume

    def set_price(self, asset: str, price: float) -> None:
        asset = asset.upper()
        self._prices[asset] = float(price)
        self._history.setdefault(asset, []).append(float(price))

    def get_price(self, asset: str) -> float:
        try:
            return self._prices[asset.upper()]
        except KeyError as exc:
            raise ProviderError(f"No price for {asset}") from exc

    def get_all(self, assets: Iterable[str]) -> list[MarketSnapshot]:
        out = []
        for asset in assets:
            asset = asset.upper()
            if asset not in self._prices:
                raise ProviderError(f"No price for {asset}")
            out.append(_snapshot(asset, self._history[asset], self._volume, lookback=24))
        return out


class RandomWalkMarketData:
    """
    Seeded Gaussian walk. Each get_all call advances every requested asset
    one step; 24h change is measured against ``lookback`` steps ago.
    """

    def __init__(
        self,
        initial_prices: Mapping[str, float] | None = None,
        *,
        seed: int | None = None,
        volatility: float = 0.01,
        lookback: int = 24,
    ) -> None:
        self._rng = random.Random(seed)
        self._volatility = volatility
        self._lookback = lookback
        start = initial_prices or DEFAULT_PRICES
        self._history: dict[str, deque[float]] = {
            k.upper(): deque([float(v)], maxlen=lookback * 4) for k, v in start.items()
        }
        self._volume: dict[str, float] = {k: hist[0] * 1_000 for k, hist in self._history.items()}

    def _step(self, asset: str) -> None:
        hist = self._history[asset]
        shock = self._rng.gauss(0.0, self._volatility)
        hist.append(max(hist[-1] * math.exp(shock), 1e-9))
        self._volume[asset] = hist[-1] * self._rng.uniform(500, 1_500)

    def get_price(self, asset: str) -> float:
        hist = self._history.get(asset.upper())
        if not hist:
            raise ProviderError(f"No price for {asset}")
        return hist[-1]

    def get_all(self, assets: Iterable[str]) -> list[MarketSnapshot]:
        out = []
        for asset in assets:
            asset = asset.upper()
            if asset not in self._history:
                raise ProviderError(f"Unknown asset {asset}")
            self._step(asset)
            out.append(_snapshot(asset, list(self._history[asset]), self._volume[asset], self._lookback))
        return out
