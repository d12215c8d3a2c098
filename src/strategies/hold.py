"""Hold: never trades. Baseline for cost accounting."""

from strategies.base import hold, register_provider


@register_provider("hold")
class Hold:
    name = "hold"

    def __init__(self, model: str | None = None) -> None:
        self.model = model

    def make_decision(self, market_data, portfolio, trader_id=None):
        return hold("Holding by policy", confidence=1.0)
