"""
Decision providers: contract, registry, and the built-in rule-based strategies.
Importing the package registers momentum, mean_reversion and hold.
"""

from strategies.base import (
    DecisionProvider,
    available_providers,
    get_decision_provider,
    register_provider,
)
from strategies.hold import Hold
from strategies.mean_reversion import MeanReversion
from strategies.momentum import Momentum

__all__ = [
    "available_providers",
    "DecisionProvider",
    "get_decision_provider",
    "Hold",
    "MeanReversion",
    "Momentum",
    "register_provider",
]
