"""
Engine: cycle scheduler, performance snapshotter, buy-and-hold benchmark,
and the assembly that wires them from an AppConfig.
"""

from engine.assembly import Engine, build_engine, build_market_data
from engine.benchmark import BenchmarkPerformance, BuyAndHoldBenchmark
from engine.scheduler import CycleReport, CycleScheduler, DecisionOutcome
from engine.snapshotter import PerformanceSnapshotter

__all__ = [
    "BenchmarkPerformance",
    "build_engine",
    "build_market_data",
    "BuyAndHoldBenchmark",
    "CycleReport",
    "CycleScheduler",
    "DecisionOutcome",
    "Engine",
    "PerformanceSnapshotter",
]
