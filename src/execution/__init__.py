"""
Execution: validated BUY/SELL against the ledger, and the per-cycle risk sweep.
Paper by default; trades carry the mode they were executed in.
"""

from execution.risk_monitor import ExitEvent, RiskMonitor, SweepFailure
from execution.trade_executor import TradeExecutor

__all__ = ["ExitEvent", "RiskMonitor", "SweepFailure", "TradeExecutor"]
