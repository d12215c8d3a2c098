"""
Structured journal: append-only JSON lines of decisions, trades and forced exits.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from arena_core.contracts import Trade


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def decision(self, trader: str, action: str, reasoning: str, executed: bool, **extra: Any) -> None:
        self._write(
            "decision",
            {"trader": trader, "action": action, "reasoning": reasoning, "executed": executed, **extra},
        )

    def trade(self, trader: str, trade: Trade, **extra: Any) -> None:
        self._write(
            "trade",
            {
                "trader": trader,
                "side": trade.side,
                "asset": trade.asset,
                "price": trade.price,
                "quantity": trade.quantity,
                "total_value": trade.total_value,
                "fee": trade.fee,
                "slippage": trade.slippage,
                "pnl": trade.pnl,
                "reasoning": trade.reasoning,
                "is_paper": trade.is_paper,
                **extra,
            },
        )

    def exit(self, trader: str, asset: str, reason: str, price: float, pnl: float | None, **extra: Any) -> None:
        self._write("exit", {"trader": trader, "asset": asset, "reason": reason, "price": price, "pnl": pnl, **extra})
