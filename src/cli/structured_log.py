"""
Structured JSON event logger for the trading engine.

Emits one JSON object per line to stderr so a log aggregator can follow
cycles, decisions and trades without parsing human-readable text.

Optional webhook: when configured, alert-worthy events (trade_executed,
order_rejected, exit_triggered, engine_halted, error) are POSTed to the URL.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("arena.events")


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    _ALERT_EVENTS = frozenset({
        "trade_executed",
        "order_rejected",
        "exit_triggered",
        "engine_halted",
        "error",
    })

    def __init__(
        self,
        experiment: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._experiment = experiment
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "experiment": self._experiment,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in self._ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record, default=str).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def cycle_start(self, cycle: int, assets: list[str], strategies: list[str]) -> dict:
        return self._emit("cycle_start", cycle=cycle, assets=assets, strategies=strategies)

    def decision_made(self, trader: str, action: str, asset: str | None, amount: float | None) -> dict:
        return self._emit("decision_made", trader=trader, action=action, asset=asset, amount=amount)

    def trade_executed(self, trader: str, side: str, asset: str, quantity: float, price: float) -> dict:
        return self._emit(
            "trade_executed",
            trader=trader,
            side=side,
            asset=asset,
            quantity=quantity,
            price=price,
        )

    def order_rejected(self, trader: str, reason: str) -> dict:
        return self._emit("order_rejected", trader=trader, reason=reason)

    def exit_triggered(self, trader: str, asset: str, reason: str, price: float) -> dict:
        return self._emit("exit_triggered", trader=trader, asset=asset, reason=reason, price=price)

    def snapshot_skipped(self, reason: str) -> dict:
        return self._emit("snapshot_skipped", reason=reason)

    def cycle_complete(self, cycle: int, decisions: int, trades: int, exits: int) -> dict:
        return self._emit(
            "cycle_complete",
            cycle=cycle,
            decisions=decisions,
            trades=trades,
            exits=exits,
        )

    def engine_halted(self, reason: str) -> dict:
        return self._emit("engine_halted", reason=reason)

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)

    def shutdown(self, cycles: int) -> dict:
        return self._emit("shutdown", cycles=cycles)
