"""Tests for structured JSON event logger."""

import io
import json

import pytest

from cli.structured_log import StructuredEventLogger


@pytest.fixture
def buf() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(buf: io.StringIO) -> StructuredEventLogger:
    return StructuredEventLogger("arena-test", enabled=True, stream=buf)


def _last(buf: io.StringIO) -> dict:
    return json.loads(buf.getvalue().strip().split("\n")[-1])


class TestEmit:
    """Basic event emission and format."""

    def test_cycle_start_json(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.cycle_start(cycle=1, assets=["BTC", "ETH"], strategies=["momentum"])
        record = _last(buf)
        assert record["event"] == "cycle_start"
        assert record["experiment"] == "arena-test"
        assert record["cycle"] == 1
        assert record["assets"] == ["BTC", "ETH"]
        assert "ts" in record

    def test_decision_made(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.decision_made(trader="Alpha", action="BUY", asset="BTC", amount=25.0)
        record = _last(buf)
        assert record["event"] == "decision_made"
        assert record["trader"] == "Alpha"
        assert record["action"] == "BUY"
        assert record["amount"] == 25.0

    def test_trade_executed(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.trade_executed(trader="Alpha", side="SELL", asset="ETH", quantity=0.01, price=3_100.0)
        record = _last(buf)
        assert record["event"] == "trade_executed"
        assert record["side"] == "SELL"
        assert record["quantity"] == 0.01
        assert record["price"] == 3_100.0

    def test_order_rejected(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.order_rejected(trader="Beta", reason="Beta has 10.00, needs 50.00")
        record = _last(buf)
        assert record["event"] == "order_rejected"
        assert record["reason"] == "Beta has 10.00, needs 50.00"

    def test_exit_triggered(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.exit_triggered(trader="Alpha", asset="BTC", reason="stop hit", price=47_000.0)
        record = _last(buf)
        assert record["event"] == "exit_triggered"
        assert record["reason"] == "stop hit"

    def test_snapshot_skipped(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.snapshot_skipped(reason="trade execution in progress")
        assert _last(buf)["event"] == "snapshot_skipped"

    def test_cycle_complete(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.cycle_complete(cycle=3, decisions=3, trades=1, exits=0)
        record = _last(buf)
        assert record["event"] == "cycle_complete"
        assert record["decisions"] == 3
        assert record["trades"] == 1

    def test_engine_halted(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.engine_halted(reason="running flag cleared")
        assert _last(buf)["reason"] == "running flag cleared"

    def test_error_event(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.error(message="DB locked", detail="OperationalError")
        record = _last(buf)
        assert record["event"] == "error"
        assert record["message"] == "DB locked"
        assert record["detail"] == "OperationalError"

    def test_shutdown(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.shutdown(cycles=42)
        record = _last(buf)
        assert record["event"] == "shutdown"
        assert record["cycles"] == 42


class TestDisabled:
    """When structured_logs=False, nothing is written to stream."""

    def test_no_output_when_disabled(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("arena-test", enabled=False, stream=buf)
        logger.cycle_start(cycle=1, assets=["BTC"], strategies=[])
        logger.decision_made(trader="Alpha", action="HOLD", asset=None, amount=None)
        logger.shutdown(cycles=1)
        assert buf.getvalue() == ""


class TestMultipleEvents:
    """Multiple events produce multiple JSON lines."""

    def test_newline_delimited(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.cycle_start(cycle=1, assets=[], strategies=[])
        logger.cycle_complete(cycle=1, decisions=0, trades=0, exits=0)
        lines = buf.getvalue().strip().split("\n")
        assert len(lines) == 2
        assert json.loads(lines[0])["event"] == "cycle_start"
        assert json.loads(lines[1])["event"] == "cycle_complete"


class TestWebhook:
    """Alert events go to the webhook; routine events do not."""

    def test_alert_events_posted(self, buf: io.StringIO, monkeypatch: pytest.MonkeyPatch) -> None:
        posted = []
        logger = StructuredEventLogger("arena-test", stream=buf, webhook_url="https://hooks.example.com/x")
        monkeypatch.setattr(logger, "_post_webhook", posted.append)

        logger.cycle_start(cycle=1, assets=[], strategies=[])
        logger.trade_executed(trader="Alpha", side="BUY", asset="BTC", quantity=0.001, price=50_000.0)
        logger.engine_halted(reason="running flag cleared")

        assert [r["event"] for r in posted] == ["trade_executed", "engine_halted"]

    def test_webhook_failure_is_logged_not_raised(self, buf: io.StringIO, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(*args, **kwargs):
            raise OSError("connection refused")

        monkeypatch.setattr("cli.structured_log.urllib.request.urlopen", boom)
        logger = StructuredEventLogger("arena-test", stream=buf, webhook_url="https://hooks.example.com/x")
        record = logger.error(message="x")
        assert record["event"] == "error"


class TestReturnValue:
    """Each method returns the record dict for testability."""

    def test_returns_record(self, logger: StructuredEventLogger) -> None:
        record = logger.cycle_start(cycle=7, assets=["BTC"], strategies=["hold"])
        assert isinstance(record, dict)
        assert record["event"] == "cycle_start"
        assert record["cycle"] == 7
