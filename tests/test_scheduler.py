"""Tests for the cycle scheduler: decision cycle, snapshot cycle, lifecycle and failure isolation."""

import threading
from typing import Any

import pytest

from arena_core.contracts import Action, ExitPlan, ExitReason
from arena_core.errors import ProviderError
from config.cost_settings import CostPresets, ModelPricing
from data.market_data import StaticMarketData
from engine.benchmark import BuyAndHoldBenchmark
from engine.scheduler import CycleScheduler
from engine.snapshotter import PerformanceSnapshotter
from execution.risk_monitor import RiskMonitor


class ScriptedProvider:
    """Returns queued payloads (last one repeats) and records its inputs."""

    def __init__(self, *payloads: Any) -> None:
        self.name = "scripted"
        self._payloads = list(payloads) or [{"action": "HOLD", "reasoning": "idle"}]
        self.calls: list[tuple] = []

    def make_decision(self, market_data, portfolio, trader_id=None):
        self.calls.append((market_data, portfolio, trader_id))
        payload = self._payloads.pop(0) if len(self._payloads) > 1 else self._payloads[0]
        if isinstance(payload, Exception):
            raise payload
        return payload


class BrokenMarket(StaticMarketData):
    def get_all(self, assets):
        raise ProviderError("exchange unreachable")


def _scheduler(store, executor, market, providers: dict, **kwargs) -> CycleScheduler:
    kwargs.setdefault("enabled_strategies", list(providers))
    kwargs.setdefault("decision_interval_minutes", 60.0)
    kwargs.setdefault("snapshot_interval_seconds", 3600.0)
    kwargs.setdefault("call_timeout_seconds", 5.0)
    return CycleScheduler(
        store,
        executor,
        RiskMonitor(store, executor, price_source=market.get_price),
        PerformanceSnapshotter(store, executor),
        market,
        assets=["BTC", "ETH"],
        provider_factory=lambda name, model: providers[name],
        **kwargs,
    )


def test_buy_decision_executes_and_flips_flag(store, executor, market, trader) -> None:
    provider = ScriptedProvider({"action": "BUY", "asset": "BTC", "amount": 40, "reasoning": "trend",
                                 "profit_target": 60_000, "confidence": 0.8})
    sched = _scheduler(store, executor, market, {"momentum": provider})

    report = sched.run_decision_cycle(check_running_flag=False)

    assert report.cycle == 1
    assert len(report.decisions) == 1
    outcome = report.decisions[0]
    assert outcome.action is Action.BUY
    assert outcome.executed
    assert outcome.trade.asset == "BTC"
    decisions = store.list_decisions(trader.id)
    assert len(decisions) == 1
    assert decisions[0].executed
    assert decisions[0].profit_target == 60_000
    assert decisions[0].confidence == 0.8
    assert store.get_active_position(trader.id, "BTC").profit_target == 60_000
    sched.close()


def test_provider_sees_market_and_portfolio(store, executor, market, trader) -> None:
    executor.execute_buy(trader.id, "ETH", 30.0, "x", price=3_000.0)
    provider = ScriptedProvider()
    sched = _scheduler(store, executor, market, {"momentum": provider})

    sched.run_decision_cycle(check_running_flag=False)

    market_data, portfolio, trader_id = provider.calls[0]
    assert [m.asset for m in market_data] == ["BTC", "ETH"]
    assert trader_id == trader.id
    assert portfolio.balance == pytest.approx(70.0)
    assert portfolio.holds("ETH") is not None
    sched.close()


def test_cycle_persists_market_snapshot(store, executor, market, trader) -> None:
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()})
    sched.run_decision_cycle(check_running_flag=False)
    assert store.count_market_snapshots() == 2
    assert store.count_market_snapshots("BTC") == 1
    sched.close()


def test_halts_when_running_flag_cleared(store, executor, market, trader) -> None:
    provider = ScriptedProvider()
    sched = _scheduler(store, executor, market, {"momentum": provider})
    store.set_running_flag(False)

    report = sched.run_decision_cycle()

    assert report.halted
    assert provider.calls == []
    assert store.count_market_snapshots() == 0
    assert store.list_decisions() == []
    sched.close()


def test_runs_when_running_flag_set(store, executor, market, trader) -> None:
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()})
    store.set_running_flag(True)
    report = sched.run_decision_cycle()
    assert not report.halted
    assert len(report.decisions) == 1
    sched.close()


def test_provider_failure_becomes_hold(store, executor, market, trader, second_trader) -> None:
    failing = ScriptedProvider(RuntimeError("rate limited"))
    working = ScriptedProvider({"action": "BUY", "asset": "ETH", "amount": 20, "reasoning": "dip"})
    sched = _scheduler(store, executor, market, {"momentum": failing, "mean_reversion": working})

    report = sched.run_decision_cycle(check_running_flag=False)

    by_trader = {d.trader: d for d in report.decisions}
    assert by_trader["Alpha"].action is Action.HOLD
    assert "rate limited" in by_trader["Alpha"].reasoning
    assert not by_trader["Alpha"].executed
    assert by_trader["Beta"].executed
    assert store.list_decisions(trader.id)[0].action is Action.HOLD
    sched.close()


def test_malformed_payload_becomes_hold(store, executor, market, trader) -> None:
    provider = ScriptedProvider({"action": "BUY", "asset": "BTC", "reasoning": "no amount"})
    sched = _scheduler(store, executor, market, {"momentum": provider})

    report = sched.run_decision_cycle(check_running_flag=False)

    outcome = report.decisions[0]
    assert outcome.action is Action.HOLD
    assert outcome.reasoning.startswith("Rejected malformed decision")
    assert store.list_active_positions() == []
    sched.close()


def test_rejected_order_does_not_block_other_traders(store, executor, market, trader, second_trader) -> None:
    too_big = ScriptedProvider({"action": "BUY", "asset": "BTC", "amount": 500, "reasoning": "all in"})
    fine = ScriptedProvider({"action": "BUY", "asset": "BTC", "amount": 10, "reasoning": "small"})
    sched = _scheduler(store, executor, market, {"momentum": too_big, "mean_reversion": fine})

    report = sched.run_decision_cycle(check_running_flag=False)

    by_trader = {d.trader: d for d in report.decisions}
    assert not by_trader["Alpha"].executed
    assert "needs 500.00" in by_trader["Alpha"].error
    assert not store.list_decisions(trader.id)[0].executed
    assert by_trader["Beta"].executed
    assert store.get_trader(trader.id).current_balance == 100.0
    sched.close()


def test_sell_without_position_is_rejected(store, executor, market, trader) -> None:
    provider = ScriptedProvider({"action": "SELL", "asset": "BTC", "amount": 1, "reasoning": "exit"})
    sched = _scheduler(store, executor, market, {"momentum": provider})
    report = sched.run_decision_cycle(check_running_flag=False)
    assert report.decisions[0].error
    assert not report.decisions[0].executed
    sched.close()


def test_disabled_strategy_not_invoked(store, executor, market, trader, second_trader) -> None:
    a, b = ScriptedProvider(), ScriptedProvider()
    sched = _scheduler(store, executor, market, {"momentum": a, "mean_reversion": b},
                       enabled_strategies=["momentum"])
    sched.run_decision_cycle(check_running_flag=False)
    assert len(a.calls) == 1
    assert b.calls == []

    sched.set_enabled_strategies(["MEAN_REVERSION"])
    assert sched.enabled_strategies == ["mean_reversion"]
    sched.run_decision_cycle(check_running_flag=False)
    assert len(b.calls) == 1
    sched.close()


def test_reported_cost_debited_and_accrued(store, executor, market, trader) -> None:
    provider = ScriptedProvider({"action": "HOLD", "reasoning": "wait", "cost": 0.5,
                                 "usage": {"prompt_tokens": 1000, "completion_tokens": 200}})
    sched = _scheduler(store, executor, market, {"momentum": provider})

    sched.run_decision_cycle(check_running_flag=False)

    t = store.get_trader(trader.id)
    assert t.current_balance == pytest.approx(99.5)
    assert t.total_api_cost == pytest.approx(0.5)
    assert t.call_count == 1
    assert t.total_tokens == 1200
    assert store.list_decisions(trader.id)[0].api_cost == pytest.approx(0.5)
    sched.close()


def test_cost_not_deducted_when_disabled(store, executor, market, trader, cost_cache) -> None:
    cost_cache.update(deduct_costs_from_balance=False)
    provider = ScriptedProvider({"action": "HOLD", "reasoning": "wait", "cost": 0.5})
    sched = _scheduler(store, executor, market, {"momentum": provider}, cost_settings=cost_cache)

    sched.run_decision_cycle(check_running_flag=False)

    t = store.get_trader(trader.id)
    assert t.current_balance == 100.0
    assert t.total_api_cost == pytest.approx(0.5)
    sched.close()


def test_cost_debit_floors_balance_at_zero(store, executor, market) -> None:
    poor = store.create_trader("Poor", "momentum", 0.1)
    provider = ScriptedProvider({"action": "HOLD", "reasoning": "wait", "cost": 1.0})
    sched = _scheduler(store, executor, market, {"momentum": provider})
    sched.run_decision_cycle(check_running_flag=False)
    assert store.get_trader(poor.id).current_balance == 0.0
    sched.close()


def test_cost_from_token_pricing(store, executor, market, trader) -> None:
    presets = CostPresets(
        presets={},
        model_pricing={"model-x": ModelPricing(input_price=2.0, output_price=10.0)},
        fallback_pricing=ModelPricing(input_price=1.0, output_price=3.0),
    )
    provider = ScriptedProvider({"action": "HOLD", "reasoning": "wait",
                                 "usage": {"input_tokens": 1_000_000, "output_tokens": 100_000}})
    sched = _scheduler(store, executor, market, {"momentum": provider},
                       cost_presets=presets, selected_models={"momentum": "model-x"})

    sched.run_decision_cycle(check_running_flag=False)

    assert store.get_trader(trader.id).total_api_cost == pytest.approx(3.0)
    sched.close()


def test_risk_sweep_runs_before_decisions(store, executor, market, trader) -> None:
    executor.execute_buy(trader.id, "BTC", 50.0, "x", ExitPlan(profit_target=52_000.0), price=50_000.0)
    market.set_price("BTC", 53_000.0)
    provider = ScriptedProvider()
    sched = _scheduler(store, executor, market, {"momentum": provider})

    report = sched.run_decision_cycle(check_running_flag=False)

    assert [e.reason for e in report.exits] == [ExitReason.TARGET_HIT]
    _, portfolio, _ = provider.calls[0]
    assert portfolio.holds("BTC") is None
    sched.close()


def test_market_data_failure_skips_cycle(store, executor, trader) -> None:
    market = BrokenMarket({"BTC": 50_000.0, "ETH": 3_000.0})
    provider = ScriptedProvider()
    sched = _scheduler(store, executor, market, {"momentum": provider})

    report = sched.run_decision_cycle(check_running_flag=False)

    assert report.skipped and "exchange unreachable" in report.skipped
    assert provider.calls == []
    sched.close()


def test_hung_provider_times_out_to_hold(store, executor, market, trader) -> None:
    release = threading.Event()

    class Hung:
        name = "hung"

        def make_decision(self, market_data, portfolio, trader_id=None):
            release.wait(5.0)
            return {"action": "BUY", "asset": "BTC", "amount": 10, "reasoning": "late"}

    sched = _scheduler(store, executor, market, {"momentum": Hung()}, call_timeout_seconds=0.2)
    try:
        report = sched.run_decision_cycle(check_running_flag=False)
    finally:
        release.set()
        sched.close()

    assert report.decisions[0].action is Action.HOLD
    assert "timed out" in report.decisions[0].reasoning
    assert store.list_active_positions() == []


def test_benchmark_refreshed_from_cycle_prices(store, executor, market, trader) -> None:
    bench = BuyAndHoldBenchmark(store, market.get_price)
    bench.prepare()
    bench.start()
    market.set_price("BTC", 60_000.0)
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()}, benchmark=bench)

    sched.run_decision_cycle(check_running_flag=False)

    assert bench.performance().current_value == pytest.approx(120.0)
    sched.close()


def test_snapshot_cycle_records_row(store, executor, market, trader) -> None:
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()})
    snap = sched.run_snapshot_cycle()
    assert snap is not None
    assert snap.values == {"Alpha": 100.0}
    sched.close()


def test_snapshot_cycle_skipped_while_trade_executes(store, market, trader) -> None:
    from execution.trade_executor import TradeExecutor

    results = []

    def price_source(asset: str) -> float:
        results.append(sched.run_snapshot_cycle())
        return market.get_price(asset)

    executor = TradeExecutor(store, price_source=price_source)
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()})

    executor.execute_buy(trader.id, "BTC", 10.0, "x")

    assert results == [None]
    assert store.list_performance_snapshots() == []
    sched.close()


def test_start_stop_lifecycle(store, executor, market, trader) -> None:
    store.set_running_flag(True)
    called = threading.Event()

    class Signalling(ScriptedProvider):
        def make_decision(self, market_data, portfolio, trader_id=None):
            called.set()
            return super().make_decision(market_data, portfolio, trader_id)

    provider = Signalling()
    sched = _scheduler(store, executor, market, {"momentum": provider})

    assert sched.start(interval_minutes=60) is True
    assert sched.is_running
    assert sched.start() is False
    # First decision cycle runs immediately on start.
    assert called.wait(5.0)

    assert sched.stop() is True
    assert sched.stop() is False
    sched.join(timeout=5)
    assert not sched.is_running
    assert len(provider.calls) == 1
    sched.close()


def test_stop_when_never_started_is_noop(store, executor, market) -> None:
    sched = _scheduler(store, executor, market, {})
    assert sched.stop() is False
    assert sched.stop() is False
    sched.close()


def test_self_stops_when_flag_cleared_externally(store, executor, market, trader) -> None:
    store.set_running_flag(False)
    provider = ScriptedProvider()
    sched = _scheduler(store, executor, market, {"momentum": provider})

    assert sched.start(interval_minutes=60)
    sched.join(timeout=5)

    assert not sched.is_running
    assert provider.calls == []
    sched.close()


def test_restart_only_when_running(store, executor, market, trader) -> None:
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()})
    assert sched.restart(15) is False
    assert sched.interval_minutes == 15
    assert not sched.is_running

    store.set_running_flag(True)
    sched.start()
    assert sched.restart(30) is True
    assert sched.is_running
    assert sched.interval_minutes == 30
    sched.stop()
    sched.join(timeout=5)
    sched.close()


def test_restart_mid_cycle_still_runs_first_cycle(store, executor, market, trader) -> None:
    store.set_running_flag(True)
    entered = threading.Event()
    gate = threading.Event()
    second = threading.Event()

    class Slow(ScriptedProvider):
        def make_decision(self, market_data, portfolio, trader_id=None):
            result = super().make_decision(market_data, portfolio, trader_id)
            if len(self.calls) == 1:
                entered.set()
                gate.wait(5.0)
            else:
                second.set()
            return result

    provider = Slow()
    sched = _scheduler(store, executor, market, {"momentum": provider}, call_timeout_seconds=0)
    try:
        assert sched.start(interval_minutes=60)
        assert entered.wait(5.0)
        assert sched.restart(30) is True
        gate.set()
        # The restarted loop queues behind the in-flight cycle instead of skipping it.
        assert second.wait(5.0)
        assert len(provider.calls) == 2
        assert sched.cycles == 2
    finally:
        gate.set()
        sched.stop()
        sched.join(timeout=5)
        sched.close()


def test_adhoc_cycle_skipped_while_one_is_in_flight(store, executor, market, trader) -> None:
    entered = threading.Event()
    gate = threading.Event()
    results = []

    class Slow(ScriptedProvider):
        def make_decision(self, market_data, portfolio, trader_id=None):
            entered.set()
            gate.wait(5.0)
            return super().make_decision(market_data, portfolio, trader_id)

    sched = _scheduler(store, executor, market, {"momentum": Slow()}, call_timeout_seconds=0)
    worker = threading.Thread(target=lambda: results.append(sched.run_decision_cycle(check_running_flag=False)))
    worker.start()
    try:
        assert entered.wait(5.0)
        report = sched.run_decision_cycle(check_running_flag=False)
        assert report.skipped == "decision cycle already in flight"
    finally:
        gate.set()
        worker.join(5.0)
        sched.close()
    assert results[0].skipped is None


def test_configuration_getters(store, executor, market) -> None:
    sched = _scheduler(store, executor, market, {"momentum": ScriptedProvider()})
    sched.set_selected_models({"Momentum": "gpt-4o"})
    sched.set_paper_mode(False)
    status = sched.status()
    assert status["selected_models"] == {"momentum": "gpt-4o"}
    assert status["paper_mode"] is False
    assert executor.paper_mode is False
    assert status["running"] is False
    assert status["enabled_strategies"] == ["momentum"]
    with pytest.raises(ValueError):
        sched.start(interval_minutes=0)
    sched.close()
