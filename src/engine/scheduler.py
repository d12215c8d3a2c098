"""
Cycle scheduler: two independent timer loops over the engine.

Decision cycle (default every 60 minutes):
    running flag -> market data -> market snapshot -> benchmark ->
    risk sweep -> each enabled trader in turn: decide, record, charge, execute.

Snapshot cycle (default every 30 seconds):
    skip if the executor is mid-trade, else record one valuation row.

Each loop runs on its own daemon thread and never overlaps itself. stop()
only prevents future iterations; a cycle already running finishes.
External calls (market data, decision providers) are bounded by
``call_timeout_seconds``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from arena_core.contracts import Action, DecisionRecord, MarketSnapshot, PerformanceSnapshot, Trade, Trader
from arena_core.costs import usage_cost, usage_tokens
from arena_core.decisions import BuyDecision, Decision, HoldDecision, SellDecision, decision_or_hold
from arena_core.errors import ProviderError, ValidationError
from arena_core.portfolio import build_portfolio_state
from config.cost_settings import DEFAULT_COSTS, CostPresets, CostSettingsCache
from data.ledger_store import LedgerStore
from data.market_data import MarketDataProvider
from engine.benchmark import BuyAndHoldBenchmark
from engine.snapshotter import PerformanceSnapshotter
from execution.risk_monitor import ExitEvent, RiskMonitor
from execution.trade_executor import TradeExecutor
from strategies.base import DecisionProvider, get_decision_provider

logger = logging.getLogger("arena.scheduler")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DecisionOutcome:
    trader: str
    action: Action
    asset: str | None
    amount: float | None
    reasoning: str
    executed: bool
    decision_id: int
    api_cost: float = 0.0
    trade: Trade | None = None
    error: str | None = None


@dataclass
class CycleReport:
    cycle: int
    started_at: datetime
    decisions: list[DecisionOutcome] = field(default_factory=list)
    exits: list[ExitEvent] = field(default_factory=list)
    skipped: str | None = None
    halted: bool = False

    @property
    def trades(self) -> int:
        return sum(1 for d in self.decisions if d.executed) + len(self.exits)


class CycleScheduler:
    """
    Orchestrates the decision and snapshot cycles for one engine.

    Lifecycle and configuration calls are safe from any thread. start() and
    stop() report a mismatched state as a False return, never raise.
    """

    def __init__(
        self,
        store: LedgerStore,
        executor: TradeExecutor,
        risk_monitor: RiskMonitor,
        snapshotter: PerformanceSnapshotter,
        market_data: MarketDataProvider,
        *,
        assets: Sequence[str],
        cost_settings: CostSettingsCache | None = None,
        cost_presets: CostPresets | None = None,
        benchmark: BuyAndHoldBenchmark | None = None,
        provider_factory: Callable[[str, str | None], DecisionProvider] = get_decision_provider,
        journal: Any = None,
        events: Any = None,
        decision_interval_minutes: float = 60.0,
        snapshot_interval_seconds: float = 30.0,
        call_timeout_seconds: float | None = 30.0,
        enabled_strategies: Sequence[str] = (),
        selected_models: Mapping[str, str] | None = None,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._store = store
        self._executor = executor
        self._risk = risk_monitor
        self._snapshotter = snapshotter
        self._market_data = market_data
        self._assets = tuple(a.upper() for a in assets)
        self._cost_settings = cost_settings
        self._cost_presets = cost_presets
        self._benchmark = benchmark
        self._provider_factory = provider_factory
        self._journal = journal
        self._events = events
        self._interval_minutes = decision_interval_minutes
        self._snapshot_interval = snapshot_interval_seconds
        self._call_timeout = call_timeout_seconds
        self._enabled: tuple[str, ...] = tuple(s.lower() for s in enabled_strategies)
        self._models: dict[str, str] = dict(selected_models or {})
        self._clock = clock

        self._lifecycle = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._threads: list[threading.Thread] = []
        self._decision_guard = threading.Lock()
        self._snapshot_guard = threading.Lock()
        self._calls = ThreadPoolExecutor(max_workers=4, thread_name_prefix="arena-call")
        self._cycles = 0

    # ---------- lifecycle ----------

    @property
    def is_running(self) -> bool:
        event = self._stop_event
        return event is not None and not event.is_set()

    def start(self, interval_minutes: float | None = None) -> bool:
        """Run a decision cycle now, then every ``interval_minutes``; snapshot on its own timer."""
        with self._lifecycle:
            if self.is_running:
                logger.warning("Engine already running")
                return False
            if interval_minutes is not None:
                if interval_minutes <= 0:
                    raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
                self._interval_minutes = interval_minutes
            event = threading.Event()
            self._stop_event = event
            self._threads = [
                threading.Thread(target=self._decision_loop, args=(event,), name="arena-decision", daemon=True),
                threading.Thread(target=self._snapshot_loop, args=(event,), name="arena-snapshot", daemon=True),
            ]
            for t in self._threads:
                t.start()
        logger.info(
            "Engine started: decision every %s min, snapshot every %ss, strategies %s, %s mode",
            self._interval_minutes, self._snapshot_interval, ", ".join(self._enabled) or "-",
            "paper" if self.paper_mode else "live",
        )
        return True

    def stop(self) -> bool:
        """Stop scheduling future cycles. In-flight cycles finish on their own."""
        with self._lifecycle:
            if not self.is_running:
                logger.warning("Engine not running")
                return False
            self._stop_event.set()
        logger.info("Engine stopped after %d cycle(s)", self._cycles)
        return True

    def restart(self, interval_minutes: float) -> bool:
        """Apply a new decision interval. Restarts the loops only if they were running."""
        if interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
        if not self.is_running:
            self._interval_minutes = interval_minutes
            return False
        self.stop()
        return self.start(interval_minutes)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the loop threads to exit (after stop() or a self-halt)."""
        for t in list(self._threads):
            if t is not threading.current_thread():
                t.join(timeout)

    def close(self) -> None:
        if self.is_running:
            self.stop()
        self._calls.shutdown(wait=False)

    def _decision_loop(self, event: threading.Event) -> None:
        while not event.is_set():
            try:
                self.run_decision_cycle(wait=True)
            except Exception as exc:
                logger.exception("Decision cycle crashed: %s", exc)
                self._emit("error", message="decision cycle crashed", detail=str(exc))
            if event.wait(self._interval_minutes * 60):
                break

    def _snapshot_loop(self, event: threading.Event) -> None:
        while not event.wait(self._snapshot_interval):
            self.run_snapshot_cycle()

    # ---------- configuration ----------

    @property
    def interval_minutes(self) -> float:
        return self._interval_minutes

    @property
    def enabled_strategies(self) -> list[str]:
        return list(self._enabled)

    def set_enabled_strategies(self, strategies: Sequence[str]) -> None:
        self._enabled = tuple(s.lower() for s in strategies)
        logger.info("Enabled strategies: %s", ", ".join(self._enabled) or "-")

    @property
    def selected_models(self) -> dict[str, str]:
        return dict(self._models)

    def set_selected_models(self, models: Mapping[str, str]) -> None:
        self._models = {k.lower(): v for k, v in models.items()}
        logger.info("Selected models: %s", self._models)

    @property
    def paper_mode(self) -> bool:
        return self._executor.paper_mode

    def set_paper_mode(self, paper: bool) -> None:
        self._executor.paper_mode = paper
        logger.info("Trading mode: %s", "paper" if paper else "live")

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def events(self) -> Any:
        return self._events

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "interval_minutes": self._interval_minutes,
            "snapshot_interval_seconds": self._snapshot_interval,
            "enabled_strategies": self.enabled_strategies,
            "selected_models": self.selected_models,
            "paper_mode": self.paper_mode,
            "cycles": self._cycles,
        }

    # ---------- helpers ----------

    def _emit(self, event: str, **fields: Any) -> None:
        if self._events is not None:
            getattr(self._events, event)(**fields)

    def _bounded(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        if not self._call_timeout:
            return fn(*args)
        future = self._calls.submit(fn, *args)
        try:
            return future.result(timeout=self._call_timeout)
        except FuturesTimeout as exc:
            future.cancel()
            raise ProviderError(f"{what} timed out after {self._call_timeout}s") from exc

    # ---------- decision cycle ----------

    def run_decision_cycle(self, *, check_running_flag: bool = True, wait: bool = False) -> CycleReport:
        """One full pass. Returns a report; skipped/halted cycles say why.

        With ``wait`` the call queues behind a cycle already in flight
        (the scheduled loop after a restart); otherwise it is skipped.
        """
        if not self._decision_guard.acquire(blocking=wait):
            logger.info("Decision cycle already in flight; skipping")
            return CycleReport(
                cycle=self._cycles, started_at=self._clock(), skipped="decision cycle already in flight"
            )
        started = self._clock()
        try:
            if check_running_flag and not self._running_flag():
                logger.warning("Durable status shows trading stopped; halting engine")
                self._emit("engine_halted", reason="running flag cleared")
                if self.is_running:
                    self.stop()
                return CycleReport(cycle=self._cycles, started_at=started, halted=True)

            self._cycles += 1
            report = CycleReport(cycle=self._cycles, started_at=started)
            self._emit("cycle_start", cycle=self._cycles, assets=list(self._assets), strategies=list(self._enabled))

            try:
                market = self._bounded("market data fetch", self._market_data.get_all, list(self._assets))
            except Exception as exc:
                logger.error("Market data unavailable, skipping cycle: %s", exc)
                self._emit("error", message="market data unavailable", detail=str(exc))
                report.skipped = f"market data unavailable: {exc}"
                return report

            prices = {m.asset: m.price for m in market}
            self._save_market(market, started)
            self._update_benchmark(prices)

            report.exits = self._risk.sweep(prices)
            for ex in report.exits:
                self._record_exit(ex)

            enabled = set(self._enabled)
            for trader in self._store.list_traders():
                if trader.provider not in enabled:
                    continue
                try:
                    report.decisions.append(self._process_trader(trader, market, prices))
                except Exception as exc:
                    logger.exception("Processing %s failed: %s", trader.name, exc)
                    self._emit("error", message=f"processing {trader.name} failed", detail=str(exc))

            self._emit(
                "cycle_complete",
                cycle=report.cycle,
                decisions=len(report.decisions),
                trades=report.trades,
                exits=len(report.exits),
            )
            logger.info(
                "Cycle %d complete: %d decision(s), %d trade(s), %d exit(s)",
                report.cycle, len(report.decisions), report.trades, len(report.exits),
            )
            return report
        finally:
            self._decision_guard.release()

    def _running_flag(self) -> bool:
        try:
            return self._store.get_running_flag()
        except Exception as exc:
            logger.error("Error reading running flag: %s", exc)
            return False

    def _save_market(self, market: Sequence[MarketSnapshot], at: datetime) -> None:
        try:
            self._store.insert_market_snapshots(market, captured_at=at)
        except Exception as exc:
            logger.error("Saving market snapshot failed: %s", exc)

    def _update_benchmark(self, prices: Mapping[str, float]) -> None:
        if self._benchmark is None or self._benchmark.asset not in prices:
            return
        try:
            self._benchmark.update_value(prices[self._benchmark.asset])
        except Exception as exc:
            logger.error("Benchmark update failed: %s", exc)

    def _trader_name(self, trader_id: int) -> str:
        trader = self._store.get_trader(trader_id)
        return trader.name if trader else str(trader_id)

    def _record_exit(self, ex: ExitEvent) -> None:
        name = self._trader_name(ex.trader_id)
        self._emit("exit_triggered", trader=name, asset=ex.asset, reason=ex.reason.value, price=ex.price)
        if self._journal is not None:
            self._journal.exit(name, ex.asset, ex.reason.value, ex.price, ex.trade.pnl)

    def _decide(self, trader: Trader, market: Sequence[MarketSnapshot], portfolio) -> Decision:
        """Invoke the provider. Any failure becomes HOLD with the error as reasoning."""
        model = self._models.get(trader.provider)
        try:
            provider = self._provider_factory(trader.provider, model)
            payload = self._bounded(
                f"{trader.provider} decision", provider.make_decision, list(market), portfolio, trader.id
            )
        except Exception as exc:
            logger.error("Decision provider %s failed: %s", trader.provider, exc)
            return HoldDecision(reasoning=f"Provider error: {exc}")
        return decision_or_hold(payload)

    def _usage_cost(self, trader: Trader, decision: Decision) -> tuple[float, int]:
        _, _, total = usage_tokens(decision.usage.tokens)
        if decision.usage.cost is not None:
            return max(decision.usage.cost, 0.0), total
        if total and self._cost_presets is not None:
            pricing = self._cost_presets.pricing_for(self._models.get(trader.provider))
            return usage_cost(decision.usage.tokens, pricing), total
        return 0.0, total

    def _process_trader(
        self,
        trader: Trader,
        market: Sequence[MarketSnapshot],
        prices: Mapping[str, float],
    ) -> DecisionOutcome:
        positions = self._store.list_active_positions(trader.id)
        portfolio = build_portfolio_state(
            trader.current_balance, positions, prices, price_lookup=self._market_data.get_price
        )
        decision = self._decide(trader, market, portfolio)
        api_cost, tokens = self._usage_cost(trader, decision)

        record = DecisionRecord(
            trader_id=trader.id,
            action=decision.action,
            reasoning=decision.reasoning,
            created_at=self._clock(),
            asset=getattr(decision, "asset", None),
            amount=getattr(decision, "amount", None),
            confidence=decision.confidence,
            api_cost=api_cost,
            token_count=tokens,
        )
        if isinstance(decision, BuyDecision):
            record.profit_target = decision.exit_plan.profit_target
            record.stop_loss = decision.exit_plan.stop_loss
            record.invalidation_condition = decision.exit_plan.invalidation_condition
            record.risk_usd = decision.risk_usd
        decision_id = self._store.insert_decision(record, market_data=market, portfolio_state=portfolio.to_dict())

        cfg = self._cost_settings.get() if self._cost_settings is not None else DEFAULT_COSTS
        debit = api_cost if cfg.deduct_costs_from_balance else 0.0
        self._store.apply_trader_delta(
            trader.id,
            balance=-debit,
            api_cost=api_cost,
            calls=1,
            tokens=tokens,
            floor_balance_at_zero=True,
        )
        self._emit("decision_made", trader=trader.name, action=decision.action.value, asset=record.asset, amount=record.amount)

        trade: Trade | None = None
        error: str | None = None
        try:
            if isinstance(decision, BuyDecision):
                trade = self._executor.execute_buy(
                    trader.id, decision.asset, decision.amount, decision.reasoning, decision.exit_plan,
                    price=prices.get(decision.asset),
                )
            elif isinstance(decision, SellDecision):
                trade = self._executor.execute_sell(
                    trader.id, decision.asset, decision.amount, decision.reasoning,
                    price=prices.get(decision.asset),
                )
        except ValidationError as exc:
            error = str(exc)
            logger.warning("%s %s rejected: %s", trader.name, decision.action.value, exc)
            self._emit("order_rejected", trader=trader.name, reason=error)
        except Exception as exc:
            error = str(exc)
            logger.error("%s %s failed: %s", trader.name, decision.action.value, exc)
            self._emit("error", message=f"{trader.name} {decision.action.value} failed", detail=error)

        if trade is not None:
            self._store.mark_decision_executed(decision_id)
            self._emit(
                "trade_executed",
                trader=trader.name,
                side=trade.side.value,
                asset=trade.asset,
                quantity=trade.quantity,
                price=trade.price,
            )
            if self._journal is not None:
                self._journal.trade(trader.name, trade)
        if self._journal is not None:
            self._journal.decision(
                trader.name,
                decision.action.value,
                decision.reasoning,
                trade is not None,
                asset=record.asset,
                amount=record.amount,
                api_cost=api_cost,
                error=error,
            )

        return DecisionOutcome(
            trader=trader.name,
            action=decision.action,
            asset=record.asset,
            amount=record.amount,
            reasoning=decision.reasoning,
            executed=trade is not None,
            decision_id=decision_id,
            api_cost=api_cost,
            trade=trade,
            error=error,
        )

    # ---------- snapshot cycle ----------

    def run_snapshot_cycle(self) -> PerformanceSnapshot | None:
        """Record one valuation row unless a trade is executing or a snapshot is in flight."""
        if not self._snapshot_guard.acquire(blocking=False):
            return None
        try:
            if self._executor.is_executing:
                logger.info("Snapshot skipped: trade execution in progress")
                self._emit("snapshot_skipped", reason="trade execution in progress")
                return None
            return self._snapshotter.record()
        except Exception as exc:
            logger.error("Error saving performance snapshot: %s", exc)
            return None
        finally:
            self._snapshot_guard.release()
