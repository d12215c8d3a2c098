"""
Human-readable engine output for the terminal.

Every CLI command prints through these formatters; the journal receives
the same facts as JSON.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

from arena_core.contracts import Position, Trader
from arena_core.portfolio import trader_valuation

if TYPE_CHECKING:
    from arena_core.metrics import ExperimentSummary, TraderMetrics
    from config.cost_settings import CostConfiguration, CostPresets
    from engine.benchmark import BenchmarkPerformance
    from engine.scheduler import CycleReport


def _fmt_money(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def _fmt_ratio(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}"


def format_status(
    traders: Sequence[Trader],
    positions: Sequence[Position],
    benchmark: BenchmarkPerformance,
    *,
    running: bool,
    paper_mode: bool,
) -> str:
    """Roster with balances, open positions and the benchmark."""
    lines = [
        "=== Arena Status ===",
        f"Trading      : {'RUNNING' if running else 'stopped'} ({'paper' if paper_mode else 'LIVE'})",
        "",
    ]
    if not traders:
        lines.append("No traders. Run 'arena init' first.")
    for t in traders:
        value = trader_valuation(t, positions)
        lines.append(
            f"  {t.name:15s} value {_fmt_money(value):>11s}  cash {_fmt_money(t.current_balance):>11s}  "
            f"P&L {_fmt_money(t.total_pnl):>9s}  trades {t.total_trades} ({t.winning_trades}W/{t.losing_trades}L)  "
            f"costs {_fmt_money(t.total_costs)}"
        )
        for p in positions:
            if p.trader_id != t.id:
                continue
            stop = f"{p.stop_loss:.2f}" if p.stop_loss is not None else "-"
            target = f"{p.profit_target:.2f}" if p.profit_target is not None else "-"
            lines.append(
                f"      {p.asset:5s} {p.quantity:.8f} @ {p.entry_price:.2f} -> {p.current_price:.2f}  "
                f"uP&L {_fmt_money(p.unrealized_pnl)}  stop {stop}  target {target}"
            )
    lines.append("")
    lines.append(
        f"  {'Buy & Hold':15s} value {_fmt_money(benchmark.current_value):>11s}  "
        f"P&L {_fmt_money(benchmark.pnl)} ({benchmark.pnl_pct:+.2f}%)"
    )
    lines.append("===")
    return "\n".join(lines)


def format_cycle_report(report: CycleReport) -> str:
    if report.halted:
        return "Cycle not run: trading is stopped (run 'arena run' or clear with 'arena init')."
    if report.skipped:
        return f"Cycle {report.cycle} skipped: {report.skipped}"
    lines = [f"=== Decision cycle {report.cycle} @ {report.started_at.isoformat()} ==="]
    for ex in report.exits:
        pnl = ex.trade.pnl if ex.trade.pnl is not None else 0.0
        lines.append(f"  EXIT  trader {ex.trader_id} {ex.asset} {ex.reason.value} @ {ex.price:.2f}  P&L {_fmt_money(pnl)}")
    for d in report.decisions:
        target = f" {d.asset} {d.amount:g}" if d.asset and d.amount is not None else ""
        state = "executed" if d.executed else (f"rejected: {d.error}" if d.error else "not executed")
        if d.action.value == "HOLD":
            state = "hold"
        lines.append(f"  {d.trader:15s} {d.action.value:4s}{target}  [{state}]")
        lines.append(f"      {d.reasoning}")
    if not report.decisions:
        lines.append("  No enabled strategies.")
    lines.append("===")
    return "\n".join(lines)


def format_metrics(
    metrics: Sequence[TraderMetrics],
    summary: ExperimentSummary,
    benchmark: BenchmarkPerformance,
) -> str:
    lines = [
        "=== Performance ===",
        f"  {'Trader':15s} {'Value':>10s} {'Return':>8s} {'Sharpe':>7s} {'Win%':>6s} {'Hold h':>7s} "
        f"{'Tr/day':>7s} {'AvgPos':>8s} {'MaxDD%':>7s} {'PF':>6s}",
    ]
    for m in metrics:
        lines.append(
            f"  {m.trader:15s} {m.total_value:>10.2f} {m.total_return_pct:>7.2f}% {m.sharpe_ratio:>7.2f} "
            f"{m.win_rate:>6.1f} {m.avg_holding_hours:>7.1f} {m.trade_frequency:>7.2f} "
            f"{m.avg_position_size:>8.2f} {m.max_drawdown_pct:>7.2f} {_fmt_ratio(m.profit_factor):>6s}"
        )
    lines.append(f"  {'Buy & Hold':15s} {benchmark.current_value:>10.2f} {benchmark.pnl_pct:>7.2f}%")
    lines.append("")
    if summary.best is not None:
        lines.append(f"Best         : {summary.best.trader} ({summary.best.total_return_pct:+.2f}%)")
        lines.append(f"Worst        : {summary.worst.trader} ({summary.worst.total_return_pct:+.2f}%)")
    lines.append(f"Total trades : {summary.total_trades}")
    lines.append(f"Total calls  : {summary.total_calls}")
    lines.append(f"Total costs  : {_fmt_money(summary.total_costs)}")
    lines.append("===")
    return "\n".join(lines)


def format_costs(cfg: CostConfiguration, presets: CostPresets | None = None) -> str:
    lines = [
        "=== Cost Settings ===",
        f"Fee rate       : {cfg.fee_rate:.4%}",
        f"Slippage       : {'on' if cfg.slippage_enabled else 'off'} ({cfg.slippage_min:.4%} - {cfg.slippage_max:.4%})",
        f"Deduct costs   : {'yes' if cfg.deduct_costs_from_balance else 'no'}",
        f"Costs in P&L   : {'yes' if cfg.include_costs_in_pnl else 'no'}",
    ]
    if presets is not None:
        lines.append(f"Presets        : {', '.join(sorted(presets.presets))}")
    lines.append("===")
    return "\n".join(lines)
