"""
CLI entry point: arena init | run | cycle | snapshot | stop | status | metrics | costs | health.

Every command loads config from --config (default config.yaml), builds one
engine against the configured store, and prints human-readable results.
"""

import logging
import sys

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("arena")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _engine(ctx: click.Context):
    """Build the engine for this invocation, with journal and event logger attached."""
    from cli.structured_log import StructuredEventLogger
    from engine import build_engine
    from journal.writer import JournalWriter

    cfg = load_config(ctx.obj["config_path"])
    journal = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
    events = StructuredEventLogger(
        cfg.experiment,
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )
    return build_engine(cfg, journal=journal, events=events)


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """arena: strategies trade paper positions against a buy-and-hold benchmark."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- arena init ----------


@cli.command()
@click.option("--reset", is_flag=True, default=False, help="Wipe traders, positions, trades and history first.")
@click.option("--preset", default=None, help="Apply a cost preset (zero, standard, conservative, high_volume).")
@click.pass_context
def init(ctx: click.Context, reset: bool, preset: str | None) -> None:
    """Create the configured traders and prepare the benchmark."""
    from config.cost_settings import CostConfigError

    engine = _engine(ctx)
    try:
        created = engine.initialize(reset=reset, preset=preset or (engine.config.costs.preset if reset else None))
    except CostConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    if reset:
        click.echo("Experiment reset.")
    for name in created:
        click.echo(f"Created trader {name}")
    if not created:
        click.echo("All configured traders already exist.")
    click.echo(f"Benchmark ready: {engine.benchmark.initial_balance:.2f} in {engine.benchmark.asset} on start")
    click.echo(f"Store: {engine.store.path}")


# ---------- arena run ----------


@cli.command()
@click.option("--interval", default=None, type=float, help="Decision interval in minutes (default from config).")
@click.pass_context
def run(ctx: click.Context, interval: float | None) -> None:
    """Start both loops and block until Ctrl+C or 'arena stop'."""
    engine = _engine(ctx)
    if not engine.store.list_traders():
        click.echo("No traders. Run 'arena init' first.")
        raise SystemExit(1)

    engine.store.set_running_flag(True)
    engine.benchmark.prepare()
    engine.benchmark.start()
    scheduler = engine.scheduler
    scheduler.start(interval or engine.config.engine.decision_interval_minutes)
    click.echo(
        f"Trading started: every {scheduler.interval_minutes:g} min, "
        f"strategies {', '.join(scheduler.enabled_strategies)}  |  Ctrl+C to stop\n"
    )
    events = scheduler.events
    try:
        while scheduler.is_running:
            scheduler.join(timeout=1.0)
        click.echo("Engine halted: trading was stopped externally.")
    except KeyboardInterrupt:
        scheduler.stop()
        engine.store.set_running_flag(False)
        click.echo(f"\n\nShutting down after {scheduler.cycles} cycle(s). Goodbye.")
    finally:
        if events is not None:
            events.shutdown(cycles=scheduler.cycles)
        scheduler.close()


# ---------- arena cycle / snapshot ----------


@cli.command()
@click.pass_context
def cycle(ctx: click.Context) -> None:
    """Run one decision cycle now, regardless of the running flag."""
    from cli.output import format_cycle_report

    engine = _engine(ctx)
    try:
        report = engine.scheduler.run_decision_cycle(check_running_flag=False)
    finally:
        engine.scheduler.close()
    click.echo(format_cycle_report(report))


@cli.command()
@click.pass_context
def snapshot(ctx: click.Context) -> None:
    """Record one performance snapshot now."""
    engine = _engine(ctx)
    try:
        snap = engine.scheduler.run_snapshot_cycle()
    finally:
        engine.scheduler.close()
    if snap is None:
        click.echo("Snapshot skipped.")
        return
    values = "  ".join(f"{name} {value:.2f}" for name, value in snap.values.items())
    click.echo(f"Snapshot @ {snap.timestamp.isoformat()}: {values}  benchmark {snap.benchmark_value:.2f}")


# ---------- arena stop ----------


@cli.command()
@click.pass_context
def stop(ctx: click.Context) -> None:
    """Clear the durable running flag; a running engine halts at its next decision cycle."""
    from data.ledger_store import LedgerStore

    cfg = load_config(ctx.obj["config_path"])
    store = LedgerStore(cfg.store.path)
    if not store.get_running_flag():
        click.echo("Trading is not running.")
        return
    store.set_running_flag(False)
    click.echo("Stop requested. The engine halts before its next decision cycle.")


# ---------- arena status / metrics ----------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show traders, open positions and the benchmark."""
    from cli.output import format_status

    engine = _engine(ctx)
    click.echo(format_status(
        engine.store.list_traders(),
        engine.store.list_active_positions(),
        engine.benchmark.performance(),
        running=engine.store.get_running_flag(),
        paper_mode=engine.config.engine.paper_mode,
    ))


@cli.command()
@click.pass_context
def metrics(ctx: click.Context) -> None:
    """Score every trader: return, Sharpe, win rate, drawdown, profit factor."""
    from arena_core.metrics import compute_trader_metrics, summarize
    from cli.output import format_metrics

    engine = _engine(ctx)
    store = engine.store
    traders = store.list_traders()
    rows = [
        compute_trader_metrics(
            t,
            store.list_trades(t.id),
            store.list_active_positions(t.id),
            store.list_closed_positions(t.id),
        )
        for t in traders
    ]
    click.echo(format_metrics(rows, summarize(traders, rows), engine.benchmark.performance()))


# ---------- arena costs ----------


@cli.group()
def costs() -> None:
    """Show or change trading-cost settings."""


@costs.command("show")
@click.pass_context
def costs_show(ctx: click.Context) -> None:
    from cli.output import format_costs

    engine = _engine(ctx)
    click.echo(format_costs(engine.cost_settings.get(), engine.cost_presets))


@costs.command("preset")
@click.argument("name")
@click.pass_context
def costs_preset(ctx: click.Context, name: str) -> None:
    """Apply a named preset."""
    from cli.output import format_costs
    from config.cost_settings import CostConfigError

    engine = _engine(ctx)
    try:
        cfg = engine.cost_settings.apply_preset(name, engine.cost_presets)
    except CostConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Applied preset {name}.")
    click.echo(format_costs(cfg, engine.cost_presets))


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@costs.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def costs_set(ctx: click.Context, key: str, value: str) -> None:
    """Set one cost setting, e.g. 'arena costs set fee_rate 0.002'."""
    from cli.output import format_costs
    from config.cost_settings import CostConfigError

    lowered = value.strip().lower()
    parsed: bool | float
    if lowered in _TRUE:
        parsed = True
    elif lowered in _FALSE:
        parsed = False
    else:
        try:
            parsed = float(value)
        except ValueError as exc:
            raise click.BadParameter(f"{value!r} is not a number or boolean", param_hint="VALUE") from exc

    engine = _engine(ctx)
    try:
        cfg = engine.cost_settings.update(**{key: parsed})
    except CostConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(format_costs(cfg))


# ---------- arena health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check config, cost presets, store access and traders.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded ({cfg.experiment}, {len(cfg.assets)} assets)"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from config.cost_settings import load_cost_presets
        presets = load_cost_presets()
        checks.append(("cost_presets", True, f"validated ({len(presets.presets)} presets)"))
    except Exception as e:
        checks.append(("cost_presets", False, str(e)))

    try:
        from data.ledger_store import LedgerStore
        store = LedgerStore(cfg.store.path)
        traders = store.list_traders()
        if traders:
            checks.append(("store", True, f"{len(traders)} trader(s), running={store.get_running_flag()}"))
        else:
            checks.append(("store", False, "no traders; run 'arena init'"))
    except Exception as e:
        checks.append(("store", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
