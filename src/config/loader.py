"""
Config loader: YAML file -> frozen dataclass tree.

ARENA_DB_PATH, when set, overrides store.path.
Config file holds only non-secret values.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_ASSETS = ("BTC", "ETH", "SOL", "BNB", "XRP", "DOGE")


@dataclass(frozen=True)
class EngineConfig:
    decision_interval_minutes: float = 60.0
    snapshot_interval_seconds: float = 30.0
    paper_mode: bool = True
    call_timeout_seconds: float = 30.0
    enabled_strategies: tuple[str, ...] = ()
    selected_models: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TraderConfig:
    name: str
    provider: str
    initial_balance: float = 100.0


@dataclass(frozen=True)
class StoreConfig:
    path: str = "data/arena.db"


@dataclass(frozen=True)
class MarketDataConfig:
    source: str = "random_walk"
    seed: int | None = None
    volatility: float = 0.01
    initial_prices: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class BenchmarkConfig:
    asset: str = "BTC"
    initial_balance: float = 100.0


@dataclass(frozen=True)
class CostsConfig:
    cache_ttl_seconds: float = 300.0
    preset: str = "standard"


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


DEFAULT_TRADERS = (
    TraderConfig(name="Momentum", provider="momentum"),
    TraderConfig(name="MeanReversion", provider="mean_reversion"),
    TraderConfig(name="Hold", provider="hold"),
)


@dataclass(frozen=True)
class AppConfig:
    experiment: str = "arena"
    assets: tuple[str, ...] = DEFAULT_ASSETS
    engine: EngineConfig = EngineConfig()
    traders: tuple[TraderConfig, ...] = DEFAULT_TRADERS
    store: StoreConfig = StoreConfig()
    market_data: MarketDataConfig = MarketDataConfig()
    benchmark: BenchmarkConfig = BenchmarkConfig()
    costs: CostsConfig = CostsConfig()
    journal: JournalConfig = JournalConfig()
    alerting: AlertingConfig = AlertingConfig()

    @property
    def enabled_strategies(self) -> tuple[str, ...]:
        """Configured providers, or every trader's provider when none are listed."""
        if self.engine.enabled_strategies:
            return self.engine.enabled_strategies
        return tuple(dict.fromkeys(t.provider for t in self.traders))


def _traders(raw: object) -> tuple[TraderConfig, ...]:
    if raw is None:
        return DEFAULT_TRADERS
    if not isinstance(raw, list) or not raw:
        raise ValueError("traders must be a non-empty list")
    out = []
    for item in raw:
        if not isinstance(item, dict) or "name" not in item or "provider" not in item:
            raise ValueError(f"Each trader needs a name and a provider, got {item!r}")
        out.append(
            TraderConfig(
                name=str(item["name"]),
                provider=str(item["provider"]).lower(),
                initial_balance=float(item.get("initial_balance", 100.0)),
            )
        )
    return tuple(out)


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Raises FileNotFoundError if the file is missing and ValueError if it is
    not a mapping or a section is malformed.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    e_raw = raw.get("engine", {})
    engine_cfg = EngineConfig(
        decision_interval_minutes=float(e_raw.get("decision_interval_minutes", 60)),
        snapshot_interval_seconds=float(e_raw.get("snapshot_interval_seconds", 30)),
        paper_mode=bool(e_raw.get("paper_mode", True)),
        call_timeout_seconds=float(e_raw.get("call_timeout_seconds", 30)),
        enabled_strategies=tuple(str(s).lower() for s in e_raw.get("enabled_strategies", []) or []),
        selected_models={str(k).lower(): str(v) for k, v in (e_raw.get("selected_models") or {}).items()},
    )

    s_raw = raw.get("store", {})
    store_cfg = StoreConfig(
        path=os.environ.get("ARENA_DB_PATH") or s_raw.get("path", "data/arena.db"),
    )

    m_raw = raw.get("market_data", {})
    seed = m_raw.get("seed")
    md_cfg = MarketDataConfig(
        source=m_raw.get("source", "random_walk"),
        seed=int(seed) if seed is not None else None,
        volatility=float(m_raw.get("volatility", 0.01)),
        initial_prices={str(k).upper(): float(v) for k, v in (m_raw.get("initial_prices") or {}).items()},
    )
    if md_cfg.source not in ("random_walk", "static"):
        raise ValueError(f"market_data.source must be 'random_walk' or 'static', got {md_cfg.source!r}")

    b_raw = raw.get("benchmark", {})
    bench_cfg = BenchmarkConfig(
        asset=str(b_raw.get("asset", "BTC")).upper(),
        initial_balance=float(b_raw.get("initial_balance", 100.0)),
    )

    c_raw = raw.get("costs", {})
    costs_cfg = CostsConfig(
        cache_ttl_seconds=float(c_raw.get("cache_ttl_seconds", 300)),
        preset=str(c_raw.get("preset", "standard")),
    )

    j_raw = raw.get("journal", {})
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting", {})
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    return AppConfig(
        experiment=str(raw.get("experiment", "arena")),
        assets=tuple(str(a).upper() for a in raw.get("assets", DEFAULT_ASSETS)),
        engine=engine_cfg,
        traders=_traders(raw.get("traders")),
        store=store_cfg,
        market_data=md_cfg,
        benchmark=bench_cfg,
        costs=costs_cfg,
        journal=j_cfg,
        alerting=a_cfg,
    )
