"""Tests for config loader: YAML parsing, env var override, error cases."""

from pathlib import Path

import pytest

from config import load_config


def _write_yaml(path: Path, content: str) -> Path:
    path.write_text(content)
    return path


def test_load_config_basic(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ARENA_DB_PATH", raising=False)
    path = _write_yaml(
        tmp_path / "config.yaml",
        """
experiment: spring-run
assets: [btc, eth]
engine:
  decision_interval_minutes: 15
  snapshot_interval_seconds: 10
  paper_mode: false
  enabled_strategies: [Momentum]
  selected_models:
    Momentum: gpt-4o
traders:
  - name: Fast
    provider: Momentum
    initial_balance: 250
store:
  path: test_arena.db
market_data:
  source: static
  initial_prices:
    btc: 42000
benchmark:
  asset: eth
  initial_balance: 250
costs:
  cache_ttl_seconds: 60
  preset: zero
journal:
  path: test_journal.jsonl
  echo_stdout: true
alerting:
  structured_logs: false
  webhook_url: https://hooks.example.com/x
""",
    )
    cfg = load_config(path)
    assert cfg.experiment == "spring-run"
    assert cfg.assets == ("BTC", "ETH")
    assert cfg.engine.decision_interval_minutes == 15.0
    assert cfg.engine.snapshot_interval_seconds == 10.0
    assert cfg.engine.paper_mode is False
    assert cfg.engine.enabled_strategies == ("momentum",)
    assert cfg.engine.selected_models == {"momentum": "gpt-4o"}
    assert len(cfg.traders) == 1
    assert cfg.traders[0].provider == "momentum"
    assert cfg.traders[0].initial_balance == 250.0
    assert cfg.store.path == "test_arena.db"
    assert cfg.market_data.source == "static"
    assert cfg.market_data.initial_prices == {"BTC": 42_000.0}
    assert cfg.benchmark.asset == "ETH"
    assert cfg.costs.cache_ttl_seconds == 60.0
    assert cfg.costs.preset == "zero"
    assert cfg.journal.path == "test_journal.jsonl"
    assert cfg.journal.echo_stdout is True
    assert cfg.alerting.structured_logs is False
    assert cfg.alerting.webhook_url == "https://hooks.example.com/x"


def test_load_config_env_var_overrides_store_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path / "config.yaml", "store:\n  path: file.db\n")
    monkeypatch.setenv("ARENA_DB_PATH", "/tmp/env.db")
    assert load_config(path).store.path == "/tmp/env.db"


def test_load_config_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ARENA_DB_PATH", raising=False)
    path = _write_yaml(tmp_path / "config.yaml", "experiment: defaults\n")
    cfg = load_config(path)
    assert cfg.engine.decision_interval_minutes == 60.0
    assert cfg.engine.snapshot_interval_seconds == 30.0
    assert cfg.engine.paper_mode is True
    assert cfg.store.path == "data/arena.db"
    assert cfg.market_data.source == "random_walk"
    assert cfg.benchmark.asset == "BTC"
    assert cfg.benchmark.initial_balance == 100.0
    assert cfg.costs.preset == "standard"
    assert cfg.journal.echo_stdout is False
    assert [t.provider for t in cfg.traders] == ["momentum", "mean_reversion", "hold"]
    assert cfg.enabled_strategies == ("momentum", "mean_reversion", "hold")


def test_explicit_enabled_strategies_win(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "config.yaml", "engine:\n  enabled_strategies: [hold]\n")
    assert load_config(path).enabled_strategies == ("hold",)


def test_load_config_missing_file() -> None:
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/path.yaml")


def test_load_config_not_a_mapping(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "config.yaml", "- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_unknown_market_source_rejected(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "config.yaml", "market_data:\n  source: exchange\n")
    with pytest.raises(ValueError, match="market_data.source"):
        load_config(path)


@pytest.mark.parametrize("traders", ["traders: []\n", "traders:\n  - name: NoProvider\n"])
def test_malformed_traders_rejected(tmp_path: Path, traders: str) -> None:
    path = _write_yaml(tmp_path / "config.yaml", traders)
    with pytest.raises(ValueError):
        load_config(path)
