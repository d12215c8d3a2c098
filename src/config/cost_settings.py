"""
Cost configuration: fee rate, slippage bounds, accounting toggles.

Presets and per-model token pricing live in a JSON file validated against
a JSON Schema:

    Presets: docs/config/costs.default.json
    Schema:  docs/config/costs.schema.json

The live configuration is stored as key/value rows in the ledger store and
read through ``CostSettingsCache``, which serves a cached copy for a bounded
TTL and drops it the moment any setting is written.

Usage:
    from config.cost_settings import CostSettingsCache, load_cost_presets
    presets = load_cost_presets()
    presets.presets["standard"].fee_rate      # -> 0.001
    cache = CostSettingsCache(store, ttl_seconds=300)
    cache.get().slippage_enabled               # -> True
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Protocol

import jsonschema

from arena_core.costs import DEFAULT_COSTS, CostConfiguration, ModelPricing

logger = logging.getLogger("arena.config")


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml; fall back to CWD."""
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_PRESETS_PATH = _PROJECT_ROOT / "docs" / "config" / "costs.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "costs.schema.json"


_BOOL_KEYS = {f.name for f in fields(CostConfiguration) if f.type in ("bool", bool)}
_KNOWN_KEYS = {f.name for f in fields(CostConfiguration)}


@dataclass(frozen=True)
class CostPresets:
    presets: dict[str, CostConfiguration]
    model_pricing: dict[str, ModelPricing]
    fallback_pricing: ModelPricing

    def pricing_for(self, model: str | None) -> ModelPricing:
        if model and model in self.model_pricing:
            return self.model_pricing[model]
        return self.fallback_pricing


class CostConfigError(Exception):
    """Raised when cost preset loading or validation fails."""


def _load_schema(schema_path: Path) -> dict[str, Any]:
    if not schema_path.exists():
        raise CostConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        return json.load(f)


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    schema = _load_schema(schema_path)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise CostConfigError(f"Cost config validation failed: {exc.message}") from exc


def _build_presets(data: dict[str, Any]) -> CostPresets:
    presets = {name: replace(DEFAULT_COSTS, **raw) for name, raw in data["presets"].items()}
    pricing = {
        model: ModelPricing(input_price=p["input"], output_price=p["output"])
        for model, p in data.get("model_pricing", {}).items()
    }
    fb = data["fallback_pricing"]
    return CostPresets(
        presets=presets,
        model_pricing=pricing,
        fallback_pricing=ModelPricing(input_price=fb["input"], output_price=fb["output"]),
    )


def load_cost_presets(
    presets_path: str | Path | None = None,
    schema_path: str | Path | None = None,
) -> CostPresets:
    """Load and validate cost presets and model pricing.

    Raises
    ------
    CostConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(presets_path) if presets_path else DEFAULT_PRESETS_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cfg_path.exists():
        raise CostConfigError(f"Cost presets file not found: {cfg_path}")
    try:
        with open(cfg_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise CostConfigError(f"Cost presets file is not valid JSON: {exc}") from exc

    _validate_schema(data, sch_path)
    return _build_presets(data)


def settings_from_rows(rows: dict[str, float]) -> CostConfiguration:
    """Build a configuration from stored key/value rows. Booleans are stored as 0/1."""
    values: dict[str, Any] = {}
    for key, value in rows.items():
        if key not in _KNOWN_KEYS:
            continue
        values[key] = bool(value) if key in _BOOL_KEYS else float(value)
    return replace(DEFAULT_COSTS, **values)


def validate_settings(
    settings: CostConfiguration, schema_path: str | Path | None = None
) -> None:
    """Check a full configuration against the schema's preset bounds.

    Raises
    ------
    CostConfigError
        If a value is out of range or slippage_min exceeds slippage_max.
    """
    schema = _load_schema(Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH)
    try:
        jsonschema.validate(instance=asdict(settings), schema=schema["definitions"]["preset"])
    except jsonschema.ValidationError as exc:
        field = ".".join(str(p) for p in exc.path) or "settings"
        raise CostConfigError(f"Invalid cost setting {field}: {exc.message}") from exc
    if settings.slippage_min > settings.slippage_max:
        raise CostConfigError(
            f"slippage_min ({settings.slippage_min}) must not exceed slippage_max ({settings.slippage_max})"
        )


def settings_to_rows(settings: CostConfiguration | dict[str, Any]) -> dict[str, float]:
    items = settings.items() if isinstance(settings, dict) else (
        (f.name, getattr(settings, f.name)) for f in fields(CostConfiguration)
    )
    rows: dict[str, float] = {}
    for key, value in items:
        if key not in _KNOWN_KEYS:
            raise CostConfigError(f"Unknown cost setting: {key!r}")
        rows[key] = (1.0 if value else 0.0) if isinstance(value, bool) else float(value)
    return rows


class CostSettingsStore(Protocol):
    def get_cost_settings(self) -> dict[str, float]: ...

    def set_cost_setting(self, key: str, value: float) -> None: ...


class CostSettingsCache:
    """TTL cache over the stored cost settings. Writes invalidate immediately."""

    def __init__(
        self,
        store: CostSettingsStore,
        *,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        schema_path: str | Path | None = None,
    ) -> None:
        self._store = store
        self._schema_path = schema_path
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached: CostConfiguration | None = None
        self._cached_at = 0.0
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> CostConfiguration:
        now = self._clock()
        if self._cached is not None and (now - self._cached_at) < self._ttl:
            return self._cached
        try:
            rows = self._store.get_cost_settings()
        except Exception as exc:
            logger.error("Error reading cost settings, using defaults: %s", exc)
            return DEFAULT_COSTS
        self._cached = settings_from_rows(rows)
        self._cached_at = now
        return self._cached

    def invalidate(self) -> None:
        self._cached = None
        self._version += 1

    def update(self, **changes: Any) -> CostConfiguration:
        """Validate the merged settings, write the changed keys, then drop the cache."""
        rows = settings_to_rows(changes)
        merged = settings_from_rows({**settings_to_rows(self.get()), **rows})
        validate_settings(merged, self._schema_path)
        try:
            for key, value in rows.items():
                self._store.set_cost_setting(key, value)
        finally:
            self.invalidate()
        logger.info("Cost settings updated: %s", ", ".join(f"{k}={v}" for k, v in rows.items()))
        return self.get()

    def apply_preset(self, name: str, presets: CostPresets | None = None) -> CostConfiguration:
        presets = presets or load_cost_presets()
        if name not in presets.presets:
            raise CostConfigError(
                f"Unknown cost preset {name!r} (available: {', '.join(sorted(presets.presets))})"
            )
        preset = presets.presets[name]
        return self.update(**{f.name: getattr(preset, f.name) for f in fields(CostConfiguration)})
