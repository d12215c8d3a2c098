"""
Configuration loaders.

App config:   reads config.yaml, ARENA_DB_PATH overrides the store path.
Cost config:  presets from costs.default.json validated against JSON Schema;
              live settings read through a TTL cache over the store.
"""

from config.cost_settings import (
    DEFAULT_COSTS,
    CostConfigError,
    CostConfiguration,
    CostPresets,
    CostSettingsCache,
    ModelPricing,
    load_cost_presets,
)
from config.loader import (
    AlertingConfig,
    AppConfig,
    BenchmarkConfig,
    CostsConfig,
    EngineConfig,
    JournalConfig,
    MarketDataConfig,
    StoreConfig,
    TraderConfig,
    load_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "BenchmarkConfig",
    "CostsConfig",
    "EngineConfig",
    "JournalConfig",
    "MarketDataConfig",
    "StoreConfig",
    "TraderConfig",
    "load_config",
    # Cost config (JSON + schema, TTL cache)
    "CostConfigError",
    "CostConfiguration",
    "CostPresets",
    "CostSettingsCache",
    "DEFAULT_COSTS",
    "ModelPricing",
    "load_cost_presets",
]
