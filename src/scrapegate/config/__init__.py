"""Configuration models and loaders."""

from .config import (
    DEFAULT_LEVELS,
    Config,
    ConcurrencyConfig,
    LevelConfig,
    MonitoringConfig,
    ScraperConfig,
    find_config_file,
)

__all__ = [
    "DEFAULT_LEVELS",
    "Config",
    "ConcurrencyConfig",
    "LevelConfig",
    "MonitoringConfig",
    "ScraperConfig",
    "find_config_file",
]
