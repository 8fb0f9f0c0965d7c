"""Configuration management."""

from .config import (
    Config,
    ConfigError,
    OptimizerConfig,
    CostConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "Config",
    "ConfigError",
    "OptimizerConfig",
    "CostConfig",
    "LoggingConfig",
    "load_config",
]
