"""Configuration management for the plan optimizer."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional
import yaml
from pathlib import Path


class ConfigError(ValueError):
    """Raised when a configuration file contains invalid settings."""


def _require_type(section: str, name: str, value: Any, expected: tuple, label: str) -> None:
    # bool is a subclass of int
    wrong_bool = isinstance(value, bool) and bool not in expected
    if wrong_bool or not isinstance(value, expected):
        raise ConfigError(f"{section}.{name} must be {label}, got {value!r}")


@dataclass
class OptimizerConfig:
    """Configuration for the rule-based optimizer."""

    enable_semi_anti_filter_transpose: bool = True
    enable_semi_anti_project_transpose: bool = True
    max_iterations: int = 10
    match_order: str = "BOTTOM_UP"  # or "TOP_DOWN"

    def __post_init__(self):
        for name in ("enable_semi_anti_filter_transpose", "enable_semi_anti_project_transpose"):
            _require_type("optimizer", name, getattr(self, name), (bool,), "true or false")
        _require_type("optimizer", "max_iterations", self.max_iterations, (int,), "an integer")
        _require_type("optimizer", "match_order", self.match_order, (str,), "a string")
        if self.max_iterations < 1:
            raise ConfigError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.match_order.upper() not in ("BOTTOM_UP", "TOP_DOWN"):
            raise ConfigError(f"Unknown match_order: {self.match_order}")


@dataclass
class CostConfig:
    """Configuration for cost model."""

    cpu_tuple_cost: float = 0.01
    io_page_cost: float = 1.0
    page_size_bytes: int = 8192
    default_row_count: int = 1000
    default_column_width: int = 8

    def __post_init__(self):
        for name in ("cpu_tuple_cost", "io_page_cost"):
            _require_type("cost", name, getattr(self, name), (int, float), "a number")
        for name in ("page_size_bytes", "default_row_count", "default_column_width"):
            _require_type("cost", name, getattr(self, name), (int,), "an integer")
        if self.page_size_bytes <= 0:
            raise ConfigError(f"page_size_bytes must be > 0, got {self.page_size_bytes}")
        for name in ("cpu_tuple_cost", "io_page_cost", "default_row_count", "default_column_width"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    structured: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        _require_type("logging", "level", self.level, (str,), "a string")
        _require_type("logging", "structured", self.structured, (bool,), "true or false")
        if self.log_file is not None:
            _require_type("logging", "log_file", self.log_file, (str,), "a path string")


@dataclass
class Config:
    """Main configuration class."""

    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    cost: CostConfig = field(default_factory=CostConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _build_section(cls, data: Optional[Dict[str, Any]], section: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in section '{section}': {', '.join(unknown)}")
    return cls(**data)


def load_config(config_path: str) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Parsed configuration

    Example YAML format:
        optimizer:
          enable_semi_anti_filter_transpose: true
          max_iterations: 20
          match_order: BOTTOM_UP

        cost:
          cpu_tuple_cost: 0.01
          page_size_bytes: 8192

        logging:
          level: DEBUG
          structured: true
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    unknown = sorted(set(data) - {"optimizer", "cost", "logging"})
    if unknown:
        raise ConfigError(f"Unknown config sections: {', '.join(unknown)}")

    optimizer = _build_section(OptimizerConfig, data.get("optimizer"), "optimizer")
    cost = _build_section(CostConfig, data.get("cost"), "cost")
    logging_config = _build_section(LoggingConfig, data.get("logging"), "logging")

    return Config(optimizer=optimizer, cost=cost, logging=logging_config)
