"""calendarbot_recurrence.core.config_loader

Config loader for the recurrence engine.

- Reads YAML through PyYAML.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override (falling back to $CALENDARBOT_RECURRENCE_CONFIG).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from ..rules.recurrence_rule import DEFAULT_MAX_IDLE_YEARS
from .timezone_utils import TimezoneResolver

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CALENDARBOT_RECURRENCE_CONFIG"
DEFAULT_CONFIG_PATH = Path("calendarbot_recurrence") / "config.yaml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Typed configuration for the recurrence engine.

    Fields:
        default_time_zone: zone id for events without one; None = detect system zone
        log_level: logging level name
        max_idle_years: years without any match after which generation stops
    """

    default_time_zone: Optional[str] = None
    log_level: str = "INFO"
    max_idle_years: int = DEFAULT_MAX_IDLE_YEARS

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int, unknown log levels fall back to
        INFO and max_idle_years is kept at 1 or more, logging a warning whenever
        a value is replaced.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        max_idle_years = _coerce_int("max_idle_years", DEFAULT_MAX_IDLE_YEARS)
        if max_idle_years < 1:
            logger.warning("max_idle_years %d below minimum; coercing to 1", max_idle_years)
            max_idle_years = 1

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"
        if log_level not in _LOG_LEVELS:
            logger.warning("Unknown log_level %r; using INFO", log_level)
            log_level = "INFO"

        default_time_zone = data.get("default_time_zone")
        if default_time_zone is not None:
            default_time_zone = str(default_time_zone).strip() or None

        return cls(
            default_time_zone=default_time_zone,
            log_level=log_level,
            max_idle_years=max_idle_years,
        )

    def build_resolver(self) -> TimezoneResolver:
        """Create a zone resolver whose fallback is `default_time_zone`."""
        return TimezoneResolver(fallback_zone=self.default_time_zone)


def _load_yaml(path: Path) -> Any:
    loaded = yaml.safe_load(path.read_text())
    # safe_load returns None for empty files
    if loaded is None:
        return {}
    return loaded


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              $CALENDARBOT_RECURRENCE_CONFIG, then
              ./calendarbot_recurrence/config.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    chosen = path or os.environ.get(CONFIG_ENV_VAR)
    p = Path(chosen) if chosen else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_yaml(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
