"""Ambient services: time zones, configuration and logging."""

from .config_loader import Config, load_config
from .logging_config import configure_logging, get_logging_status
from .timezone_utils import (
    TimezoneDetector,
    TimezoneResolver,
    exists_locally,
    get_default_resolver,
    local_to_utc,
    set_default_resolver,
    utc_to_local,
    windows_tz_to_iana,
)

__all__ = [
    "Config",
    "TimezoneDetector",
    "TimezoneResolver",
    "configure_logging",
    "exists_locally",
    "get_default_resolver",
    "get_logging_status",
    "load_config",
    "local_to_utc",
    "set_default_resolver",
    "utc_to_local",
    "windows_tz_to_iana",
]
