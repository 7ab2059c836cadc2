"""calendarbot_recurrence - RFC 5545 recurrence rules and recurring events for CalendarBot.

The rule engine lives in ``calendarbot_recurrence.rules``; the event facade
that merges explicit dates, round-trips time zones and flattens occurrences
for a display window lives in ``calendarbot_recurrence.domain``.
"""

__version__ = "0.1.0"

import logging
import os
import sys
from typing import Optional

from .domain import Event
from .exceptions import (
    InvalidRecurrenceOperationError,
    RecurrenceError,
    TimezoneResolutionError,
)
from .rules import DayMatchRule, Frequency, RecurrenceRule, Weekday


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the CALENDARBOT_DEBUG environment variable (truthy values: "1",
    "true", "yes", "on"), which forces DEBUG verbosity.
    """
    from .core.logging_config import build_formatter

    debug_env = os.environ.get("CALENDARBOT_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(build_formatter())
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


__all__ = [
    "DayMatchRule",
    "Event",
    "Frequency",
    "InvalidRecurrenceOperationError",
    "RecurrenceError",
    "RecurrenceRule",
    "TimezoneResolutionError",
    "Weekday",
    "__version__",
]
