"""Command-line entry for calendarbot_recurrence.

Prints the first occurrences of a recurrence rule given as options, which is
handy for checking how a rule expands.
"""

from __future__ import annotations

import argparse
import itertools
import logging
import re
import sys
from datetime import datetime
from typing import Optional

from dateutil.parser import isoparse
from pydantic import ValidationError

from . import _init_logging
from .core.config_loader import load_config
from .exceptions import RecurrenceError
from .rules import DayMatchRule, RecurrenceRule

logger = logging.getLogger(__name__)

_BY_DAY_PATTERN = re.compile(r"^([+-]?\d{1,2})?([A-Za-z]{2})$")


def _int_list(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected comma separated integers, got {value!r}") from e


def _by_day_list(value: str) -> list[DayMatchRule]:
    rules = []
    for token in value.split(","):
        match = _BY_DAY_PATTERN.match(token.strip())
        if match is None:
            raise argparse.ArgumentTypeError(f"invalid BYDAY entry {token!r}")
        ordinal, day = match.groups()
        try:
            rules.append(
                DayMatchRule(day_of_week=day, occurrence=int(ordinal) if ordinal else None)
            )
        except ValidationError as e:
            raise argparse.ArgumentTypeError(f"invalid BYDAY entry {token!r}") from e
    return rules


def _date_time(value: str) -> datetime:
    try:
        return isoparse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO date/time {value!r}") from e


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendarbot_recurrence CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendarbot_recurrence",
        description="Print the occurrences of an RFC 5545 recurrence rule",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendarbot_recurrence --start 2024-01-01T00:00 --freq daily --interval 2 --count 10
  python -m calendarbot_recurrence --start 2024-01-26T09:00 --freq monthly --by-day=-1FR
        """,
    )
    parser.add_argument("--start", type=_date_time, required=True, help="Anchor date/time (ISO 8601)")
    parser.add_argument("--freq", required=True, help="secondly .. yearly")
    parser.add_argument("--interval", type=int, default=1)
    parser.add_argument("--count", type=int)
    parser.add_argument("--until", type=_date_time, help="Inclusive end bound (ISO 8601)")
    parser.add_argument("--week-start", default="MO", help="WKST, e.g. MO or SU")
    parser.add_argument("--by-day", type=_by_day_list, default=[], help="e.g. MO,WE,-1FR")
    parser.add_argument("--by-month-day", type=_int_list, default=[])
    parser.add_argument("--by-year-day", type=_int_list, default=[])
    parser.add_argument("--by-week-number", type=_int_list, default=[])
    parser.add_argument("--by-month", type=_int_list, default=[])
    parser.add_argument("--by-hour", type=_int_list, default=[])
    parser.add_argument("--by-minute", type=_int_list, default=[])
    parser.add_argument("--by-second", type=_int_list, default=[])
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        metavar="N",
        help="Print at most N occurrences (default: 20)",
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file")
    parser.add_argument("--log-level", help="Override the configured log level")
    return parser


def build_rule(args: argparse.Namespace) -> RecurrenceRule:
    """Build a rule from parsed CLI arguments."""
    return RecurrenceRule(
        frequency=args.freq,
        interval=args.interval,
        count=args.count,
        end_date_time=args.until,
        week_start=args.week_start,
        by_day=args.by_day,
        by_month_day=args.by_month_day,
        by_year_day=args.by_year_day,
        by_week_number=args.by_week_number,
        by_month=args.by_month,
        by_hour=args.by_hour,
        by_minute=args.by_minute,
        by_second=args.by_second,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Run the calendarbot_recurrence CLI and return the exit status."""
    args = _create_parser().parse_args(argv)
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Cannot load config: {e}", file=sys.stderr)
        return 2
    _init_logging(args.log_level or config.log_level)

    try:
        rule = build_rule(args)
        occurrences = rule.get_occurrences(args.start, max_idle_years=config.max_idle_years)
        for occurrence in itertools.islice(occurrences, max(args.limit, 0)):
            print(occurrence.isoformat())
    except (ValueError, RecurrenceError) as e:
        logger.debug("Rule evaluation failed", exc_info=True)
        print(f"Invalid recurrence rule: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
