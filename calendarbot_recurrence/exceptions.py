"""Exception hierarchy for recurrence evaluation.

Configuration errors on rule fields are reported by pydantic as
``ValidationError`` (a ``ValueError``) at assignment time. The classes below
cover failures that only show up when occurrences are computed.
"""


class RecurrenceError(Exception):
    """Base exception for all recurrence errors.

    Catch this to handle every failure raised by the rule engine and the
    event facade in one place.
    """


class InvalidRecurrenceOperationError(RecurrenceError):
    """A rule or event was asked to do something its state does not allow.

    Raised when:
    - Occurrences are requested without a frequency or with interval < 1
    - A BYxxx rule part is combined with a frequency it must not be used with
    - Day expansion is requested for a frequency that has no day expansion
    - The anchor and the end bound are of different kinds (naive vs aware)

    These are programming-contract violations, not user-facing errors.
    """


class TimezoneResolutionError(RecurrenceError):
    """Neither the requested zone nor the fallback zone could be loaded.

    Unknown zone ids normally resolve to the fallback zone; this is only
    raised when the fallback itself is missing from the zone database.
    """
