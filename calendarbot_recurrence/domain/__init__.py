"""Calendar domain objects built on the recurrence engine."""

from .entity import PersistentEntity
from .event import Event
from .models import (
    Alarm,
    Attachment,
    Attendee,
    Classification,
    EventStatus,
    Location,
    Priority,
    TimeTransparency,
    TriggerRelation,
)

__all__ = [
    "Alarm",
    "Attachment",
    "Attendee",
    "Classification",
    "Event",
    "EventStatus",
    "Location",
    "PersistentEntity",
    "Priority",
    "TimeTransparency",
    "TriggerRelation",
]
