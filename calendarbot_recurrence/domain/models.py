"""Sub-objects and enumerations shared by calendar events."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .event import Event


class EventStatus(str, Enum):
    """RFC 5545 STATUS values for events."""

    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Classification(str, Enum):
    """RFC 5545 CLASS values."""

    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    CONFIDENTIAL = "CONFIDENTIAL"


class Priority(IntEnum):
    """RFC 5545 PRIORITY, 1 is highest."""

    HIGH = 1
    NORMAL = 5
    LOW = 9


class TimeTransparency(str, Enum):
    """Whether the event blocks time on a free/busy view."""

    OPAQUE = "OPAQUE"
    TRANSPARENT = "TRANSPARENT"


class TriggerRelation(str, Enum):
    """Event boundary an alarm's trigger offset is relative to."""

    START = "START"
    END = "END"


class Location(BaseModel):
    """Where an event takes place; postal address plus presentation fields."""

    title: Optional[str] = None
    description: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    post_office_box: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    web_site: Optional[str] = None
    opening_hours: list[str] = Field(default_factory=list)

    model_config = ConfigDict(validate_assignment=True)

    def __str__(self) -> str:
        street = " ".join(part for part in (self.street, self.house_number) if part)
        town = " ".join(part for part in (self.zip_code, self.city) if part)
        return ", ".join(part for part in (self.title, street, town, self.country) if part)


class Attachment(BaseModel):
    """File attached to an event, referenced by URL."""

    name: str
    url: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)


class Attendee(BaseModel):
    name: Optional[str] = None
    email: str
    required: bool = True


class Alarm(BaseModel):
    """VALARM: reminder relative to the start or end of each event instance.

    A negative ``trigger_offset`` fires before the boundary. With a repetition
    count the alarm fires again every ``repetition_duration`` after the first
    trigger.
    """

    trigger_relation: TriggerRelation = TriggerRelation.START
    trigger_offset: timedelta = timedelta(0)
    repetition_count: int = Field(default=0, ge=0)
    repetition_duration: Optional[timedelta] = None

    model_config = ConfigDict(validate_assignment=True)

    def trigger_times(self, event: Event) -> list[datetime]:
        """Return the instants this alarm fires for one (flat) event instance.

        Returns an empty list when the boundary the trigger is relative to is
        not set.
        """
        if self.trigger_relation is TriggerRelation.END:
            boundary = event.end_date_time
        else:
            boundary = event.start_date_time
        if boundary is None:
            return []
        first = boundary + self.trigger_offset
        if not self.repetition_count or not self.repetition_duration:
            return [first]
        return [first + self.repetition_duration * n for n in range(self.repetition_count + 1)]
