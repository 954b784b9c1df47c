"""Data models for calendar components, occurrences and the whats-next response."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LiteEventComponent(BaseModel):
    """One decoded VEVENT.

    A component with ``recurrence_id`` set is an override of a single
    instance of the recurring series sharing its ``uid``; otherwise it is a
    master. ``start`` keeps the zone it was authored in so recurrence rules
    iterate in wall-clock time across DST changes. ``recurrence_id``,
    ``exdates`` and ``rdates`` are stored as UTC instants.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    uid: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    organizer: Optional[str] = None
    status: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    recurrence_id: Optional[datetime] = None
    rrule: Optional[str] = None
    rdates: list[datetime] = Field(default_factory=list)
    exdates: list[datetime] = Field(default_factory=list)
    is_all_day: bool = False

    @property
    def is_override(self) -> bool:
        """Whether this component replaces one instance of a series."""
        return self.recurrence_id is not None

    @property
    def is_cancelled_status(self) -> bool:
        return (self.status or "").upper() == "CANCELLED"


class LiteOccurrence(BaseModel):
    """A concrete, non-cancelled meeting placed on the timeline.

    ``start`` and ``end`` are UTC instants.
    """

    model_config = ConfigDict(frozen=True)

    uid: str
    title: str
    location: Optional[str] = None
    organizer: Optional[str] = None
    start: datetime
    end: datetime
    status: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self) -> "LiteOccurrence":
        if self.end <= self.start:
            raise ValueError(f"Occurrence {self.uid} ends at or before its start")
        return self


class OccurrenceModel(BaseModel):
    """Serialized occurrence; times rendered as local ISO strings with offset."""

    uid: str
    title: str
    location: Optional[str] = None
    organizer: Optional[str] = None
    start: str
    end: str


class WindowModel(BaseModel):
    """Serialized day window."""

    start: str
    end: str
    tz: str


class WhatsNextResponse(BaseModel):
    """Response body for /api/whats-next; dump with ``by_alias=True``."""

    generated_at: str = Field(serialization_alias="generatedAt")
    window: WindowModel
    now: str
    minutes_until_next: Optional[int] = Field(default=None, serialization_alias="minutesUntilNext")
    minutes_until_small_alarm: Optional[int] = Field(
        default=None, serialization_alias="minutesUntilSmallAlarm"
    )
    is_overlapping_now: bool = Field(default=False, serialization_alias="isOverlappingNow")
    current: Optional[OccurrenceModel] = None
    next: Optional[OccurrenceModel] = None
    next_overlapping: Optional[OccurrenceModel] = Field(
        default=None, serialization_alias="nextOverlapping"
    )
    next_non_overlapping: Optional[OccurrenceModel] = Field(
        default=None, serialization_alias="nextNonOverlapping"
    )

    def to_body(self) -> dict:
        """Return the JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True)
