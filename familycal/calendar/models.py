"""Data models for family calendar events, recurrence and conflicts."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from familycal.core.timezone_utils import ensure_aware

DEFAULT_EVENT_COLOR = "#3b82f6"

# Prefix shown on virtual instances of a recurring event
RECURRING_TITLE_MARKER = "🔁"


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RecurrenceRule(BaseModel):
    """FREQ plus optional UNTIL date. No INTERVAL, BYDAY or EXDATE support."""

    model_config = ConfigDict(frozen=True)

    frequency: Frequency
    until: Optional[date] = Field(default=None, description="Last date an occurrence may fall on")


class ChecklistItem(BaseModel):
    """One line of an event checklist."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    text: str
    done: bool = Field(default=False, validation_alias=AliasChoices("done", "completed"))


class ReminderSetting(BaseModel):
    """Per-event reminder: how to notify and how long before start.

    The event editor stores the offset as ``time_offset_minutes``.
    """

    model_config = ConfigDict(populate_by_name=True)

    method: str = Field(default="notification", description="Delivery method, e.g. notification or email")
    minutes_before: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("minutes_before", "time_offset_minutes"),
        description="Minutes before event start",
    )


class FamilyEvent(BaseModel):
    """A persisted event row owned by a family.

    Accepts the store's ``start_time``/``end_time`` column names as well as
    ``start``/``end``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Event ID")
    family_id: Optional[str] = Field(default=None, description="Owning family")
    created_by: Optional[str] = Field(default=None, description="Member who created the event")
    title: str = Field(..., description="Event title")
    description: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    start: datetime = Field(..., validation_alias=AliasChoices("start", "start_time"))
    end: datetime = Field(..., validation_alias=AliasChoices("end", "end_time"))

    color: str = Field(default=DEFAULT_EVENT_COLOR, description="Display color tag")
    recurrence_rule: Optional[str] = Field(default=None, description="FREQ=...;UNTIL=YYYYMMDD")
    reminder_settings: list[ReminderSetting] = Field(default_factory=list)
    checklist: list[ChecklistItem] = Field(default_factory=list)

    @field_validator("start", "end")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("color", mode="before")
    @classmethod
    def _default_color(cls, value: Any) -> Any:
        return value or DEFAULT_EVENT_COLOR

    @field_validator("reminder_settings", "checklist", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _check_interval(self) -> "FamilyEvent":
        if self.end <= self.start:
            raise ValueError("event end must be after start")
        return self

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence_rule)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class EventInstance(BaseModel):
    """A calendar item ready for display.

    One-time events map to a single non-virtual item. Recurring events expand
    into virtual items that point back at their base event; virtual items are
    never stored and carry no notes, checklist or reminders of their own.
    """

    id: str = Field(..., description="Item ID (base ID plus start for virtual instances)")
    base_event_id: str = Field(..., description="ID of the persisted event to edit or delete")
    is_virtual_instance: bool = Field(default=False, description="True if generated from a recurrence rule")
    title: str
    start: datetime
    end: datetime
    color: str = DEFAULT_EVENT_COLOR
    description: str = ""
    location: str = ""
    notes: str = ""
    checklist: list[ChecklistItem] = Field(default_factory=list)
    reminder_settings: list[ReminderSetting] = Field(default_factory=list)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class ConflictingEvent(BaseModel):
    """An existing event that overlaps a proposed interval."""

    id: str
    title: str
    start: datetime
    end: datetime

    @classmethod
    def from_event(cls, event: FamilyEvent) -> "ConflictingEvent":
        return cls(id=event.id, title=event.title, start=event.start, end=event.end)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class ConflictResolution(BaseModel):
    """A suggested fix for a pair of conflicting events."""

    type: Literal["reschedule", "shorten"]
    description: str
    event_to_modify: str
    new_start: Optional[datetime] = None
    new_duration_minutes: Optional[int] = None

    @field_serializer("new_start", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


WindowBound = Union[date, datetime]


@dataclass(frozen=True)
class DisplayWindow:
    """Inclusive display window.

    A plain ``date`` bound covers that whole calendar day; a ``datetime``
    bound is compared as an instant (naive values are read as UTC).
    """

    start: WindowBound
    end: WindowBound

    @property
    def is_inverted(self) -> bool:
        """True when the window ends before it starts."""
        if isinstance(self.start, datetime) and isinstance(self.end, datetime):
            return ensure_aware(self.start) > ensure_aware(self.end)
        return _as_date(self.start) > _as_date(self.end)

    def contains_from_start(self, moment: datetime) -> bool:
        """True when ``moment`` is at or after the window start."""
        if isinstance(self.start, datetime):
            return moment >= ensure_aware(self.start)
        return moment.date() >= self.start

    def contains_until_end(self, moment: datetime) -> bool:
        """True when ``moment`` is at or before the window end."""
        if isinstance(self.end, datetime):
            return moment <= ensure_aware(self.end)
        return moment.date() <= self.end


def _as_date(bound: WindowBound) -> date:
    return bound.date() if isinstance(bound, datetime) else bound


class ReminderStatus(str, Enum):
    """Lifecycle of a queued reminder."""

    PENDING = "pending"
    READY_TO_SEND = "ready_to_send"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class ReminderQueueItem(BaseModel):
    """A row in the due-reminder polling table."""

    id: str
    user_id: str
    message: str
    send_at: datetime
    status: ReminderStatus = ReminderStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    sent_at: Optional[datetime] = None
    event_id: Optional[str] = None

    @field_validator("send_at", "sent_at")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return None if value is None else ensure_aware(value)

    @field_serializer("send_at", "sent_at", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()
