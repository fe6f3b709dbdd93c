"""Calendar schemas - Pydantic models for the calendar API (camelCase JSON)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.db.enums import EventType
from app.schemas.common import PaginationMeta
from app.utils.datetime_parsing import ensure_utc, parse_api_datetime
from app.utils.normalization import MAX_DB_ID, normalize_hex_color


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required_text(v: str | None, label: str) -> str:
    if v is None or not v.strip():
        raise ValueError(f"{label} is required")
    return v.strip()


# =============================================================================
# Events
# =============================================================================


# Columns that cannot be cleared with an explicit null on update
_NON_NULLABLE_EVENT_FIELDS = ("title", "start_date", "type", "is_all_day")


class EventCreate(CamelModel):
    """Request to create an event."""
    title: str = Field(..., max_length=255)
    start_date: datetime
    type: EventType = EventType.MEETING
    description: str | None = None
    end_date: datetime | None = None
    is_all_day: bool = False
    location: str | None = Field(None, max_length=255)
    reminder_minutes: int | None = Field(None, ge=0, le=MAX_DB_ID)
    calendar_id: str | None = Field(None, max_length=50)
    # Emails or user ids; unresolvable entries are dropped
    attendees: list[Any] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _required_text(v, "Title")
        return v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return None
            return parse_api_datetime(v)  # Raises ValueError on invalid
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_range(self) -> "EventCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class EventUpdate(CamelModel):
    """Request to update an event (partial). Only keys present are changed."""
    title: str | None = Field(None, max_length=255)
    start_date: datetime | None = None
    type: EventType | None = None
    description: str | None = None
    end_date: datetime | None = None
    is_all_day: bool | None = None
    location: str | None = Field(None, max_length=255)
    reminder_minutes: int | None = Field(None, ge=0, le=MAX_DB_ID)
    calendar_id: str | None = Field(None, max_length=50)
    attendees: list[Any] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _required_text(v, "Title")
        return v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return None
            return parse_api_datetime(v)
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_update(self) -> "EventUpdate":
        for name in _NON_NULLABLE_EVENT_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class CalendarRef(CamelModel):
    id: str | None = None
    name: str | None = None
    color: str | None = None


class AttendeeRead(CamelModel):
    id: int
    name: str
    email: str
    status: str


class EventRead(CamelModel):
    """Event as returned by list, upcoming, detail and write endpoints."""
    id: int
    title: str
    description: str = ""
    type: str
    start: datetime
    end: datetime | None = None
    is_all_day: bool = False
    location: str = ""
    reminder_minutes: int | None = None
    created_by: int | None = None
    calendar: CalendarRef
    attendee_count: int = 0

    @field_validator("description", "location", mode="before")
    @classmethod
    def blank_for_null(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("start", "end")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class EventDetail(EventRead):
    """Single event with its resolved attendees."""
    attendees: list[AttendeeRead] = Field(default_factory=list)


class EventListResponse(CamelModel):
    success: bool = True
    events: list[EventRead]
    pagination: PaginationMeta


class UpcomingEventsResponse(CamelModel):
    success: bool = True
    events: list[EventRead]


class EventDetailResponse(CamelModel):
    success: bool = True
    event: EventDetail


class EventWriteResponse(CamelModel):
    success: bool = True
    message: str
    data: EventDetail


# =============================================================================
# Calendars
# =============================================================================


class CalendarCreate(CamelModel):
    """Request to create a calendar."""
    name: str = Field(..., max_length=100)
    color: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _required_text(v, "Calendar name")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return normalize_hex_color(v)  # Raises ValueError on invalid


class CalendarUpdate(CamelModel):
    """Request to update a calendar (partial)."""
    name: str | None = Field(None, max_length=100)
    color: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Calendar name cannot be empty")
        if isinstance(v, str):
            return _required_text(v, "Calendar name")
        return v

    @field_validator("color", mode="before")
    @classmethod
    def validate_color(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Color must be a valid hex color")
        if isinstance(v, str):
            return normalize_hex_color(v)
        return v


class CalendarRead(CamelModel):
    id: str
    name: str
    color: str
    owner_id: int | None = None
    is_default: bool = False
    active: bool = True


class CalendarListResponse(CamelModel):
    success: bool = True
    calendars: list[CalendarRead]


class CalendarWriteResponse(CamelModel):
    success: bool = True
    message: str
    data: CalendarRead


# =============================================================================
# Preferences
# =============================================================================


class CalendarPreferenceInput(CamelModel):
    calendar_id: str = Field(..., min_length=1, max_length=50)
    active: bool


class CalendarPreferencesSave(CamelModel):
    """Replaces every preference row of the current user."""
    preferences: list[CalendarPreferenceInput]
