"""Calendar enums and default calendar templates."""

from dataclasses import dataclass
from enum import Enum


class EventType(str, Enum):
    """Kinds of calendar events."""

    MEETING = "meeting"
    CALL = "call"
    DEADLINE = "deadline"
    REMINDER = "reminder"
    PERSONAL = "personal"


class AttendeeStatus(str, Enum):
    """Attendee response state."""

    PENDING = "pending"


@dataclass(frozen=True)
class DefaultCalendarTemplate:
    key: str
    name: str
    color: str


# Seeded once per tenant, immutable afterwards
DEFAULT_CALENDARS: tuple[DefaultCalendarTemplate, ...] = (
    DefaultCalendarTemplate(key="work", name="Work", color="#4361ee"),
    DefaultCalendarTemplate(key="sales", name="Sales", color="#10b981"),
    DefaultCalendarTemplate(key="marketing", name="Marketing", color="#f59e0b"),
    DefaultCalendarTemplate(key="personal", name="Personal", color="#8b5cf6"),
)

# Events of deleted calendars and events without a valid calendar land here
FALLBACK_CALENDAR_KEY = "work"

DEFAULT_CALENDAR_COLOR = "#4361ee"
