"""Enum definitions for application constants."""

from app.db.enums.calendar import (
    AttendeeStatus,
    DEFAULT_CALENDAR_COLOR,
    DEFAULT_CALENDARS,
    DefaultCalendarTemplate,
    EventType,
    FALLBACK_CALENDAR_KEY,
)
from app.db.enums.crm import CompanyStatus, StageType
from app.db.enums.defaults import (
    DEFAULT_ATTENDEE_STATUS,
    DEFAULT_COMPANY_STATUS,
    DEFAULT_EVENT_TYPE,
)

__all__ = [
    "AttendeeStatus",
    "CompanyStatus",
    "DEFAULT_ATTENDEE_STATUS",
    "DEFAULT_CALENDAR_COLOR",
    "DEFAULT_CALENDARS",
    "DEFAULT_COMPANY_STATUS",
    "DEFAULT_EVENT_TYPE",
    "DefaultCalendarTemplate",
    "EventType",
    "FALLBACK_CALENDAR_KEY",
    "StageType",
]
