"""SQLAlchemy ORM models."""

from app.db.models.calendar import (
    Calendar,
    CalendarEvent,
    EventAttendee,
    UserCalendarPreference,
)
from app.db.models.crm import Company, Contact, Deal, DealStage
from app.db.models.users import AppUser

__all__ = [
    "AppUser",
    "Calendar",
    "CalendarEvent",
    "Company",
    "Contact",
    "Deal",
    "DealStage",
    "EventAttendee",
    "UserCalendarPreference",
]
