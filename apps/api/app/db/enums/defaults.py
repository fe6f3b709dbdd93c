"""Centralized defaults for enums."""

from app.db.enums.calendar import AttendeeStatus, EventType
from app.db.enums.crm import CompanyStatus


DEFAULT_EVENT_TYPE: EventType = EventType.MEETING
DEFAULT_ATTENDEE_STATUS: AttendeeStatus = AttendeeStatus.PENDING
DEFAULT_COMPANY_STATUS: CompanyStatus = CompanyStatus.ACTIVE
