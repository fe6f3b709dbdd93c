"""Pydantic schemas for API request/response models."""

from app.schemas.calendar import (
    CalendarCreate,
    CalendarPreferencesSave,
    CalendarRead,
    CalendarUpdate,
    EventCreate,
    EventDetail,
    EventRead,
    EventUpdate,
)
from app.schemas.common import MessageResponse, PaginationMeta
from app.schemas.company import (
    CompanyCreate,
    CompanyListItem,
    CompanyRead,
    CompanyStats,
    CompanyUpdate,
    ContactRead,
    DealRead,
)
from app.schemas.tenant import TenantContext

__all__ = [
    # Tenant
    "TenantContext",
    # Common
    "MessageResponse",
    "PaginationMeta",
    # Calendar
    "CalendarCreate",
    "CalendarPreferencesSave",
    "CalendarRead",
    "CalendarUpdate",
    "EventCreate",
    "EventDetail",
    "EventRead",
    "EventUpdate",
    # Companies
    "CompanyCreate",
    "CompanyListItem",
    "CompanyRead",
    "CompanyStats",
    "CompanyUpdate",
    "ContactRead",
    "DealRead",
]
