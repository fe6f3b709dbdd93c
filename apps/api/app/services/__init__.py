"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from app.services import calendar_service
from app.services import company_service
from app.services import event_service
from app.services import preference_service

__all__ = [
    "calendar_service",
    "company_service",
    "event_service",
    "preference_service",
]
