"""Calendar router - events, calendars and per-user calendar preferences.

One handler set, included twice by the app:
- /api/calendar/...                   tenant app taken from the token
- /api/apps/{app_id}/calendar/...     tenant app taken from the path
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_tenant_context, require_user
from app.db.enums import EventType
from app.schemas.calendar import (
    CalendarCreate,
    CalendarListResponse,
    CalendarPreferencesSave,
    CalendarUpdate,
    CalendarWriteResponse,
    EventCreate,
    EventDetailResponse,
    EventListResponse,
    EventUpdate,
    EventWriteResponse,
    UpcomingEventsResponse,
)
from app.schemas.common import MessageResponse
from app.schemas.tenant import TenantContext
from app.services import calendar_service, event_service, preference_service
from app.services.calendar_service import (
    CalendarNotFoundError,
    DefaultCalendarError,
)
from app.services.event_service import EventNotFoundError
from app.services.preference_service import UserRequiredError
from app.utils.datetime_parsing import parse_api_datetime
from app.utils.normalization import split_csv
from app.utils.pagination import PaginationParams, get_pagination, pagination_meta

router = APIRouter(tags=["calendar"])

UPCOMING_DEFAULT_LIMIT = 5
UPCOMING_MAX_LIMIT = 50


def _provision(db: Session, tenant: TenantContext) -> None:
    """Create missing calendar tables and the tenant's default calendars."""
    calendar_service.ensure_calendar_schema(db)
    calendar_service.seed_default_calendars(db, tenant)


def _parse_range_bound(value: str | None, label: str) -> datetime | None:
    try:
        return parse_api_datetime(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {label} date: {e}")


# =============================================================================
# Events
# =============================================================================


@router.get("/events", response_model=EventListResponse)
def list_events(
    start: str | None = Query(None, description="Range start (ISO 8601)"),
    end: str | None = Query(None, description="Range end (ISO 8601)"),
    calendars: str | None = Query(None, description="Comma separated calendar ids"),
    event_type: EventType | None = Query(None, alias="type"),
    search: str | None = Query(None, max_length=200),
    pagination: PaginationParams = Depends(get_pagination),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """List events overlapping a date range, ordered by start date."""
    range_start = _parse_range_bound(start, "start")
    range_end = _parse_range_bound(end, "end")

    _provision(db, tenant)
    events, total = event_service.list_events(
        db,
        tenant,
        pagination,
        start=range_start,
        end=range_end,
        calendar_ids=split_csv(calendars),
        event_type=event_type.value if event_type else None,
        search=search,
    )
    db.commit()
    return {
        "success": True,
        "events": events,
        "pagination": pagination_meta(total, pagination),
    }


@router.get("/events/upcoming", response_model=UpcomingEventsResponse)
def upcoming_events(
    limit: int = Query(UPCOMING_DEFAULT_LIMIT, ge=1, le=UPCOMING_MAX_LIMIT),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Next events starting from now."""
    _provision(db, tenant)
    events = event_service.upcoming_events(db, tenant, limit)
    db.commit()
    return {"success": True, "events": events}


@router.get("/events/{event_id}", response_model=EventDetailResponse)
def get_event(
    event_id: int,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get an event with its attendees."""
    calendar_service.ensure_calendar_schema(db)
    event = event_service.get_event(db, tenant, event_id)
    db.commit()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"success": True, "event": event}


@router.post(
    "/events",
    response_model=EventWriteResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_event(
    data: EventCreate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Create an event. Unknown calendars fall back to the default work calendar."""
    _provision(db, tenant)
    event = event_service.create_event(db, tenant, data.model_dump())
    db.commit()
    return {"success": True, "message": "Event created successfully", "data": event}


@router.put("/events/{event_id}", response_model=EventWriteResponse)
def update_event(
    event_id: int,
    data: EventUpdate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Update an event (partial). Attendees, when sent, replace the current set."""
    calendar_service.ensure_calendar_schema(db)
    values = data.model_dump(exclude_unset=True, exclude={"attendees"})
    # A present "attendees" key always replaces the set; null clears it
    attendees = (data.attendees or []) if "attendees" in data.model_fields_set else None
    try:
        event = event_service.update_event(db, tenant, event_id, values, attendees)
        db.commit()
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (event_service.NoFieldsToUpdateError, event_service.InvalidEventRangeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Event updated successfully", "data": event}


@router.delete("/events/{event_id}", response_model=MessageResponse)
def delete_event(
    event_id: int,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Delete an event and its attendees."""
    calendar_service.ensure_calendar_schema(db)
    try:
        event_service.delete_event(db, tenant, event_id)
        db.commit()
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Event deleted successfully"}


# =============================================================================
# Calendars
# =============================================================================


@router.get("/calendars", response_model=CalendarListResponse)
def list_calendars(
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """List the tenant's calendars with the caller's visibility preferences."""
    _provision(db, tenant)
    calendars = calendar_service.list_calendars(db, tenant)
    db.commit()
    return {"success": True, "calendars": calendars}


@router.post(
    "/calendars",
    response_model=CalendarWriteResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_calendar(
    data: CalendarCreate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Create a calendar."""
    _provision(db, tenant)
    calendar = calendar_service.create_calendar(db, tenant, data.name, data.color)
    db.commit()
    return {"success": True, "message": "Calendar created successfully", "data": calendar}


@router.put("/calendars/{calendar_id}", response_model=CalendarWriteResponse)
def update_calendar(
    calendar_id: str,
    data: CalendarUpdate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Rename or recolor a calendar. Default calendars are read-only."""
    calendar_service.ensure_calendar_schema(db)
    try:
        calendar = calendar_service.update_calendar(
            db, tenant, calendar_id, data.model_dump(exclude_unset=True)
        )
        db.commit()
    except CalendarNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DefaultCalendarError:
        raise HTTPException(status_code=403, detail="Default calendars cannot be modified")
    except calendar_service.NoFieldsToUpdateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Calendar updated successfully", "data": calendar}


@router.delete("/calendars/{calendar_id}", response_model=MessageResponse)
def delete_calendar(
    calendar_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Delete a calendar; its events move to the default work calendar."""
    calendar_service.ensure_calendar_schema(db)
    try:
        calendar_service.delete_calendar(db, tenant, calendar_id)
        db.commit()
    except CalendarNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DefaultCalendarError:
        raise HTTPException(status_code=403, detail="Default calendars cannot be deleted")
    return {"success": True, "message": "Calendar deleted successfully"}


# =============================================================================
# Preferences
# =============================================================================


@router.post("/preferences", response_model=MessageResponse)
def save_preferences(
    data: CalendarPreferencesSave,
    tenant: TenantContext = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Replace the caller's calendar visibility preferences."""
    calendar_service.ensure_calendar_schema(db)
    try:
        preference_service.save_preferences(
            db, tenant, [pref.model_dump() for pref in data.preferences]
        )
        db.commit()
    except UserRequiredError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return {"success": True, "message": "Calendar preferences saved"}
