"""Event service: filtered event reads, event CRUD and attendee reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.enums import DEFAULT_ATTENDEE_STATUS, DEFAULT_EVENT_TYPE
from app.db.models import CalendarEvent, EventAttendee
from app.db.query_builder import FilterBuilder, execute
from app.schemas.tenant import TenantContext
from app.services.calendar_service import calendar_in_tenant, fallback_calendar_id
from app.utils.datetime_parsing import ensure_utc, utcnow
from app.utils.normalization import (
    NUMERIC_ID_RE,
    is_db_id,
    normalize_email,
    normalize_optional_text,
)
from app.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)


class EventServiceError(Exception):
    """Base exception for event service errors."""

    pass


class EventNotFoundError(EventServiceError):
    """Event not found in the tenant."""

    pass


class NoFieldsToUpdateError(EventServiceError):
    """Update request carried nothing to change."""

    pass


class InvalidEventRangeError(EventServiceError):
    """Update would leave the event ending before it starts."""

    pass


EVENT_SEARCH_COLUMNS = ("e.title", "e.description", "e.location")

# Public (snake_case) field -> column for partial updates
EVENT_UPDATE_COLUMNS = {
    "title": "title",
    "description": "description",
    "type": "type",
    "start_date": "start_date",
    "end_date": "end_date",
    "is_all_day": "is_all_day",
    "location": "location",
    "reminder_minutes": "reminder_minutes",
    "calendar_id": "calendar_id",
}

EVENT_RESULT_TYPES = {
    "id": Integer(),
    "title": String(),
    "description": String(),
    "type": String(),
    "start_date": DateTime(timezone=True),
    "end_date": DateTime(timezone=True),
    "is_all_day": Boolean(),
    "location": String(),
    "reminder_minutes": Integer(),
    "calendar_id": String(),
    "created_by": Integer(),
    "calendar_name": String(),
    "calendar_color": String(),
    "attendee_count": Integer(),
}

_EVENT_SELECT = """
    SELECT
        e.id,
        e.title,
        e.description,
        e.type,
        e.start_date,
        e.end_date,
        e.is_all_day,
        e.location,
        e.reminder_minutes,
        e.calendar_id,
        e.created_by,
        c.name AS calendar_name,
        c.color AS calendar_color,
        (
            SELECT COUNT(*) FROM event_attendees ea
            WHERE ea.event_id = e.id
              AND ea.client_id = e.client_id
              AND ea.app_id = e.app_id
        ) AS attendee_count
    FROM calendar_events e
    LEFT JOIN calendars c
        ON c.id = e.calendar_id
        AND c.client_id = e.client_id
        AND c.app_id = e.app_id
"""


# =============================================================================
# Attendees
# =============================================================================


@dataclass(frozen=True)
class EmailAttendee:
    email: str


@dataclass(frozen=True)
class UserIdAttendee:
    user_id: int


Attendee = EmailAttendee | UserIdAttendee


def parse_attendee(raw: Any) -> Attendee | None:
    """
    Classify a raw attendee entry.

    Strings containing "@" are emails; ints and digit strings are user ids.
    Anything else, including ids no user row can carry, yields None.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return UserIdAttendee(raw) if is_db_id(raw) else None
    if isinstance(raw, str):
        value = raw.strip()
        if "@" in value:
            email = normalize_email(value)
            return EmailAttendee(email) if email else None
        if NUMERIC_ID_RE.match(value) and is_db_id(int(value)):
            return UserIdAttendee(int(value))
    return None


def resolve_attendee(db: Session, ctx: TenantContext, attendee: Attendee) -> int | None:
    """Tenant user id for an attendee, or None if no such user in the tenant."""
    fb = FilterBuilder()
    if isinstance(attendee, EmailAttendee):
        fb.where("LOWER(email) = {}", attendee.email)
    else:
        fb.where("id = {}", attendee.user_id)
    fb.scoped(None, ctx)
    return execute(
        db, f"SELECT id FROM app_users {fb.where_sql()} ORDER BY id LIMIT 1", fb.params
    ).scalar_one_or_none()


def resolve_attendees(db: Session, ctx: TenantContext, raw_attendees: list[Any]) -> list[int]:
    """Resolve entries to distinct tenant user ids; unresolvable entries are dropped."""
    user_ids: list[int] = []
    for raw in raw_attendees:
        attendee = parse_attendee(raw)
        if attendee is None:
            continue
        user_id = resolve_attendee(db, ctx, attendee)
        if user_id is not None and user_id not in user_ids:
            user_ids.append(user_id)
    return user_ids


def _add_attendees(db: Session, owner: TenantContext, event_id: int, user_ids: list[int]) -> None:
    # Rows carry the event's tenant, which differs from the caller's in admin mode
    for user_id in user_ids:
        db.add(
            EventAttendee(
                event_id=event_id,
                user_id=user_id,
                status=DEFAULT_ATTENDEE_STATUS.value,
                client_id=owner.client_id,
                app_id=owner.app_id,
            )
        )
    db.flush()


def replace_attendees(
    db: Session,
    ctx: TenantContext,
    owner: TenantContext,
    event_id: int,
    raw_attendees: list[Any],
) -> list[int]:
    """
    Delete every attendee of the event, then insert the resolved set.

    `owner` is the tenant the event belongs to; attendees are resolved
    among its users.
    """
    fb = FilterBuilder().where("event_id = {}", event_id).tenant(None, ctx)
    execute(db, f"DELETE FROM event_attendees {fb.where_sql()}", fb.params)
    user_ids = resolve_attendees(db, owner, raw_attendees)
    _add_attendees(db, owner, event_id, user_ids)
    return user_ids


def list_attendees(db: Session, ctx: TenantContext, event_id: int) -> list[dict[str, Any]]:
    fb = FilterBuilder().where("ea.event_id = {}", event_id).tenant("ea", ctx)
    rows = execute(
        db,
        "SELECT u.id, u.name, u.email, ea.status "
        "FROM event_attendees ea JOIN app_users u ON u.id = ea.user_id "
        f"{fb.where_sql()} ORDER BY u.name ASC, u.id ASC",
        fb.params,
    ).mappings()
    return [dict(row) for row in rows]


# =============================================================================
# Reads
# =============================================================================


def to_event_dict(row: Any) -> dict[str, Any]:
    """Flatten an event row into the API shape (calendar nested)."""
    return {
        "id": row["id"],
        "title": row["title"],
        "description": row["description"],
        "type": row["type"],
        "start": row["start_date"],
        "end": row["end_date"],
        "is_all_day": bool(row["is_all_day"]),
        "location": row["location"],
        "reminder_minutes": row["reminder_minutes"],
        "created_by": row["created_by"],
        "calendar": {
            "id": row["calendar_id"],
            "name": row["calendar_name"],
            "color": row["calendar_color"],
        },
        "attendee_count": row["attendee_count"] or 0,
    }


def list_events(
    db: Session,
    ctx: TenantContext,
    pagination: PaginationParams,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    calendar_ids: list[str] | None = None,
    event_type: str | None = None,
    search: str | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """
    Events overlapping [start, end], ordered by start date.

    Returns:
        (events, total_count)
    """
    fb = (
        FilterBuilder()
        .tenant("e", ctx)
        .date_range(
            start,
            end,
            start_column="e.start_date",
            end_column="e.end_date",
            all_day_column="e.is_all_day",
        )
        .where_in("e.calendar_id", calendar_ids)
        .where_eq("e.type", event_type)
        .search(EVENT_SEARCH_COLUMNS, search)
    )

    total = execute(
        db, f"SELECT COUNT(*) FROM calendar_events e {fb.where_sql()}", fb.params
    ).scalar_one()
    rows = execute(
        db,
        f"{_EVENT_SELECT} {fb.where_sql()} "
        "ORDER BY e.start_date ASC, e.id ASC LIMIT :limit OFFSET :offset",
        {**fb.params, "limit": pagination.limit, "offset": pagination.offset},
        result_types=EVENT_RESULT_TYPES,
    ).mappings()
    return [to_event_dict(row) for row in rows], total


def upcoming_events(db: Session, ctx: TenantContext, limit: int = 5) -> list[dict[str, Any]]:
    """Next `limit` events starting now or later."""
    fb = FilterBuilder().where("e.start_date >= {}", utcnow()).tenant("e", ctx)
    rows = execute(
        db,
        f"{_EVENT_SELECT} {fb.where_sql()} ORDER BY e.start_date ASC, e.id ASC LIMIT :limit",
        {**fb.params, "limit": limit},
        result_types=EVENT_RESULT_TYPES,
    ).mappings()
    return [to_event_dict(row) for row in rows]


def get_event(db: Session, ctx: TenantContext, event_id: int) -> dict[str, Any] | None:
    """Event with its attendees, or None when absent or outside the tenant."""
    if not is_db_id(event_id):
        return None
    fb = FilterBuilder().where("e.id = {}", event_id).tenant("e", ctx)
    row = execute(
        db, f"{_EVENT_SELECT} {fb.where_sql()}", fb.params, result_types=EVENT_RESULT_TYPES
    ).mappings().first()
    if row is None:
        return None
    event = to_event_dict(row)
    event["attendees"] = list_attendees(db, ctx, event_id)
    return event


def _find_event(db: Session, ctx: TenantContext, event_id: int) -> Any | None:
    """Stored dates and owning tenant of an event the caller may change."""
    if not is_db_id(event_id):
        return None
    fb = FilterBuilder().where("id = {}", event_id).tenant(None, ctx)
    return execute(
        db,
        f"SELECT id, start_date, end_date, client_id, app_id FROM calendar_events {fb.where_sql()}",
        fb.params,
        result_types={"start_date": DateTime(timezone=True), "end_date": DateTime(timezone=True)},
    ).mappings().first()


def _event_owner(ctx: TenantContext, event: Any) -> TenantContext:
    if (event["client_id"], event["app_id"]) == (ctx.client_id, ctx.app_id):
        return ctx
    return ctx.model_copy(update={"client_id": event["client_id"], "app_id": event["app_id"]})


# =============================================================================
# Writes
# =============================================================================


def create_event(db: Session, ctx: TenantContext, data: dict[str, Any]) -> dict[str, Any]:
    """
    Insert an event and its attendees in the caller's transaction.

    An unknown or foreign calendarId lands the event on the tenant's
    "work" calendar.
    """
    calendar_id = data.get("calendar_id")
    if not calendar_in_tenant(db, ctx, calendar_id):
        calendar_id = fallback_calendar_id(ctx.client_id, ctx.app_id)

    event_type = data.get("type") or DEFAULT_EVENT_TYPE
    event = CalendarEvent(
        title=data["title"],
        description=normalize_optional_text(data.get("description")),
        type=getattr(event_type, "value", event_type),
        start_date=data["start_date"],
        end_date=data.get("end_date"),
        is_all_day=bool(data.get("is_all_day")),
        location=normalize_optional_text(data.get("location")),
        reminder_minutes=data.get("reminder_minutes"),
        calendar_id=calendar_id,
        created_by=ctx.user_id,
        client_id=ctx.client_id,
        app_id=ctx.app_id,
    )
    db.add(event)
    db.flush()

    user_ids = resolve_attendees(db, ctx, data.get("attendees") or [])
    _add_attendees(db, ctx, event.id, user_ids)

    logger.info(
        "Created event %s on %s with %d attendees",
        event.id,
        calendar_id,
        len(user_ids),
        extra=build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id),
    )
    return get_event(db, ctx, event.id)


def update_event(
    db: Session,
    ctx: TenantContext,
    event_id: int,
    values: dict[str, Any],
    attendees: list[Any] | None = None,
) -> dict[str, Any]:
    """
    Partially update an event. `attendees`, when given, replaces the set.

    A calendarId outside the tenant is ignored.

    Raises:
        EventNotFoundError: absent or outside the tenant
        NoFieldsToUpdateError: nothing to change
        InvalidEventRangeError: the result would end before it starts
    """
    event = _find_event(db, ctx, event_id)
    if event is None:
        raise EventNotFoundError("Event not found or you do not have permission to update it")

    changes = dict(values)
    if "calendar_id" in changes and not calendar_in_tenant(db, ctx, changes["calendar_id"]):
        changes.pop("calendar_id")
    for key in ("description", "location"):
        if key in changes:
            changes[key] = normalize_optional_text(changes[key])
    if "type" in changes:
        changes["type"] = getattr(changes["type"], "value", changes["type"])

    start_date = ensure_utc(changes.get("start_date", event["start_date"]))
    end_date = ensure_utc(changes.get("end_date", event["end_date"]))
    if end_date is not None and start_date is not None and end_date < start_date:
        raise InvalidEventRangeError("End date cannot be before start date")

    fb = FilterBuilder().where("id = {}", event_id).tenant(None, ctx)
    set_sql, set_params = fb.assignments(changes, EVENT_UPDATE_COLUMNS)
    if not set_sql and attendees is None:
        raise NoFieldsToUpdateError("No fields to update")

    if set_sql:
        execute(
            db,
            f"UPDATE calendar_events SET {set_sql}, updated_at = :updated_at {fb.where_sql()}",
            {**set_params, "updated_at": utcnow(), **fb.params},
        )
    if attendees is not None:
        replace_attendees(db, ctx, _event_owner(ctx, event), event_id, attendees)

    logger.info(
        "Updated event %s",
        event_id,
        extra=build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id),
    )
    return get_event(db, ctx, event_id)


def delete_event(db: Session, ctx: TenantContext, event_id: int) -> None:
    """
    Delete an event; its attendees go with it (ON DELETE CASCADE).

    Raises:
        EventNotFoundError: absent or outside the tenant
    """
    if not is_db_id(event_id):
        raise EventNotFoundError("Event not found or you do not have permission to delete it")
    fb = FilterBuilder().where("id = {}", event_id).tenant(None, ctx)
    deleted = execute(db, f"DELETE FROM calendar_events {fb.where_sql()}", fb.params).rowcount
    if not deleted:
        raise EventNotFoundError("Event not found or you do not have permission to delete it")
    logger.info(
        "Deleted event %s",
        event_id,
        extra=build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id),
    )
