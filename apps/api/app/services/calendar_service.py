"""Calendar service: default calendar seeding and calendar CRUD."""

import logging
import secrets
from typing import Any

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.enums import DEFAULT_CALENDAR_COLOR, DEFAULT_CALENDARS, FALLBACK_CALENDAR_KEY
from app.db.models import Calendar
from app.db.query_builder import FilterBuilder, execute
from app.db.schema import CALENDAR_TABLES, ensure_tables
from app.schemas.tenant import TenantContext
from app.utils.datetime_parsing import utcnow
from app.utils.normalization import alnum_only

logger = logging.getLogger(__name__)


class CalendarServiceError(Exception):
    """Base exception for calendar service errors."""

    pass


class CalendarNotFoundError(CalendarServiceError):
    """Calendar not found in the tenant (or not visible)."""

    pass


class DefaultCalendarError(CalendarServiceError):
    """Default calendars cannot be modified or deleted."""

    pass


class NoFieldsToUpdateError(CalendarServiceError):
    """Update request carried nothing to change."""

    pass


CALENDAR_COLUMNS = {
    "id": String(),
    "name": String(),
    "color": String(),
    "owner_id": Integer(),
    "is_default": Boolean(),
    "client_id": Integer(),
    "app_id": String(),
}

CALENDAR_UPDATE_COLUMNS = {
    "name": "name",
    "color": "color",
}

USER_CALENDAR_APP_PREFIX_LEN = 12


# =============================================================================
# Provisioning
# =============================================================================


def ensure_calendar_schema(db: Session) -> None:
    ensure_tables(db, CALENDAR_TABLES)


def default_calendar_id(client_id: int, app_id: str, key: str) -> str:
    """Deterministic id of a seeded calendar: cal_<client>_<app alnum>_<key>."""
    return f"cal_{client_id}_{alnum_only(app_id)}_{key}"


def fallback_calendar_id(client_id: int, app_id: str) -> str:
    """Calendar that receives orphaned or unassigned events (the "work" default)."""
    return default_calendar_id(client_id, app_id, FALLBACK_CALENDAR_KEY)


def new_calendar_id(ctx: TenantContext) -> str:
    app_part = alnum_only(ctx.app_id)[:USER_CALENDAR_APP_PREFIX_LEN]
    return f"cal_{ctx.client_id}_{app_part}_{secrets.token_hex(4)}"


def _tenant_calendar_count(db: Session, ctx: TenantContext) -> int:
    fb = FilterBuilder().scoped(None, ctx)
    return execute(db, f"SELECT COUNT(*) FROM calendars {fb.where_sql()}", fb.params).scalar_one()


def seed_default_calendars(db: Session, ctx: TenantContext) -> bool:
    """
    Give a tenant its default calendars, once.

    No-op when the tenant already owns any calendar. Inserts run in a
    SAVEPOINT: a concurrent seeder winning the race (unique id conflict)
    counts as success; any other storage failure is logged and rolled back.

    Returns:
        False if seeding failed; callers keep going with whatever exists
    """
    log_context = build_log_context(client_id=ctx.client_id, app_id=ctx.app_id)
    if _tenant_calendar_count(db, ctx):
        return True

    try:
        with db.begin_nested():
            for template in DEFAULT_CALENDARS:
                db.add(
                    Calendar(
                        id=default_calendar_id(ctx.client_id, ctx.app_id, template.key),
                        name=template.name,
                        color=template.color,
                        owner_id=None,
                        is_default=True,
                        client_id=ctx.client_id,
                        app_id=ctx.app_id,
                    )
                )
            db.flush()
    except IntegrityError:
        logger.info("Default calendars already seeded concurrently", extra=log_context)
        return True
    except SQLAlchemyError:
        logger.exception("Failed to seed default calendars", extra=log_context)
        return False

    logger.info("Seeded %d default calendars", len(DEFAULT_CALENDARS), extra=log_context)
    return True


# =============================================================================
# Lookups
# =============================================================================


def calendar_in_tenant(db: Session, ctx: TenantContext, calendar_id: str | None) -> bool:
    """Write-side ownership check; always tenant scoped."""
    if not calendar_id:
        return False
    fb = FilterBuilder().where("id = {}", calendar_id).scoped(None, ctx)
    row = execute(db, f"SELECT id FROM calendars {fb.where_sql()}", fb.params).first()
    return row is not None


def get_calendar(db: Session, ctx: TenantContext, calendar_id: str) -> dict[str, Any] | None:
    fb = FilterBuilder().where("id = {}", calendar_id).tenant(None, ctx)
    row = execute(
        db,
        "SELECT id, name, color, owner_id, is_default, client_id, app_id "
        f"FROM calendars {fb.where_sql()}",
        fb.params,
        result_types=CALENDAR_COLUMNS,
    ).mappings().first()
    return dict(row) if row else None


def _require_mutable(db: Session, ctx: TenantContext, calendar_id: str) -> dict[str, Any]:
    calendar = get_calendar(db, ctx, calendar_id)
    if calendar is None:
        raise CalendarNotFoundError(
            "Calendar not found or you do not have permission to modify it"
        )
    if calendar["is_default"]:
        raise DefaultCalendarError("Default calendars cannot be modified or deleted")
    return calendar


# =============================================================================
# Calendar CRUD
# =============================================================================


def list_calendars(db: Session, ctx: TenantContext) -> list[dict[str, Any]]:
    """
    Tenant calendars, defaults first then by name.

    Each row carries the caller's `active` preference (true when unset).
    """
    active_by_calendar: dict[str, bool] = {}
    if ctx.authenticated_user:
        pref_fb = FilterBuilder().where("user_id = {}", ctx.user_id).tenant(None, ctx)
        prefs = execute(
            db,
            f"SELECT calendar_id, active FROM user_calendar_preferences {pref_fb.where_sql()}",
            pref_fb.params,
            result_types={"calendar_id": String(), "active": Boolean()},
        )
        active_by_calendar = {row.calendar_id: bool(row.active) for row in prefs}

    fb = FilterBuilder().tenant(None, ctx)
    rows = execute(
        db,
        "SELECT id, name, color, owner_id, is_default, client_id, app_id "
        f"FROM calendars {fb.where_sql()} "
        "ORDER BY is_default DESC, name ASC",
        fb.params,
        result_types=CALENDAR_COLUMNS,
    ).mappings()
    return [
        {**row, "active": active_by_calendar.get(row["id"], True)}
        for row in rows
    ]


def create_calendar(
    db: Session,
    ctx: TenantContext,
    name: str,
    color: str | None = None,
) -> dict[str, Any]:
    """Create a user calendar owned by the caller (if any)."""
    calendar = Calendar(
        id=new_calendar_id(ctx),
        name=name,
        color=color or DEFAULT_CALENDAR_COLOR,
        owner_id=ctx.user_id,
        is_default=False,
        client_id=ctx.client_id,
        app_id=ctx.app_id,
    )
    db.add(calendar)
    db.flush()
    logger.info(
        "Created calendar %s",
        calendar.id,
        extra=build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id),
    )
    return {
        "id": calendar.id,
        "name": calendar.name,
        "color": calendar.color,
        "owner_id": calendar.owner_id,
        "is_default": False,
        "active": True,
    }


def update_calendar(
    db: Session,
    ctx: TenantContext,
    calendar_id: str,
    values: dict[str, Any],
) -> dict[str, Any]:
    """
    Partially update a non-default calendar.

    Raises:
        CalendarNotFoundError: absent or outside the tenant
        DefaultCalendarError: seeded calendar
        NoFieldsToUpdateError: nothing to change
    """
    current = _require_mutable(db, ctx, calendar_id)

    fb = FilterBuilder().where("id = {}", calendar_id).tenant(None, ctx)
    set_sql, set_params = fb.assignments(values, CALENDAR_UPDATE_COLUMNS)
    if not set_sql:
        raise NoFieldsToUpdateError("No fields to update")

    execute(
        db,
        f"UPDATE calendars SET {set_sql}, updated_at = :updated_at {fb.where_sql()}",
        {**set_params, "updated_at": utcnow(), **fb.params},
    )
    updated = {**current, **{k: v for k, v in values.items() if k in CALENDAR_UPDATE_COLUMNS}}
    return {**updated, "active": True}


def delete_calendar(db: Session, ctx: TenantContext, calendar_id: str) -> int:
    """
    Delete a non-default calendar.

    Its events move to the tenant's "work" calendar and its preference rows
    go away, in the caller's transaction.

    Returns:
        Number of events reassigned

    Raises:
        CalendarNotFoundError: absent or outside the tenant
        DefaultCalendarError: seeded calendar
    """
    calendar = _require_mutable(db, ctx, calendar_id)
    # Admin mode can reach other tenants: fall back within the calendar's own tenant
    target_id = fallback_calendar_id(calendar["client_id"], calendar["app_id"])

    events_fb = FilterBuilder().where("calendar_id = {}", calendar_id).tenant(None, ctx)
    moved = execute(
        db,
        "UPDATE calendar_events SET calendar_id = :target_id, updated_at = :updated_at "
        f"{events_fb.where_sql()}",
        {"target_id": target_id, "updated_at": utcnow(), **events_fb.params},
    ).rowcount

    prefs_fb = FilterBuilder().where("calendar_id = {}", calendar_id).tenant(None, ctx)
    execute(db, f"DELETE FROM user_calendar_preferences {prefs_fb.where_sql()}", prefs_fb.params)

    calendar_fb = FilterBuilder().where("id = {}", calendar_id).tenant(None, ctx)
    execute(db, f"DELETE FROM calendars {calendar_fb.where_sql()}", calendar_fb.params)

    logger.info(
        "Deleted calendar %s, moved %d events to %s",
        calendar_id,
        moved,
        target_id,
        extra=build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id),
    )
    return moved
