"""Per-user calendar visibility preferences."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.models import UserCalendarPreference
from app.db.query_builder import FilterBuilder, execute
from app.schemas.tenant import TenantContext
from app.services.calendar_service import calendar_in_tenant

logger = logging.getLogger(__name__)


class PreferenceServiceError(Exception):
    """Base exception for preference service errors."""

    pass


class UserRequiredError(PreferenceServiceError):
    """Preferences belong to a user; the tenant token carries none."""

    pass


def save_preferences(
    db: Session,
    ctx: TenantContext,
    preferences: list[dict[str, Any]],
) -> int:
    """
    Replace every preference row of the current user in the tenant.

    Entries naming a calendar outside the tenant are skipped. A calendar
    listed twice keeps its last value.

    Returns:
        Number of preference rows written
    """
    if not ctx.authenticated_user:
        raise UserRequiredError("Authentication required")

    fb = FilterBuilder().where("user_id = {}", ctx.user_id).scoped(None, ctx)
    execute(db, f"DELETE FROM user_calendar_preferences {fb.where_sql()}", fb.params)

    wanted: dict[str, bool] = {}
    for pref in preferences:
        wanted[pref["calendar_id"]] = bool(pref["active"])

    written = 0
    for calendar_id, active in wanted.items():
        if not calendar_in_tenant(db, ctx, calendar_id):
            continue
        db.add(
            UserCalendarPreference(
                user_id=ctx.user_id,
                calendar_id=calendar_id,
                active=active,
                client_id=ctx.client_id,
                app_id=ctx.app_id,
            )
        )
        written += 1
    db.flush()

    logger.info(
        "Saved %d calendar preferences",
        written,
        extra=build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id),
    )
    return written
