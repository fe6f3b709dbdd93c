"""
Create-if-absent schema bootstrap.

No migrations: tables are created from the ORM metadata the first time a
handler needs them. Safe to call on every request and from several workers
at once.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import Table, inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from app.db.models import (
    AppUser,
    Calendar,
    CalendarEvent,
    Company,
    Contact,
    Deal,
    DealStage,
    EventAttendee,
    UserCalendarPreference,
)

logger = logging.getLogger(__name__)


# Referenced tables first
CALENDAR_TABLES: tuple[Table, ...] = (
    AppUser.__table__,
    Calendar.__table__,
    CalendarEvent.__table__,
    EventAttendee.__table__,
    UserCalendarPreference.__table__,
)

CRM_TABLES: tuple[Table, ...] = (
    AppUser.__table__,
    Company.__table__,
    Contact.__table__,
    DealStage.__table__,
    Deal.__table__,
)

ALL_TABLES: tuple[Table, ...] = tuple(dict.fromkeys(CALENDAR_TABLES + CRM_TABLES))


def _is_already_exists(exc: Exception) -> bool:
    return "already exists" in str(getattr(exc, "orig", exc)).lower()


def _create_table(bind: Engine | Connection | Session, table: Table) -> bool:
    try:
        if isinstance(bind, Engine):
            with bind.begin() as connection:
                table.create(bind=connection, checkfirst=True)
        elif isinstance(bind, Session):
            with bind.begin_nested():
                table.create(bind=bind.connection(), checkfirst=True)
        else:
            table.create(bind=bind, checkfirst=True)
    except (OperationalError, ProgrammingError) as exc:
        if not _is_already_exists(exc):
            raise
        logger.info("Table %s created concurrently, skipping", table.name)
        return False
    return True


def ensure_tables(
    bind: Engine | Connection | Session,
    tables: Iterable[Table] = ALL_TABLES,
) -> list[str]:
    """
    Create every table in `tables` that the database does not have yet.

    Indexes and constraints are created with their table. A concurrent
    creator winning the race surfaces as "already exists" and is treated
    as success.

    With an Engine each table is created and committed in its own
    transaction. With a Session each table gets a SAVEPOINT inside the
    request transaction and is committed with it. With a Connection the
    caller owns the transaction.

    Args:
        bind: Engine, connection or session to run DDL on
        tables: Tables to ensure, referenced tables first

    Returns:
        Names of the tables created by this call (empty when nothing was missing)
    """
    inspected = bind.connection() if isinstance(bind, Session) else bind
    existing = set(inspect(inspected).get_table_names())

    created: list[str] = []
    for table in tables:
        if table.name in existing:
            continue
        made = _create_table(bind, table)
        existing.add(table.name)
        if made:
            created.append(table.name)
            logger.info("Created table %s", table.name)
    return created
