"""Tests for per-tenant default calendar seeding."""

from sqlalchemy import func, select

from app.db.models import Calendar
from app.schemas.tenant import TenantContext
from app.services import calendar_service

TENANT = TenantContext(client_id=5, app_id="my-app_01", user_id=1)


def _calendars(db, ctx=TENANT):
    return db.scalars(
        select(Calendar)
        .where(Calendar.client_id == ctx.client_id, Calendar.app_id == ctx.app_id)
        .order_by(Calendar.id)
    ).all()


def test_default_calendar_ids_strip_non_alnum():
    assert calendar_service.default_calendar_id(5, "my-app_01", "work") == "cal_5_myapp01_work"
    assert calendar_service.fallback_calendar_id(5, "my-app_01") == "cal_5_myapp01_work"


def test_new_calendar_id_is_tenant_prefixed():
    first = calendar_service.new_calendar_id(TENANT)
    second = calendar_service.new_calendar_id(TENANT)

    assert first.startswith("cal_5_myapp01_")
    assert first != second
    assert len(first) <= 50


def test_seed_creates_four_defaults_once(db):
    assert calendar_service.seed_default_calendars(db, TENANT) is True
    assert calendar_service.seed_default_calendars(db, TENANT) is True
    db.commit()

    calendars = _calendars(db)
    assert sorted(c.id for c in calendars) == [
        "cal_5_myapp01_marketing",
        "cal_5_myapp01_personal",
        "cal_5_myapp01_sales",
        "cal_5_myapp01_work",
    ]
    assert all(c.is_default for c in calendars)
    assert all(c.owner_id is None for c in calendars)


def test_seed_skips_tenant_with_any_calendar(db):
    db.add(Calendar(id="cal_custom", name="Mine", color="#000000", client_id=5, app_id="my-app_01"))
    db.commit()

    assert calendar_service.seed_default_calendars(db, TENANT) is True
    db.commit()

    assert [c.id for c in _calendars(db)] == ["cal_custom"]


def test_seed_is_per_tenant(db):
    other = TenantContext(client_id=6, app_id="my-app_01")

    calendar_service.seed_default_calendars(db, TENANT)
    calendar_service.seed_default_calendars(db, other)
    db.commit()

    assert len(_calendars(db, TENANT)) == 4
    assert len(_calendars(db, other)) == 4
    assert db.scalar(select(func.count()).select_from(Calendar)) == 8


def test_seed_race_with_concurrent_seeder_counts_as_success(db, session_factory, monkeypatch):
    calendar_service.seed_default_calendars(db, TENANT)
    db.commit()

    # A second worker that checked before the first one inserted
    monkeypatch.setattr(calendar_service, "_tenant_calendar_count", lambda db, ctx: 0)

    with session_factory() as late:
        assert calendar_service.seed_default_calendars(late, TENANT) is True
        # Only the savepoint was rolled back, the session is still usable
        late.commit()

    assert len(_calendars(db)) == 4
