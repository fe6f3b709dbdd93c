"""Tests for the tenant-aware WHERE clause builder."""

import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import DateTime, Numeric

from app.db.query_builder import (
    REVENUE_BUCKETS,
    SIZE_BUCKETS,
    Bucket,
    FilterBuilder,
    build_statement,
    resolve_sort,
)
from app.schemas.tenant import TenantContext

PLACEHOLDER = re.compile(r":p\d+")

TENANT = TenantContext(client_id=3, app_id="shop", user_id=9)
ADMIN = TenantContext(client_id=3, app_id="shop", user_id=9, apply_rls=False)
ANONYMOUS = TenantContext(client_id=3, app_id="shop")


def _placeholders(fb: FilterBuilder) -> list[str]:
    return PLACEHOLDER.findall(fb.where_sql())


def test_empty_builder_renders_nothing():
    fb = FilterBuilder()

    assert fb.where_sql() == ""
    assert fb.and_sql() == ""
    assert fb.params == {}
    assert not fb


def test_placeholders_and_values_line_up():
    fb = (
        FilterBuilder()
        .tenant("e", TENANT)
        .where_in("e.calendar_id", ["a", "b", "a"])
        .where_eq("e.type", "call")
        .search(("e.title", "e.location"), "Standup")
        .date_range(
            datetime(2026, 1, 1, tzinfo=timezone.utc),
            datetime(2026, 1, 31, tzinfo=timezone.utc),
            start_column="e.start_date",
            end_column="e.end_date",
            all_day_column="e.is_all_day",
        )
    )

    names = _placeholders(fb)
    assert len(names) == len(fb.parameters)
    assert [name[1:] for name in names] == list(fb.params)
    assert fb.where_sql().startswith("WHERE e.client_id = :p0 AND e.app_id = :p1")
    assert fb.params["p0"] == 3
    assert fb.params["p1"] == "shop"


def test_where_rejects_mismatched_values():
    fb = FilterBuilder()

    with pytest.raises(ValueError):
        fb.where("a = {} AND b = {}", 1)
    with pytest.raises(ValueError):
        fb.where("a = {}", 1, 2)
    assert fb.where_sql() == ""


def test_tenant_is_noop_without_isolation():
    fb = FilterBuilder().tenant("c", ADMIN).visible_to("c", ADMIN)

    assert fb.where_sql() == ""


def test_scoped_applies_even_without_isolation():
    fb = FilterBuilder().scoped(None, ADMIN)

    assert fb.where_sql() == "WHERE client_id = :p0 AND app_id = :p1"
    assert fb.parameters == [3, "shop"]


def test_visible_to_requires_user():
    assert FilterBuilder().visible_to("c", ANONYMOUS).where_sql() == ""

    fb = FilterBuilder().visible_to("c", TENANT)
    assert fb.where_sql() == "WHERE (c.created_by = :p0 OR c.is_public = :p1)"
    assert fb.parameters == [9, True]


def test_date_range_keeps_all_day_rows():
    start = datetime(2026, 2, 1, tzinfo=timezone.utc)
    end = datetime(2026, 2, 28, tzinfo=timezone.utc)
    fb = FilterBuilder().date_range(
        start, end, start_column="s", end_column="e", all_day_column="d"
    )

    assert fb.clauses == ["(e >= :p0 OR d = :p1)", "(s <= :p2 OR d = :p3)"]
    assert fb.parameters == [start, True, end, True]


def test_where_in_skips_empty_and_dedupes():
    assert FilterBuilder().where_in("x", []).where_in("x", None).where_sql() == ""

    fb = FilterBuilder().where_in("x", ["a", "b", "a"])
    assert fb.where_sql() == "WHERE x IN (:p0, :p1)"
    assert fb.parameters == ["a", "b"]


def test_where_eq_skips_blank():
    assert FilterBuilder().where_eq("x", None).where_eq("x", "").where_sql() == ""
    assert FilterBuilder().where_eq("x", 0).parameters == [0]


def test_search_escapes_like_wildcards():
    fb = FilterBuilder().search(("c.name", "c.city"), " 100%_Off! ")

    assert fb.where_sql() == (
        "WHERE (LOWER(c.name) LIKE :p0 ESCAPE '!' OR LOWER(c.city) LIKE :p1 ESCAPE '!')"
    )
    assert fb.parameters == ["%100!%!_off!!%", "%100!%!_off!!%"]


def test_search_ignores_blank_term():
    assert FilterBuilder().search(("c.name",), "   ").where_sql() == ""


@pytest.mark.parametrize(
    "label, expected",
    [
        ("1-10", "c.employees_count BETWEEN 1 AND 10"),
        ("11-50", "c.employees_count BETWEEN 11 AND 50"),
        ("501-1000", "c.employees_count BETWEEN 501 AND 1000"),
        ("1001+", "c.employees_count > 1000"),
    ],
)
def test_size_buckets(label, expected):
    fb = FilterBuilder().bucket("c.employees_count", label, SIZE_BUCKETS)

    assert fb.clauses == [expected]
    assert fb.params == {}


@pytest.mark.parametrize(
    "label, expected",
    [
        ("<1M", "c.annual_revenue < 1000000"),
        ("1-10M", "c.annual_revenue BETWEEN 1000000 AND 10000000"),
        ("100M+", "c.annual_revenue > 100000000"),
    ],
)
def test_revenue_buckets(label, expected):
    fb = FilterBuilder().bucket("c.annual_revenue", label, REVENUE_BUCKETS, coerce=float)

    assert fb.clauses == [expected]


def test_bucket_falls_back_to_exact_number():
    fb = FilterBuilder().bucket("c.employees_count", "25", SIZE_BUCKETS)

    assert fb.where_sql() == "WHERE c.employees_count = :p0"
    assert fb.parameters == [25]


def test_bucket_ignores_garbage():
    fb = FilterBuilder().bucket("c.employees_count", "lots; DROP TABLE companies", SIZE_BUCKETS)

    assert fb.where_sql() == ""


def test_bucket_render_open_ended_inclusive():
    assert Bucket(low=5).render("n") == "n >= 5"
    assert Bucket(high=5).render("n") == "n <= 5"


def test_prefixes_keep_builders_apart():
    outer = FilterBuilder().where("c.id = {}", 1)
    inner = FilterBuilder("d").where("d.stage = {}", "active")

    assert set(outer.params).isdisjoint(inner.params)
    assert inner.and_sql() == "AND d.stage = :d0"


def test_assignments_only_allow_listed_keys():
    fb = FilterBuilder()
    set_sql, params = fb.assignments(
        {"name": "New", "color": "#000000", "owner_id": 5},
        {"name": "name", "color": "color"},
    )

    assert set_sql == "name = :s0, color = :s1"
    assert params == {"s0": "New", "s1": "#000000"}
    assert fb.assignments({"owner_id": 5}, {"name": "name"}) == ("", {})


@pytest.mark.parametrize(
    "sort, expected",
    [
        (None, "c.name ASC"),
        ("name", "c.name ASC"),
        ("-revenue", "c.annual_revenue DESC"),
        ("unknown", "c.name ASC"),
        ("name; DROP TABLE companies", "c.name ASC"),
        ("--name", "c.name ASC"),
    ],
)
def test_resolve_sort_allow_list(sort, expected):
    allowed = {"name": "c.name", "revenue": "c.annual_revenue"}

    assert resolve_sort(sort, allowed, "c.name") == expected


def test_build_statement_types_datetime_and_decimal_binds():
    statement = build_statement(
        "SELECT 1 WHERE a >= :when AND b = :amount AND c = :label",
        {"when": datetime(2026, 1, 1, tzinfo=timezone.utc), "amount": Decimal("9.50"), "label": "x"},
    )

    binds = statement._bindparams
    assert isinstance(binds["when"].type, DateTime)
    assert binds["when"].type.timezone is True
    assert isinstance(binds["amount"].type, Numeric)
