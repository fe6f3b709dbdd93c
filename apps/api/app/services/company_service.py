"""Company service: filtered company listing, stats, CRUD and nested reads."""

import logging
import math
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer
from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.enums import StageType
from app.db.models import Company
from app.db.query_builder import (
    REVENUE_BUCKETS,
    SIZE_BUCKETS,
    FilterBuilder,
    execute,
    resolve_sort,
)
from app.db.schema import CRM_TABLES, ensure_tables
from app.schemas.tenant import TenantContext
from app.utils.datetime_parsing import utcnow
from app.utils.normalization import MAX_DB_ID, is_db_id
from app.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)


class CompanyServiceError(Exception):
    """Base exception for company service errors."""

    pass


class CompanyNotFoundError(CompanyServiceError):
    """Company not found, or not visible to the caller."""

    pass


class NoFieldsToUpdateError(CompanyServiceError):
    """Update request carried nothing to change."""

    pass


# Public sort key -> column expression. Never interpolate anything else.
COMPANY_SORT_FIELDS = {
    "name": "c.name",
    "industry": "c.industry",
    "size": "c.employees_count",
    "revenue": "c.annual_revenue",
    "location": "c.city",
    "status": "c.status",
    "deals": "open_deals",
    "created_at": "c.created_at",
    "updated_at": "c.updated_at",
}
DEFAULT_COMPANY_SORT = "c.name"

COMPANY_SEARCH_COLUMNS = ("c.name", "c.industry", "c.city", "c.country", "c.phone")

COMPANY_UPDATE_COLUMNS = {
    "name": "name",
    "industry": "industry",
    "employees_count": "employees_count",
    "website": "website",
    "phone": "phone",
    "address": "address",
    "city": "city",
    "state": "state",
    "postal_code": "postal_code",
    "country": "country",
    "annual_revenue": "annual_revenue",
    "status": "status",
    "notes": "notes",
    "is_public": "is_public",
}

TOP_INDUSTRIES_LIMIT = 5

_COMPANY_COLUMNS = ", ".join(
    f"c.{name}"
    for name in (
        "id",
        "name",
        "industry",
        "employees_count",
        "website",
        "phone",
        "address",
        "city",
        "state",
        "postal_code",
        "country",
        "annual_revenue",
        "status",
        "notes",
        "is_public",
        "created_by",
        "client_id",
        "app_id",
        "created_at",
        "updated_at",
    )
)

_ROW_TYPES = {
    "is_public": Boolean(),
    "created_at": DateTime(timezone=True),
    "updated_at": DateTime(timezone=True),
}


def ensure_crm_schema(db: Session) -> None:
    ensure_tables(db, CRM_TABLES)


def _visible(alias: str | None, ctx: TenantContext, prefix: str = "p") -> FilterBuilder:
    """Tenant scope plus own-or-public visibility."""
    return FilterBuilder(prefix).tenant(alias, ctx).visible_to(alias, ctx)


def _finite_float(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value}")
    return number


def _employee_count(value: str) -> int:
    number = int(value)
    if not 0 <= number <= MAX_DB_ID:
        raise ValueError(f"Employee count out of range: {value}")
    return number


def _log_context(ctx: TenantContext) -> dict[str, Any]:
    return build_log_context(client_id=ctx.client_id, app_id=ctx.app_id, user_id=ctx.user_id)


# =============================================================================
# Companies
# =============================================================================


def list_companies(
    db: Session,
    ctx: TenantContext,
    pagination: PaginationParams,
    *,
    sort: str | None = None,
    industry: str | None = None,
    status: str | None = None,
    size: str | None = None,
    revenue: str | None = None,
    search: str | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """
    Visible companies with their open (active-stage) deal counts.

    Returns:
        (companies, total_count)
    """
    fb = (
        _visible("c", ctx)
        .where_eq("c.industry", industry)
        .where_eq("c.status", status)
        .bucket("c.employees_count", size, SIZE_BUCKETS, coerce=_employee_count)
        .bucket("c.annual_revenue", revenue, REVENUE_BUCKETS, coerce=_finite_float)
        .search(COMPANY_SEARCH_COLUMNS, search)
    )
    deals_fb = (
        FilterBuilder("d")
        .where("ds.type = {}", StageType.ACTIVE.value)
        .tenant("d", ctx)
    )
    order_by = resolve_sort(sort, COMPANY_SORT_FIELDS, DEFAULT_COMPANY_SORT)

    total = execute(
        db, f"SELECT COUNT(*) FROM companies c {fb.where_sql()}", fb.params
    ).scalar_one()
    rows = execute(
        db,
        f"""
        SELECT {_COMPANY_COLUMNS},
            (
                SELECT COUNT(*) FROM deals d
                JOIN deal_stages ds ON ds.id = d.stage_id
                WHERE d.company_id = c.id {deals_fb.and_sql()}
            ) AS open_deals
        FROM companies c
        {fb.where_sql()}
        ORDER BY {order_by}, c.id ASC
        LIMIT :limit OFFSET :offset
        """,
        {
            **deals_fb.params,
            **fb.params,
            "limit": pagination.limit,
            "offset": pagination.offset,
        },
        result_types={**_ROW_TYPES, "open_deals": Integer()},
    ).mappings()
    return [dict(row) for row in rows], total


def company_stats(db: Session, ctx: TenantContext) -> dict[str, Any]:
    """
    Dashboard aggregates over the companies and deals visible to the caller.

    Each query carries its own per-alias predicates.
    """
    companies_fb = _visible(None, ctx)
    total_companies = execute(
        db, f"SELECT COUNT(*) FROM companies {companies_fb.where_sql()}", companies_fb.params
    ).scalar_one()

    industries_fb = _visible(None, ctx).where("industry IS NOT NULL")
    top_industries = [
        {"industry": row.industry, "count": row.company_count}
        for row in execute(
            db,
            f"SELECT industry, COUNT(*) AS company_count FROM companies {industries_fb.where_sql()} "
            "GROUP BY industry ORDER BY company_count DESC, industry ASC LIMIT :top",
            {**industries_fb.params, "top": TOP_INDUSTRIES_LIMIT},
        )
    ]

    def _deals_fb(stage_type: StageType) -> FilterBuilder:
        return (
            _visible("d", ctx)
            .tenant("ds", ctx)
            .where("ds.type = {}", stage_type.value)
        )

    deals_from = "FROM deals d JOIN deal_stages ds ON ds.id = d.stage_id"

    active_fb = _deals_fb(StageType.ACTIVE)
    active_deals = execute(
        db, f"SELECT COUNT(*) {deals_from} {active_fb.where_sql()}", active_fb.params
    ).scalar_one()

    won_fb = _deals_fb(StageType.WON)
    won = execute(
        db,
        "SELECT COALESCE(SUM(d.value), 0) AS total, COALESCE(AVG(d.value), 0) AS average "
        f"{deals_from} {won_fb.where_sql()}",
        won_fb.params,
    ).one()

    return {
        "totalCompanies": total_companies or 0,
        "activeDeals": active_deals or 0,
        "totalRevenue": float(won.total or 0),
        "averageDealSize": float(won.average or 0),
        "topIndustries": top_industries,
    }


def get_company(db: Session, ctx: TenantContext, company_id: int) -> dict[str, Any] | None:
    """Company visible to the caller, or None."""
    if not is_db_id(company_id):
        return None
    fb = _visible("c", ctx).where("c.id = {}", company_id)
    row = execute(
        db,
        f"SELECT {_COMPANY_COLUMNS} FROM companies c {fb.where_sql()}",
        fb.params,
        result_types=_ROW_TYPES,
    ).mappings().first()
    return dict(row) if row else None


def _fetch_company(db: Session, company_id: int) -> dict[str, Any]:
    """Row just written by this request, read back without visibility rules."""
    fb = FilterBuilder().where("c.id = {}", company_id)
    row = execute(
        db,
        f"SELECT {_COMPANY_COLUMNS} FROM companies c {fb.where_sql()}",
        fb.params,
        result_types=_ROW_TYPES,
    ).mappings().one()
    return dict(row)


def _require_company(db: Session, ctx: TenantContext, company_id: int) -> dict[str, Any]:
    company = get_company(db, ctx, company_id)
    if company is None:
        raise CompanyNotFoundError(
            "Company not found or you do not have permission to access it"
        )
    return company


def create_company(db: Session, ctx: TenantContext, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a company stamped with the caller's tenant and user."""
    values = {key: data[key] for key in COMPANY_UPDATE_COLUMNS if key in data}
    if "status" in values:
        values["status"] = getattr(values["status"], "value", values["status"])
    company = Company(
        **values,
        created_by=ctx.user_id,
        client_id=ctx.client_id,
        app_id=ctx.app_id,
    )
    db.add(company)
    db.flush()
    logger.info("Created company %s", company.id, extra=_log_context(ctx))
    return _fetch_company(db, company.id)


def update_company(
    db: Session,
    ctx: TenantContext,
    company_id: int,
    values: dict[str, Any],
) -> dict[str, Any]:
    """
    Partially update a visible company.

    Raises:
        CompanyNotFoundError: absent, outside the tenant or not visible
        NoFieldsToUpdateError: nothing to change
    """
    _require_company(db, ctx, company_id)

    changes = dict(values)
    if "status" in changes:
        changes["status"] = getattr(changes["status"], "value", changes["status"])

    fb = FilterBuilder().where("id = {}", company_id).tenant(None, ctx)
    set_sql, set_params = fb.assignments(changes, COMPANY_UPDATE_COLUMNS)
    if not set_sql:
        raise NoFieldsToUpdateError("No fields to update")

    execute(
        db,
        f"UPDATE companies SET {set_sql}, updated_at = :updated_at {fb.where_sql()}",
        {**set_params, "updated_at": utcnow(), **fb.params},
    )
    logger.info("Updated company %s", company_id, extra=_log_context(ctx))
    return _fetch_company(db, company_id)


def delete_company(db: Session, ctx: TenantContext, company_id: int) -> None:
    """
    Delete a visible company.

    Contacts and deals are kept; their company reference is cleared.

    Raises:
        CompanyNotFoundError: absent, outside the tenant or not visible
    """
    _require_company(db, ctx, company_id)

    for table in ("deals", "contacts"):
        detach_fb = FilterBuilder().where("company_id = {}", company_id).tenant(None, ctx)
        execute(
            db,
            f"UPDATE {table} SET company_id = NULL, updated_at = :updated_at "
            f"{detach_fb.where_sql()}",
            {"updated_at": utcnow(), **detach_fb.params},
        )

    fb = FilterBuilder().where("id = {}", company_id).tenant(None, ctx)
    execute(db, f"DELETE FROM companies {fb.where_sql()}", fb.params)
    logger.info("Deleted company %s", company_id, extra=_log_context(ctx))


# =============================================================================
# Nested reads
# =============================================================================


def company_contacts(db: Session, ctx: TenantContext, company_id: int) -> list[dict[str, Any]]:
    """
    Visible contacts of a visible company, by first then last name.

    Raises:
        CompanyNotFoundError: company absent or not visible
    """
    _require_company(db, ctx, company_id)

    fb = _visible("ct", ctx).where("ct.company_id = {}", company_id)
    rows = execute(
        db,
        "SELECT ct.id, ct.company_id, ct.first_name, ct.last_name, ct.email, ct.phone, "
        "ct.job_title, ct.is_public, ct.created_by, ct.created_at, ct.updated_at "
        f"FROM contacts ct {fb.where_sql()} "
        "ORDER BY ct.first_name ASC, ct.last_name ASC, ct.id ASC",
        fb.params,
        result_types=_ROW_TYPES,
    ).mappings()
    return [
        {**row, "full_name": full_name(row["first_name"], row["last_name"])}
        for row in rows
    ]


def company_deals(db: Session, ctx: TenantContext, company_id: int) -> list[dict[str, Any]]:
    """
    Visible deals of a visible company with stage and contact details,
    by expected close date.

    Raises:
        CompanyNotFoundError: company absent or not visible
    """
    _require_company(db, ctx, company_id)

    fb = _visible("d", ctx).where("d.company_id = {}", company_id)
    rows = execute(
        db,
        """
        SELECT d.id, d.title, d.value, d.company_id, d.contact_id, d.stage_id,
            d.expected_close_date, d.is_public, d.created_by, d.created_at, d.updated_at,
            ds.name AS stage_name, ds.type AS stage_type, ds.color AS stage_color,
            ct.first_name AS contact_first_name, ct.last_name AS contact_last_name
        FROM deals d
        JOIN deal_stages ds ON ds.id = d.stage_id
        LEFT JOIN contacts ct ON ct.id = d.contact_id
        """
        f"{fb.where_sql()} "
        "ORDER BY d.expected_close_date ASC, d.id ASC",
        fb.params,
        result_types={**_ROW_TYPES, "expected_close_date": Date()},
    ).mappings()

    deals = []
    for row in rows:
        deal = dict(row)
        first = deal.pop("contact_first_name")
        last = deal.pop("contact_last_name")
        deal["contact_name"] = full_name(first, last) if first else None
        deals.append(deal)
    return deals


def full_name(first_name: str | None, last_name: str | None) -> str:
    return " ".join(part for part in (first_name, last_name) if part)
