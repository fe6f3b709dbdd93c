"""
Tenant-aware WHERE clause builder for raw SQL reads and bulk writes.

Every predicate is appended together with its bound values in one call,
so the clause text and the parameter list always line up. Placeholders
are generated (:p0, :p1, ...) and never derived from client input.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import DateTime, Numeric, TextClause, bindparam, text
from sqlalchemy.engine import Result
from sqlalchemy.sql.selectable import TextualSelect
from sqlalchemy.types import TypeEngine
from sqlalchemy.orm import Session

from app.schemas.tenant import TenantContext


# =============================================================================
# Bucket allow-lists
# =============================================================================


@dataclass(frozen=True)
class Bucket:
    """Numeric range; a missing bound means open-ended."""

    low: int | None = None
    high: int | None = None
    inclusive: bool = True

    def render(self, column: str) -> str:
        if self.low is not None and self.high is not None:
            return f"{column} BETWEEN {int(self.low)} AND {int(self.high)}"
        if self.low is not None:
            return f"{column} {'>=' if self.inclusive else '>'} {int(self.low)}"
        return f"{column} {'<=' if self.inclusive else '<'} {int(self.high)}"


SIZE_BUCKETS: dict[str, Bucket] = {
    "1-10": Bucket(1, 10),
    "11-50": Bucket(11, 50),
    "51-200": Bucket(51, 200),
    "201-500": Bucket(201, 500),
    "501-1000": Bucket(501, 1000),
    "1001+": Bucket(low=1000, inclusive=False),
}

REVENUE_BUCKETS: dict[str, Bucket] = {
    "<1M": Bucket(high=1_000_000, inclusive=False),
    "1-10M": Bucket(1_000_000, 10_000_000),
    "10-50M": Bucket(10_000_000, 50_000_000),
    "50-100M": Bucket(50_000_000, 100_000_000),
    "100M+": Bucket(low=100_000_000, inclusive=False),
}

_SLOT = "{}"
_LIKE_ESCAPE = "!"


def _escape_like(term: str) -> str:
    return (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )


def _col(alias: str | None, column: str) -> str:
    return f"{alias}.{column}" if alias else column


# =============================================================================
# Builder
# =============================================================================


class FilterBuilder:
    """
    Ordered list of (clause, values) pairs folded into one WHERE clause.

    Usage:
        fb = FilterBuilder()
        fb.tenant("e", tenant)
        fb.where("e.type = {}", "call")
        sql = f"SELECT ... FROM calendar_events e {fb.where_sql()}"
        db.execute(text(sql), fb.params)
    """

    def __init__(self, prefix: str = "p") -> None:
        self._prefix = prefix
        self._clauses: list[str] = []
        self._params: dict[str, Any] = {}

    def __len__(self) -> int:
        return len(self._clauses)

    def __bool__(self) -> bool:
        return bool(self._clauses)

    def _bind(self, value: Any) -> str:
        name = f"{self._prefix}{len(self._params)}"
        self._params[name] = value
        return f":{name}"

    # -------------------------------------------------------------------------
    # Primitive
    # -------------------------------------------------------------------------

    def where(self, template: str, *values: Any) -> FilterBuilder:
        """
        Append a predicate. Each `{}` slot in the template receives the next value.

        Raises:
            ValueError: slot count and value count differ
        """
        slots = template.count(_SLOT)
        if slots != len(values):
            raise ValueError(
                f"Predicate has {slots} placeholder(s) but {len(values)} value(s): {template!r}"
            )
        clause = template
        for value in values:
            clause = clause.replace(_SLOT, self._bind(value), 1)
        self._clauses.append(clause)
        return self

    # -------------------------------------------------------------------------
    # Tenant isolation
    # -------------------------------------------------------------------------

    def tenant(self, alias: str | None, ctx: TenantContext) -> FilterBuilder:
        """Constrain to the context tenant. No-op in full-table mode."""
        if not ctx.apply_rls:
            return self
        return self.where(
            f"{_col(alias, 'client_id')} = {{}} AND {_col(alias, 'app_id')} = {{}}",
            ctx.client_id,
            ctx.app_id,
        )

    def scoped(self, alias: str | None, ctx: TenantContext) -> FilterBuilder:
        """Constrain to the context tenant even in full-table mode (write-side lookups)."""
        return self.where(
            f"{_col(alias, 'client_id')} = {{}} AND {_col(alias, 'app_id')} = {{}}",
            ctx.client_id,
            ctx.app_id,
        )

    def visible_to(self, alias: str | None, ctx: TenantContext) -> FilterBuilder:
        """Own rows or public rows, for authenticated users under isolation."""
        if not ctx.apply_rls or not ctx.authenticated_user:
            return self
        return self.where(
            f"({_col(alias, 'created_by')} = {{}} OR {_col(alias, 'is_public')} = {{}})",
            ctx.user_id,
            True,
        )

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def date_range(
        self,
        start: datetime | None,
        end: datetime | None,
        *,
        start_column: str,
        end_column: str,
        all_day_column: str,
    ) -> FilterBuilder:
        """Overlap with [start, end]. All-day rows always match."""
        if start is not None:
            self.where(f"({end_column} >= {{}} OR {all_day_column} = {{}})", start, True)
        if end is not None:
            self.where(f"({start_column} <= {{}} OR {all_day_column} = {{}})", end, True)
        return self

    def where_in(self, column: str, values: Iterable[Any] | None) -> FilterBuilder:
        items = list(dict.fromkeys(values or ()))
        if not items:
            return self
        slots = ", ".join(_SLOT for _ in items)
        return self.where(f"{column} IN ({slots})", *items)

    def where_eq(self, column: str, value: Any) -> FilterBuilder:
        if value is None or value == "":
            return self
        return self.where(f"{column} = {{}}", value)

    def search(self, columns: Sequence[str], term: str | None) -> FilterBuilder:
        """Case-insensitive substring match on any of `columns`."""
        if not term or not term.strip() or not columns:
            return self
        pattern = f"%{_escape_like(term.strip().lower())}%"
        ors = " OR ".join(
            f"LOWER({column}) LIKE {{}} ESCAPE '{_LIKE_ESCAPE}'" for column in columns
        )
        return self.where(f"({ors})", *([pattern] * len(columns)))

    def bucket(
        self,
        column: str,
        raw: str | None,
        buckets: Mapping[str, Bucket],
        *,
        coerce: Callable[[str], Any] = int,
    ) -> FilterBuilder:
        """
        Map a human-readable range ("11-50", "100M+") to a numeric predicate.

        Unknown labels that parse as a bare number become an exact match;
        anything else is ignored.
        """
        if raw is None:
            return self
        label = raw.strip()
        if not label:
            return self
        bucket = buckets.get(label)
        if bucket is not None:
            return self.where(bucket.render(column))
        try:
            value = coerce(label)
        except (TypeError, ValueError):
            return self
        return self.where(f"{column} = {{}}", value)

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    @property
    def clauses(self) -> list[str]:
        return list(self._clauses)

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    @property
    def parameters(self) -> list[Any]:
        """Bound values in placeholder order."""
        return list(self._params.values())

    def where_sql(self) -> str:
        if not self._clauses:
            return ""
        return "WHERE " + " AND ".join(self._clauses)

    def and_sql(self) -> str:
        """Clauses for appending to an existing WHERE."""
        if not self._clauses:
            return ""
        return "AND " + " AND ".join(self._clauses)

    def assignments(
        self,
        values: Mapping[str, Any],
        column_map: Mapping[str, str],
        *,
        prefix: str = "s",
    ) -> tuple[str, dict[str, Any]]:
        """
        Render a SET list for the allow-listed keys present in `values`.

        Returns:
            (set_sql, params); set_sql is "" when nothing is assignable
        """
        parts: list[str] = []
        params: dict[str, Any] = {}
        for key, value in values.items():
            column = column_map.get(key)
            if column is None:
                continue
            name = f"{prefix}{len(params)}"
            params[name] = value
            parts.append(f"{column} = :{name}")
        return ", ".join(parts), params


# =============================================================================
# Sorting
# =============================================================================

_SORT_KEY = re.compile(r"^-?[A-Za-z_]+$")


def resolve_sort(
    sort: str | None,
    allowed: Mapping[str, str],
    default: str,
    default_direction: str = "ASC",
) -> str:
    """
    Map a public sort key ("name", "-revenue") to an ORDER BY expression.

    Only column expressions from `allowed` (or `default`) are ever returned.
    """
    if not sort or not _SORT_KEY.match(sort.strip()):
        return f"{default} {default_direction}"
    key = sort.strip()
    direction = "ASC"
    if key.startswith("-"):
        direction = "DESC"
        key = key[1:]
    column = allowed.get(key)
    if column is None:
        return f"{default} {default_direction}"
    return f"{column} {direction}"


# =============================================================================
# Execution
# =============================================================================


def build_statement(
    sql: str,
    params: Mapping[str, Any],
    result_types: Mapping[str, TypeEngine | type[TypeEngine]] | None = None,
) -> TextClause | TextualSelect:
    """
    Wrap raw SQL in text() with datetimes bound as DateTime(timezone=True)
    and decimals as Numeric.

    Keeps raw binds and results consistent with how the ORM stores the same
    columns. `result_types` types the named result columns.
    """
    statement = text(sql)
    typed = []
    for name, value in params.items():
        if isinstance(value, datetime):
            typed.append(bindparam(name, type_=DateTime(timezone=True)))
        elif isinstance(value, Decimal):
            typed.append(bindparam(name, type_=Numeric(15, 2)))
    if typed:
        statement = statement.bindparams(*typed)
    if result_types:
        return statement.columns(**dict(result_types))
    return statement


def execute(
    db: Session,
    sql: str,
    params: Mapping[str, Any] | None = None,
    result_types: Mapping[str, TypeEngine | type[TypeEngine]] | None = None,
) -> Result:
    params = dict(params or {})
    return db.execute(build_statement(sql, params, result_types), params)
