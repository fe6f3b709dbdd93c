"""Utility modules."""

from app.utils.datetime_parsing import ensure_utc, parse_api_datetime, utcnow
from app.utils.normalization import (
    MAX_DB_ID,
    alnum_only,
    is_db_id,
    normalize_email,
    normalize_hex_color,
    normalize_name,
    normalize_optional_text,
    split_csv,
)
from app.utils.pagination import (
    PaginationParams,
    get_pagination,
    page_count,
    pagination_meta,
)

__all__ = [
    # Datetime
    "ensure_utc",
    "parse_api_datetime",
    "utcnow",
    # Normalization
    "MAX_DB_ID",
    "alnum_only",
    "is_db_id",
    "normalize_email",
    "normalize_hex_color",
    "normalize_name",
    "normalize_optional_text",
    "split_csv",
    # Pagination
    "PaginationParams",
    "get_pagination",
    "page_count",
    "pagination_meta",
]
