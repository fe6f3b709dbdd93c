"""Pagination utilities for list endpoints."""

from dataclasses import dataclass

from fastapi import Query


# Pagination limits
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
MAX_LIMIT = 500


@dataclass
class PaginationParams:
    """Pagination parameters from query string."""
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_pagination(
    page: int = Query(DEFAULT_PAGE, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description=f"Items per page (max {MAX_LIMIT})"),
) -> PaginationParams:
    """
    Pagination dependency.

    Usage:
        @router.get("/items")
        def list_items(pagination: PaginationParams = Depends(get_pagination)):
            ...
    """
    return PaginationParams(page=page, limit=limit)


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit > 0 else 0


def pagination_meta(total: int, pagination: PaginationParams) -> dict[str, int]:
    """Response block: {page, limit, total, pageCount}."""
    return {
        "page": pagination.page,
        "limit": pagination.limit,
        "total": total,
        "pageCount": page_count(total, pagination.limit),
    }
