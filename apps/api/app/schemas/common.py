"""Shared response envelope pieces."""

from pydantic import BaseModel, ConfigDict, Field


class PaginationMeta(BaseModel):
    """Pagination block returned by list endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    total: int
    page_count: int = Field(..., alias="pageCount")


class MessageResponse(BaseModel):
    success: bool = True
    message: str
