"""API routers."""

from app.routers.calendar import router as calendar_router
from app.routers.companies import router as companies_router

__all__ = [
    "calendar_router",
    "companies_router",
]
