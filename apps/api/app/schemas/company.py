"""Pydantic schemas for companies and their contacts and deals."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from app.db.enums import CompanyStatus
from app.schemas.common import PaginationMeta
from app.utils.datetime_parsing import ensure_utc
from app.utils.normalization import MAX_DB_ID, normalize_name, normalize_optional_text


_TEXT_FIELDS = (
    "industry",
    "website",
    "phone",
    "address",
    "city",
    "state",
    "postal_code",
    "country",
    "notes",
)


class CompanyCreate(BaseModel):
    """Request to create a company."""
    name: str = Field(..., max_length=255)
    industry: str | None = Field(None, max_length=100)
    employees_count: int | None = Field(None, ge=0, le=MAX_DB_ID)
    website: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    annual_revenue: Decimal | None = Field(None, ge=0, max_digits=15, decimal_places=2)
    status: CompanyStatus = CompanyStatus.ACTIVE
    notes: str | None = None
    is_public: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            cleaned = normalize_name(v)
            if not cleaned:
                raise ValueError("Company name is required")
            return cleaned
        return v

    @field_validator(*_TEXT_FIELDS)
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return normalize_optional_text(v)


class CompanyUpdate(BaseModel):
    """Request to update a company (partial). Only keys present are changed."""
    name: str | None = Field(None, max_length=255)
    industry: str | None = Field(None, max_length=100)
    employees_count: int | None = Field(None, ge=0, le=MAX_DB_ID)
    website: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    annual_revenue: Decimal | None = Field(None, ge=0, max_digits=15, decimal_places=2)
    status: CompanyStatus | None = None
    notes: str | None = None
    is_public: bool | None = None

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Company name cannot be empty")
        if isinstance(v, str):
            cleaned = normalize_name(v)
            if not cleaned:
                raise ValueError("Company name cannot be empty")
            return cleaned
        return v

    @field_validator(*_TEXT_FIELDS)
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return normalize_optional_text(v)

    @model_validator(mode="after")
    def reject_null_flags(self) -> "CompanyUpdate":
        for name in ("status", "is_public"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class CompanyRead(BaseModel):
    """Company row; open_deals is only filled by the list endpoint."""
    id: int
    name: str
    industry: str | None = None
    employees_count: int | None = None
    website: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    annual_revenue: float | None = None
    status: str
    notes: str | None = None
    is_public: bool = True
    created_by: int | None = None
    client_id: int | None = None
    app_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class CompanyListItem(CompanyRead):
    open_deals: int = 0


class CompanyListResponse(BaseModel):
    success: bool = True
    items: list[CompanyListItem]
    pagination: PaginationMeta


class CompanyResponse(BaseModel):
    success: bool = True
    data: CompanyRead


class CompanyWriteResponse(BaseModel):
    success: bool = True
    message: str
    data: CompanyRead


class IndustryCount(BaseModel):
    industry: str
    count: int


class CompanyStats(BaseModel):
    """Aggregates are camelCase, matching the dashboard widgets."""
    totalCompanies: int = 0
    activeDeals: int = 0
    totalRevenue: float = 0
    averageDealSize: float = 0
    topIndustries: list[IndustryCount] = Field(default_factory=list)


class CompanyStatsResponse(BaseModel):
    success: bool = True
    data: CompanyStats


class ContactRead(BaseModel):
    id: int
    company_id: int | None = None
    first_name: str
    last_name: str | None = None
    full_name: str
    email: str | None = None
    phone: str | None = None
    job_title: str | None = None
    is_public: bool = True
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class ContactListResponse(BaseModel):
    success: bool = True
    data: list[ContactRead]


class DealRead(BaseModel):
    id: int
    title: str
    value: float | None = None
    company_id: int | None = None
    contact_id: int | None = None
    stage_id: int
    stage_name: str
    stage_type: str
    stage_color: str | None = None
    contact_name: str | None = None
    expected_close_date: date | None = None
    is_public: bool = True
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class DealListResponse(BaseModel):
    success: bool = True
    data: list[DealRead]
