"""Companies router - CRM companies plus their contacts and deals.

Included twice by the app, under /api/companies and
/api/apps/{app_id}/companies.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_tenant_context
from app.db.enums import CompanyStatus
from app.schemas.common import MessageResponse
from app.schemas.company import (
    CompanyCreate,
    CompanyListResponse,
    CompanyResponse,
    CompanyStatsResponse,
    CompanyUpdate,
    CompanyWriteResponse,
    ContactListResponse,
    DealListResponse,
)
from app.schemas.tenant import TenantContext
from app.services import company_service
from app.services.company_service import CompanyNotFoundError, NoFieldsToUpdateError
from app.utils.pagination import PaginationParams, get_pagination, pagination_meta

router = APIRouter(tags=["companies"])


@router.get("", response_model=CompanyListResponse)
@router.get("/", response_model=CompanyListResponse, include_in_schema=False)
def list_companies(
    sort: str | None = Query(None, max_length=50, description="Sort key, '-' prefix for descending"),
    industry: str | None = Query(None, max_length=100),
    status_filter: CompanyStatus | None = Query(None, alias="status"),
    size: str | None = Query(None, max_length=20, description="Employees bucket, e.g. 11-50 or 1001+"),
    revenue: str | None = Query(None, max_length=20, description="Revenue bucket, e.g. <1M or 100M+"),
    search: str | None = Query(None, max_length=200),
    pagination: PaginationParams = Depends(get_pagination),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """List companies with filters, sorting and open deal counts."""
    company_service.ensure_crm_schema(db)
    items, total = company_service.list_companies(
        db,
        tenant,
        pagination,
        sort=sort,
        industry=industry,
        status=status_filter.value if status_filter else None,
        size=size,
        revenue=revenue,
        search=search,
    )
    db.commit()
    return {
        "success": True,
        "items": items,
        "pagination": pagination_meta(total, pagination),
    }


@router.get("/stats", response_model=CompanyStatsResponse)
def company_stats(
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Company and deal aggregates for dashboards."""
    company_service.ensure_crm_schema(db)
    stats = company_service.company_stats(db, tenant)
    db.commit()
    return {"success": True, "data": stats}


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(
    company_id: int,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Get a company."""
    company_service.ensure_crm_schema(db)
    company = company_service.get_company(db, tenant, company_id)
    db.commit()
    if not company:
        raise HTTPException(
            status_code=404,
            detail="Company not found or you do not have permission to access it",
        )
    return {"success": True, "data": company}


@router.post(
    "",
    response_model=CompanyWriteResponse,
    status_code=status.HTTP_201_CREATED,
)
@router.post(
    "/",
    response_model=CompanyWriteResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
def create_company(
    data: CompanyCreate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Create a company."""
    company_service.ensure_crm_schema(db)
    company = company_service.create_company(db, tenant, data.model_dump())
    db.commit()
    return {"success": True, "message": "Company created successfully", "data": company}


@router.put("/{company_id}", response_model=CompanyWriteResponse)
def update_company(
    company_id: int,
    data: CompanyUpdate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Update a company (partial)."""
    company_service.ensure_crm_schema(db)
    try:
        company = company_service.update_company(
            db, tenant, company_id, data.model_dump(exclude_unset=True)
        )
        db.commit()
    except CompanyNotFoundError:
        raise HTTPException(
            status_code=404,
            detail="Company not found or you do not have permission to update it",
        )
    except NoFieldsToUpdateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Company updated successfully", "data": company}


@router.delete("/{company_id}", response_model=MessageResponse)
def delete_company(
    company_id: int,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Delete a company. Its contacts and deals are kept, unlinked."""
    company_service.ensure_crm_schema(db)
    try:
        company_service.delete_company(db, tenant, company_id)
        db.commit()
    except CompanyNotFoundError:
        raise HTTPException(
            status_code=404,
            detail="Company not found or you do not have permission to delete it",
        )
    return {"success": True, "message": "Company deleted successfully"}


@router.get("/{company_id}/contacts", response_model=ContactListResponse)
def company_contacts(
    company_id: int,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Contacts of a company."""
    company_service.ensure_crm_schema(db)
    try:
        contacts = company_service.company_contacts(db, tenant, company_id)
        db.commit()
    except CompanyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": contacts}


@router.get("/{company_id}/deals", response_model=DealListResponse)
def company_deals(
    company_id: int,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Deals of a company with stage and contact details."""
    company_service.ensure_crm_schema(db)
    try:
        deals = company_service.company_deals(db, tenant, company_id)
        db.commit()
    except CompanyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": deals}
