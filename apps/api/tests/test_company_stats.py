"""Tests for company dashboard aggregates."""

from decimal import Decimal

import pytest

from app.db.models import Company, Deal, DealStage
from app.schemas.tenant import TenantContext
from app.services import company_service

TENANT = {"client_id": 1, "app_id": "crm-app"}


@pytest.fixture
def pipeline(db):
    companies = [
        Company(name="A1", industry="Software", created_by=1, **TENANT),
        Company(name="A2", industry="Software", created_by=1, **TENANT),
        Company(name="A3", industry="Retail", created_by=1, **TENANT),
        Company(name="A4", industry=None, created_by=1, **TENANT),
        Company(name="Private", industry="Finance", is_public=False, created_by=42, **TENANT),
        Company(name="Elsewhere", industry="Mining", client_id=2, app_id="other-app"),
    ]
    db.add_all(companies)
    active = DealStage(name="Open", type="active", position=1, **TENANT)
    won = DealStage(name="Won", type="won", position=2, **TENANT)
    foreign_won = DealStage(name="Won", type="won", position=1, client_id=2, app_id="other-app")
    db.add_all([active, won, foreign_won])
    db.flush()

    db.add_all([
        Deal(title="o1", value=Decimal("100"), stage_id=active.id, created_by=1, **TENANT),
        Deal(title="o2", value=Decimal("200"), stage_id=active.id, created_by=1, **TENANT),
        Deal(title="w1", value=Decimal("1000"), stage_id=won.id, created_by=1, **TENANT),
        Deal(title="w2", value=Decimal("3000"), stage_id=won.id, created_by=1, **TENANT),
        Deal(title="private win", value=Decimal("9999"), stage_id=won.id,
             is_public=False, created_by=42, **TENANT),
        Deal(title="foreign win", value=Decimal("50000"), stage_id=foreign_won.id,
             client_id=2, app_id="other-app"),
    ])
    db.commit()


@pytest.mark.asyncio
async def test_stats_endpoint(authed_client, pipeline):
    resp = await authed_client.get("/api/companies/stats")
    assert resp.status_code == 200, resp.text

    data = resp.json()["data"]
    assert data["totalCompanies"] == 4
    assert data["activeDeals"] == 2
    assert data["totalRevenue"] == 4000
    assert data["averageDealSize"] == 2000
    assert data["topIndustries"] == [
        {"industry": "Software", "count": 2},
        {"industry": "Retail", "count": 1},
    ]


@pytest.mark.asyncio
async def test_stats_empty_tenant(other_client):
    resp = await other_client.get("/api/companies/stats")
    assert resp.status_code == 200, resp.text

    assert resp.json()["data"] == {
        "totalCompanies": 0,
        "activeDeals": 0,
        "totalRevenue": 0,
        "averageDealSize": 0,
        "topIndustries": [],
    }


def test_stats_without_isolation_cover_every_tenant(db, pipeline):
    admin = TenantContext(client_id=1, app_id="crm-app", apply_rls=False)

    stats = company_service.company_stats(db, admin)
    db.rollback()

    assert stats["totalCompanies"] == 6
    assert stats["totalRevenue"] == 1000 + 3000 + 9999 + 50000
