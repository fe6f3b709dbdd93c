"""Cross-tenant isolation for both path families."""

import pytest

from app.db.models import Company


@pytest.mark.asyncio
async def test_events_invisible_across_tenants(authed_client, other_client):
    resp = await authed_client.post(
        "/api/calendar/events", json={"title": "Secret plan", "startDate": "2026-03-02T09:00:00Z"}
    )
    assert resp.status_code == 201, resp.text
    event_id = resp.json()["data"]["id"]

    resp = await other_client.get("/api/calendar/events")
    assert resp.json()["events"] == []

    resp = await other_client.get(f"/api/calendar/events/{event_id}")
    assert resp.status_code == 404

    resp = await other_client.put(f"/api/calendar/events/{event_id}", json={"title": "Mine now"})
    assert resp.status_code == 404

    resp = await other_client.delete(f"/api/calendar/events/{event_id}")
    assert resp.status_code == 404

    resp = await authed_client.get(f"/api/calendar/events/{event_id}")
    assert resp.json()["event"]["title"] == "Secret plan"


@pytest.mark.asyncio
async def test_each_tenant_gets_its_own_defaults(authed_client, other_client):
    ids_a = {c["id"] for c in (await authed_client.get("/api/calendar/calendars")).json()["calendars"]}
    ids_b = {c["id"] for c in (await other_client.get("/api/calendar/calendars")).json()["calendars"]}

    assert "cal_1_crmapp_work" in ids_a
    assert "cal_2_otherapp_work" in ids_b
    assert ids_a.isdisjoint(ids_b)


@pytest.mark.asyncio
async def test_calendar_of_other_tenant_not_modifiable(authed_client, other_client):
    resp = await authed_client.post("/api/calendar/calendars", json={"name": "Private"})
    calendar_id = resp.json()["data"]["id"]

    resp = await other_client.put(f"/api/calendar/calendars/{calendar_id}", json={"name": "Stolen"})
    assert resp.status_code == 404

    resp = await other_client.delete(f"/api/calendar/calendars/{calendar_id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_companies_invisible_across_tenants(other_client, db):
    acme = Company(name="Acme", created_by=1, client_id=1, app_id="crm-app")
    db.add(acme)
    db.commit()

    resp = await other_client.get("/api/companies")
    assert resp.json()["items"] == []

    resp = await other_client.get(f"/api/companies/{acme.id}")
    assert resp.status_code == 404

    resp = await other_client.delete(f"/api/companies/{acme.id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_app_scoped_paths_use_path_app(authed_client):
    resp = await authed_client.post(
        "/api/apps/crm-app/calendar/events",
        json={"title": "Scoped", "startDate": "2026-03-02T09:00:00Z"},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["calendar"]["id"] == "cal_1_crmapp_work"

    resp = await authed_client.get("/api/apps/crm-app/calendar/events")
    assert [e["title"] for e in resp.json()["events"]] == ["Scoped"]

    resp = await authed_client.post("/api/apps/crm-app/companies", json={"name": "Scoped Co"})
    assert resp.status_code == 201, resp.text


@pytest.mark.asyncio
async def test_app_scoped_path_for_other_app_is_forbidden(authed_client):
    resp = await authed_client.get("/api/apps/other-app/calendar/events")
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "App not accessible for this client"}

    resp = await authed_client.get("/api/apps/other-app/companies")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_missing_or_bad_token_is_401(client):
    resp = await client.get("/api/calendar/events")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Not authenticated"}

    resp = await client.get("/api/companies", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid session"


@pytest.mark.asyncio
async def test_token_accepted_from_cookie(client, tenant_a):
    client.cookies.set("tenant_session", tenant_a.token)

    resp = await client.get("/api/companies")
    assert resp.status_code == 200, resp.text
