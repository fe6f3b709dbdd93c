"""Tests for calendar CRUD endpoints."""

import pytest
from httpx import AsyncClient

WORK = "cal_1_crmapp_work"
BASE = "/api/calendar"


async def _create_calendar(client: AsyncClient, name="Team", color="#123456") -> dict:
    resp = await client.post(f"{BASE}/calendars", json={"name": name, "color": color})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_list_seeds_defaults_first(authed_client: AsyncClient):
    resp = await authed_client.get(f"{BASE}/calendars")
    assert resp.status_code == 200, resp.text

    body = resp.json()
    assert body["success"] is True
    calendars = body["calendars"]
    assert [c["name"] for c in calendars] == ["Marketing", "Personal", "Sales", "Work"]
    assert all(c["isDefault"] for c in calendars)
    assert all(c["active"] for c in calendars)
    assert {c["id"] for c in calendars} >= {WORK}


@pytest.mark.asyncio
async def test_create_calendar_lists_after_defaults(authed_client: AsyncClient):
    created = await _create_calendar(authed_client, name="Alpha")
    assert created["id"].startswith("cal_1_crmapp_")
    assert created["isDefault"] is False
    assert created["ownerId"] == 1
    assert created["color"] == "#123456"

    resp = await authed_client.get(f"{BASE}/calendars")
    names = [c["name"] for c in resp.json()["calendars"]]
    assert names[-1] == "Alpha"
    assert len(names) == 5


@pytest.mark.asyncio
async def test_create_calendar_default_color(authed_client: AsyncClient):
    resp = await authed_client.post(f"{BASE}/calendars", json={"name": "Plain"})
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["color"] == "#4361ee"


@pytest.mark.asyncio
async def test_create_calendar_validation(authed_client: AsyncClient):
    resp = await authed_client.post(f"{BASE}/calendars", json={"name": "  "})
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = await authed_client.post(f"{BASE}/calendars", json={"name": "Bad", "color": "red"})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "color"


@pytest.mark.asyncio
async def test_update_color_keeps_name(authed_client: AsyncClient, query):
    created = await _create_calendar(authed_client, name="Team")

    resp = await authed_client.put(
        f"{BASE}/calendars/{created['id']}", json={"color": "#abcdef"}
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["name"] == "Team"
    assert data["color"] == "#abcdef"

    rows = query("SELECT name, color FROM calendars WHERE id = :id", id=created["id"])
    assert rows == [{"name": "Team", "color": "#abcdef"}]


@pytest.mark.asyncio
async def test_update_without_fields_is_rejected(authed_client: AsyncClient):
    created = await _create_calendar(authed_client)

    resp = await authed_client.put(f"{BASE}/calendars/{created['id']}", json={})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_default_calendars_are_read_only(authed_client: AsyncClient):
    await authed_client.get(f"{BASE}/calendars")

    resp = await authed_client.put(f"{BASE}/calendars/{WORK}", json={"name": "Renamed"})
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "Default calendars cannot be modified"}

    resp = await authed_client.delete(f"{BASE}/calendars/{WORK}")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Default calendars cannot be deleted"


@pytest.mark.asyncio
async def test_missing_calendar_is_404(authed_client: AsyncClient):
    resp = await authed_client.put(f"{BASE}/calendars/cal_nope", json={"name": "X"})
    assert resp.status_code == 404

    resp = await authed_client.delete(f"{BASE}/calendars/cal_nope")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_reassigns_events_and_drops_preferences(authed_client: AsyncClient, query):
    created = await _create_calendar(authed_client, name="Doomed")

    resp = await authed_client.post(
        f"{BASE}/events",
        json={"title": "Review", "startDate": "2026-03-02T10:00:00Z", "calendarId": created["id"]},
    )
    assert resp.status_code == 201, resp.text
    event_id = resp.json()["data"]["id"]
    assert resp.json()["data"]["calendar"]["id"] == created["id"]

    resp = await authed_client.post(
        f"{BASE}/preferences",
        json={"preferences": [{"calendarId": created["id"], "active": False}]},
    )
    assert resp.status_code == 200, resp.text

    resp = await authed_client.delete(f"{BASE}/calendars/{created['id']}")
    assert resp.status_code == 200, resp.text
    assert resp.json()["success"] is True

    assert query("SELECT calendar_id FROM calendar_events WHERE id = :id", id=event_id) == [
        {"calendar_id": WORK}
    ]
    assert query(
        "SELECT id FROM user_calendar_preferences WHERE calendar_id = :id", id=created["id"]
    ) == []
    assert query("SELECT id FROM calendars WHERE id = :id", id=created["id"]) == []


@pytest.mark.asyncio
async def test_preferences_reflected_in_list(authed_client: AsyncClient):
    await authed_client.get(f"{BASE}/calendars")

    resp = await authed_client.post(
        f"{BASE}/preferences",
        json={"preferences": [{"calendarId": WORK, "active": False}]},
    )
    assert resp.status_code == 200, resp.text

    calendars = (await authed_client.get(f"{BASE}/calendars")).json()["calendars"]
    active = {c["id"]: c["active"] for c in calendars}
    assert active[WORK] is False
    assert active["cal_1_crmapp_sales"] is True
