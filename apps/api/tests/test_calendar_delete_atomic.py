"""Calendar delete is all-or-nothing."""

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

BASE = "/api/calendar"


@pytest.mark.asyncio
async def test_failed_delete_leaves_nothing_half_done(authed_client, engine, query):
    resp = await authed_client.post(f"{BASE}/calendars", json={"name": "Project"})
    assert resp.status_code == 201, resp.text
    calendar_id = resp.json()["data"]["id"]

    resp = await authed_client.post(
        f"{BASE}/events",
        json={"title": "Kickoff", "startDate": "2026-05-04T09:00:00Z", "calendarId": calendar_id},
    )
    assert resp.status_code == 201, resp.text
    event_id = resp.json()["data"]["id"]

    def _fail_preference_cleanup(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().startswith("DELETE FROM user_calendar_preferences"):
            raise OperationalError(statement, parameters, Exception("disk I/O error"))

    event.listen(engine, "before_cursor_execute", _fail_preference_cleanup)
    try:
        resp = await authed_client.delete(f"{BASE}/calendars/{calendar_id}")
    finally:
        event.remove(engine, "before_cursor_execute", _fail_preference_cleanup)

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Server error"}

    # The event move ran before the failure and was rolled back with it
    assert query("SELECT calendar_id FROM calendar_events WHERE id = :id", id=event_id) == [
        {"calendar_id": calendar_id}
    ]
    assert query("SELECT id FROM calendars WHERE id = :id", id=calendar_id) == [{"id": calendar_id}]
