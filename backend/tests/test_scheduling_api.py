"""
Tests for the coach-facing scheduling endpoints: availability, sessions,
recurring bookings and conflicts.
"""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from conftest import next_monday


def _at(hour: int, days: int = 0) -> datetime:
    return datetime.combine(next_monday() + timedelta(days=days), datetime.min.time()).replace(hour=hour)


@pytest.mark.asyncio
async def test_replace_weekly_day(client: AsyncClient, coach_headers):
    response = await client.put(
        "/api/v1/availability/weekly/1",
        json={"slots": [
            {"start_time": "14:00", "end_time": "16:00"},
            {"start_time": "9:00", "end_time": "12:00", "duration": 45},
        ]},
        headers=coach_headers,
    )
    assert response.status_code == 200
    rows = response.json()
    assert [(r["start_time"], r["end_time"]) for r in rows] == [("09:00", "12:00"), ("14:00", "16:00")]

    listed = await client.get("/api/v1/availability/weekly", headers=coach_headers)
    assert len(listed.json()) == 2


@pytest.mark.asyncio
async def test_overlapping_weekly_rows_rejected(client: AsyncClient, coach_headers):
    response = await client.put(
        "/api/v1/availability/weekly/1",
        json={"slots": [
            {"start_time": "09:00", "end_time": "12:00"},
            {"start_time": "11:00", "end_time": "13:00"},
        ]},
        headers=coach_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "overlapping_availability"


@pytest.mark.asyncio
async def test_members_cannot_edit_availability(client: AsyncClient, member_headers):
    response = await client.put(
        "/api/v1/availability/weekly/1", json={"slots": []}, headers=member_headers
    )
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden_role"


@pytest.mark.asyncio
async def test_settings_are_created_lazily(client: AsyncClient, coach_headers, room):
    response = await client.get("/api/v1/availability/settings", headers=coach_headers)
    assert response.status_code == 200
    assert response.json()["default_room_id"] is None

    updated = await client.patch(
        "/api/v1/availability/settings",
        json={"default_room_id": room.id, "default_duration": 45},
        headers=coach_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["default_room_id"] == room.id
    assert updated.json()["default_duration"] == 45


@pytest.mark.asyncio
async def test_day_view_shows_block_and_addition(client: AsyncClient, coach_headers, monday_template, coach_settings):
    block = await client.post(
        "/api/v1/availability/blocks",
        json={"start_time": _at(10).isoformat(), "end_time": _at(11).isoformat(), "reason": "Physio"},
        headers=coach_headers,
    )
    assert block.status_code == 201
    addition = await client.post(
        "/api/v1/availability/additions",
        json={"start_time": _at(15).isoformat(), "end_time": _at(16).isoformat()},
        headers=coach_headers,
    )
    assert addition.status_code == 201

    response = await client.get(
        "/api/v1/slots/day", params={"date": next_monday().isoformat()}, headers=coach_headers
    )
    assert response.status_code == 200
    assert [(s["start_time"][11:16], s["status"]) for s in response.json()] == [
        ("09:00", "FREE"),
        ("10:00", "BLOCKED"),
        ("11:00", "FREE"),
        ("15:00", "EXCEPTIONAL"),
    ]
    assert response.json()[1]["block_id"] == block.json()["id"]
    assert response.json()[3]["addition_id"] == addition.json()["id"]


@pytest.mark.asyncio
async def test_addition_with_member_books_them(client: AsyncClient, member, coach_headers, member_headers, coach_settings):
    response = await client.post(
        "/api/v1/availability/additions",
        json={
            "start_time": _at(19).isoformat(),
            "end_time": _at(20).isoformat(),
            "member_id": member.id,
            "reason": "Extra session",
        },
        headers=coach_headers,
    )
    assert response.status_code == 201

    bookings = await client.get("/api/v1/bookings", headers=member_headers)
    assert len(bookings.json()) == 1


@pytest.mark.asyncio
async def test_create_and_cancel_session(client: AsyncClient, coach_headers, member_headers, coach_settings):
    created = await client.post(
        "/api/v1/sessions",
        json={
            "start_time": _at(7).isoformat(),
            "end_time": _at(8).isoformat(),
            "type": "GROUP",
            "capacity": 8,
            "title": "Mobility",
        },
        headers=coach_headers,
    )
    assert created.status_code == 201
    session_id = created.json()["id"]
    assert created.json()["capacity"] == 8

    duplicate = await client.post(
        "/api/v1/sessions",
        json={"start_time": _at(7).isoformat(), "end_time": _at(8).isoformat()},
        headers=coach_headers,
    )
    assert duplicate.status_code == 409

    booked = await client.post("/api/v1/bookings", json={"session_id": session_id}, headers=member_headers)
    assert booked.status_code == 201

    cancelled = await client.post(f"/api/v1/sessions/{session_id}/cancel", headers=coach_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"
    assert cancelled.json()["data"]["booked_count"] == 0

    mine = await client.get("/api/v1/bookings", headers=member_headers)
    assert mine.json()[0]["status"] == "CANCELLED_BY_COACH"


@pytest.mark.asyncio
async def test_one_to_one_capacity_is_forced_to_one(client: AsyncClient, coach_headers, coach_settings):
    created = await client.post(
        "/api/v1/sessions",
        json={"start_time": _at(7).isoformat(), "end_time": _at(8).isoformat(), "capacity": 5},
        headers=coach_headers,
    )
    assert created.json()["capacity"] == 1


@pytest.mark.asyncio
async def test_session_in_the_past_rejected(client: AsyncClient, coach_headers, coach_settings):
    start = datetime.now().replace(microsecond=0) - timedelta(days=1)
    response = await client.post(
        "/api/v1/sessions",
        json={"start_time": start.isoformat(), "end_time": (start + timedelta(hours=1)).isoformat()},
        headers=coach_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "in_the_past"


@pytest.mark.asyncio
async def test_session_without_room_needs_configuration(client: AsyncClient, coach_headers):
    response = await client.post(
        "/api/v1/sessions",
        json={"start_time": _at(7).isoformat(), "end_time": _at(8).isoformat()},
        headers=coach_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "no_default_room"


@pytest.mark.asyncio
async def test_recurring_sessions_batch(client: AsyncClient, coach_headers, coach_settings):
    monday = next_monday()
    response = await client.post(
        "/api/v1/sessions/recurring",
        json={
            "weekdays": [1, 3],
            "start_date": monday.isoformat(),
            "end_date": (monday + timedelta(days=13)).isoformat(),
            "start_time": "07:00",
            "duration": 45,
            "type": "GROUP",
            "capacity": 10,
        },
        headers=coach_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert len(body["created"]) == 4
    assert body["skipped"] == []

    listed = await client.get(
        "/api/v1/sessions",
        params={"start": _at(0).isoformat(), "end": _at(0, days=14).isoformat()},
        headers=coach_headers,
    )
    assert len(listed.json()) == 4


@pytest.mark.asyncio
async def test_recurring_sessions_need_a_weekday(client: AsyncClient, coach_headers, coach_settings):
    response = await client.post(
        "/api/v1/sessions/recurring",
        json={"weekdays": [], "start_date": next_monday().isoformat(), "start_time": "07:00"},
        headers=coach_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "no_weekday"


@pytest.mark.asyncio
async def test_reschedule_session(client: AsyncClient, coach_headers, coach_settings):
    created = await client.post(
        "/api/v1/sessions",
        json={"start_time": _at(7).isoformat(), "end_time": _at(8).isoformat()},
        headers=coach_headers,
    )
    session_id = created.json()["id"]

    moved = await client.post(
        f"/api/v1/sessions/{session_id}/reschedule",
        json={"start_time": _at(9, days=1).isoformat(), "end_time": _at(10, days=1).isoformat()},
        headers=coach_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["data"]["start_time"] == _at(9, days=1).isoformat()


@pytest.mark.asyncio
async def test_recurring_booking_lifecycle(client: AsyncClient, coach, member_headers, coach_settings, monday_template):
    created = await client.post(
        "/api/v1/recurring-bookings",
        json={
            "coach_id": coach.id,
            "day_of_week": 1,
            "start_time": "10:00",
            "end_time": "11:00",
        },
        headers=member_headers,
    )
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["sessions_generated"] >= 1
    recurring_id = data["recurring_booking"]["id"]

    listed = await client.get("/api/v1/recurring-bookings", headers=member_headers)
    assert [r["id"] for r in listed.json()] == [recurring_id]

    cancelled = await client.post(
        f"/api/v1/recurring-bookings/{recurring_id}/cancel", headers=member_headers
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["recurring_booking"]["status"] == "CANCELLED"
    assert cancelled.json()["data"]["sessions_cancelled"] == data["sessions_generated"]


@pytest.mark.asyncio
async def test_recurring_booking_cancel_all_rejected(client: AsyncClient, coach, member_headers, coach_settings, monday_template):
    created = await client.post(
        "/api/v1/recurring-bookings",
        json={"coach_id": coach.id, "day_of_week": 1, "start_time": "10:00", "end_time": "11:00"},
        headers=member_headers,
    )
    recurring_id = created.json()["data"]["recurring_booking"]["id"]

    response = await client.post(
        f"/api/v1/recurring-bookings/{recurring_id}/cancel",
        json={"future_only": False},
        headers=member_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "future_only_required"


@pytest.mark.asyncio
async def test_conflicts_flow(client: AsyncClient, coach_headers, coach_settings, monday_template):
    created = await client.post(
        "/api/v1/sessions",
        json={"start_time": _at(10).isoformat(), "end_time": _at(11).isoformat()},
        headers=coach_headers,
    )
    session_id = created.json()["id"]

    none_yet = await client.get("/api/v1/conflicts", headers=coach_headers)
    assert none_yet.json() == []

    await client.put(
        "/api/v1/availability/weekly/1",
        json={"slots": [{"start_time": "09:00", "end_time": "10:00"}]},
        headers=coach_headers,
    )
    conflicts = await client.get("/api/v1/conflicts", headers=coach_headers)
    assert [c["session_id"] for c in conflicts.json()] == [session_id]

    kept = await client.post(f"/api/v1/conflicts/{session_id}/keep", headers=coach_headers)
    assert kept.status_code == 200
    assert kept.json()["success"] is True

    after = await client.get("/api/v1/conflicts", headers=coach_headers)
    assert after.json() == []


@pytest.mark.asyncio
async def test_week_calendar(client: AsyncClient, coach_headers, monday_template, coach_settings):
    monday = next_monday()
    response = await client.get(
        "/api/v1/slots/calendar",
        params={"start_date": (monday - timedelta(days=1)).isoformat()},
        headers=coach_headers,
    )
    assert response.status_code == 200
    days = response.json()
    assert len(days) == 7
    assert len(days[monday.isoformat()]) == 3
    assert sum(len(slots) for slots in days.values()) == 3
