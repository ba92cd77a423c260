"""HTTP-level tests against the FastAPI app and its module-level singletons."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import roombook.main as main_module
from roombook.domain.models import Room, User, UserRole
from roombook.main import (
    app,
    booking_repo as app_booking_repo,
    group_repo as app_group_repo,
    notification_repo as app_notification_repo,
    room_repo as app_room_repo,
    user_repo as app_user_repo,
)

client = TestClient(app)

ADMIN = {"X-User-Id": "admin"}
ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.fixture(autouse=True)
def _clean_repos():
    """Reset the app's singleton repos and seed a small office."""
    app_booking_repo._store.clear()
    app_group_repo._store.clear()
    app_notification_repo._items.clear()
    app_room_repo._store.clear()
    app_user_repo._store.clear()

    app_user_repo.add(User(id="admin", name="Ada", email="admin@example.com", role=UserRole.ADMIN))
    app_user_repo.add(User(id="alice", name="Alice", email="alice@example.com"))
    app_user_repo.add(User(id="bob", name="Bob", email="bob@example.com"))
    app_room_repo.add(Room(id="r1", name="Boardroom", location="HQ", capacity=4))
    yield


def _booking_payload(**overrides) -> dict:
    payload = {
        "room_id": "r1",
        "title": "Planning",
        "start_time": "2030-03-05T10:00:00Z",
        "end_time": "2030-03-05T11:00:00Z",
        "attendees": ["alice", "bob"],
    }
    payload.update(overrides)
    return payload


def test_health():
    assert client.get("/health").json() == {"status": "ok"}


def test_requests_without_user_are_rejected():
    assert client.get("/rooms").status_code == 401
    assert client.get("/rooms", headers={"X-User-Id": "ghost"}).status_code == 401


def test_create_and_fetch_booking():
    resp = client.post("/bookings", json=_booking_payload(), headers=ALICE)
    assert resp.status_code == 201
    booking = resp.json()["booking"]
    assert booking["status"] == "confirmed"
    assert booking["organizer_id"] == "alice"

    fetched = client.get(f"/bookings/{booking['id']}", headers=BOB)
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Planning"


def test_conflict_returns_409():
    client.post("/bookings", json=_booking_payload(), headers=ALICE)
    resp = client.post(
        "/bookings",
        json=_booking_payload(start_time="2030-03-05T10:30:00Z", end_time="2030-03-05T11:30:00Z"),
        headers=BOB,
    )
    assert resp.status_code == 409
    assert "already booked" in resp.json()["detail"]


def test_recurring_conflict_lists_dates():
    client.post(
        "/bookings",
        json=_booking_payload(start_time="2030-03-19T10:00:00Z", end_time="2030-03-19T11:00:00Z"),
        headers=BOB,
    )
    resp = client.post(
        "/bookings",
        json=_booking_payload(is_recurring=True, recurrence_end_date="2030-03-26"),
        headers=ALICE,
    )
    assert resp.status_code == 409
    assert resp.json()["conflict_dates"] == ["2030-03-19"]
    assert len(app_booking_repo.list_all()) == 1


def test_recurring_create_returns_series():
    resp = client.post(
        "/bookings",
        json=_booking_payload(is_recurring=True, recurrence_end_date="2030-03-26"),
        headers=ALICE,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert len(body["bookings"]) == 4
    assert body["recurrence_group"]["base_start_time"] == "10:00"


def test_validation_errors_are_400():
    resp = client.post(
        "/bookings",
        json=_booking_payload(end_time="2030-03-05T09:00:00Z"),
        headers=ALICE,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "End time must be after start time"


def test_naive_datetimes_are_rejected():
    resp = client.post(
        "/bookings", json=_booking_payload(start_time="2030-03-05T10:00:00"), headers=ALICE
    )
    assert resp.status_code == 422


def test_cancel_and_delete_flow():
    booking_id = client.post("/bookings", json=_booking_payload(), headers=ALICE).json()[
        "booking"
    ]["id"]

    assert client.delete(f"/bookings/{booking_id}", headers=ALICE).status_code == 403
    assert client.delete(f"/bookings/{booking_id}", headers=ADMIN).status_code == 400

    resp = client.patch(
        f"/bookings/{booking_id}/cancel", json={"reason": "No longer needed"}, headers=ALICE
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert client.patch(f"/bookings/{booking_id}/cancel", headers=ALICE).status_code == 400

    assert client.delete(f"/bookings/{booking_id}", headers=ADMIN).status_code == 204
    assert client.get(f"/bookings/{booking_id}", headers=ADMIN).status_code == 404


def test_other_users_cannot_cancel():
    booking_id = client.post("/bookings", json=_booking_payload(), headers=ALICE).json()[
        "booking"
    ]["id"]
    assert client.patch(f"/bookings/{booking_id}/cancel", headers=BOB).status_code == 403


def test_admin_override_over_http():
    first = client.post("/bookings", json=_booking_payload(), headers=ALICE).json()["booking"]
    resp = client.post("/bookings", json=_booking_payload(title="Board meeting"), headers=ADMIN)
    assert resp.status_code == 201
    assert resp.json()["overridden_booking_ids"] == [first["id"]]
    assert client.get(f"/bookings/{first['id']}", headers=ALICE).json()["status"] == "cancelled"


def test_room_admin_routes():
    payload = {"name": "Atrium", "location": "Annex", "capacity": 10}
    assert client.post("/rooms", json=payload, headers=ALICE).status_code == 403
    created = client.post("/rooms", json=payload, headers=ADMIN)
    assert created.status_code == 201
    room_id = created.json()["id"]

    resp = client.patch(f"/rooms/{room_id}/status", json={"is_active": False}, headers=ADMIN)
    assert resp.json()["is_active"] is False

    resp = client.delete(f"/rooms/{room_id}", headers=ADMIN)
    assert resp.json() == {"room_id": room_id, "cancelled_bookings": 0}
    assert client.get(f"/rooms/{room_id}", headers=ALICE).status_code == 404


def test_availability_route():
    client.post("/bookings", json=_booking_payload(), headers=ALICE)
    resp = client.get("/rooms/r1/availability", params={"day": "2030-03-05"}, headers=BOB)
    assert resp.status_code == 200
    assert len(resp.json()["bookings"]) == 1


def test_notifications_routes():
    client.post("/bookings", json=_booking_payload(), headers=ALICE)

    notes = client.get("/notifications", headers=BOB).json()
    assert [n["type"] for n in notes] == ["meeting_scheduled"]

    note_id = notes[0]["id"]
    assert client.patch(f"/notifications/{note_id}/read", headers=ALICE).status_code == 404
    assert client.patch(f"/notifications/{note_id}/read", headers=BOB).json()["is_read"] is True
    assert client.get("/notifications", params={"unread": True}, headers=BOB).json() == []


def test_tick_sends_reminders():
    client.post("/bookings", json=_booking_payload(), headers=ALICE)

    resp = client.post("/tick", params={"now": "2030-03-05T09:45:00Z"})
    assert resp.json()["reminders_sent"] == 2
    resp = client.post("/tick", params={"now": "2030-03-05T09:50:00Z"})
    assert resp.json()["reminders_sent"] == 0


class _RecordingDispatcher:
    def __init__(self):
        self.shutdown_calls = []

    def dispatch(self, to, subject, html):
        pass

    def shutdown(self, wait=True):
        self.shutdown_calls.append(wait)


def test_app_shutdown_stops_email_pool(monkeypatch):
    dispatcher = _RecordingDispatcher()
    monkeypatch.setattr(main_module, "mailer", dispatcher)

    with TestClient(app) as lifespan_client:
        assert lifespan_client.get("/health").status_code == 200
        assert dispatcher.shutdown_calls == []

    assert dispatcher.shutdown_calls == [False]
