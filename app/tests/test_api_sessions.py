"""
API tests for the field actor flow: session, punch in/out, tasks, media, stalls,
collections and own attendance.
"""
from datetime import timedelta

import pytest
from fastapi import status

from app.core.config import settings
from app.models.market import Market
from app.utils.datetime_utils import get_operational_date, market_weekday

GEO = {"lat": 18.52, "lng": 73.85, "accuracy": 10.0}


@pytest.fixture(autouse=True)
def _today_is_a_working_day(monkeypatch):
    today = get_operational_date()
    monkeypatch.setattr(settings, "WEEKLY_OFF_DAY", (today.weekday() + 1) % 7)


@pytest.fixture
def today_market(db):
    market = Market(
        name="Hadapsar Market",
        location="Hadapsar",
        city="Pune",
        is_active=True,
        day_of_week=market_weekday(get_operational_date()),
    )
    db.add(market)
    db.commit()
    db.refresh(market)
    return market


@pytest.fixture
def open_session(client, field_actor, today_market, headers_for):
    response = client.post(
        "/api/v1/sessions", json={"market_id": today_market.id}, headers=headers_for(field_actor)
    )
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def _punch_in(client, headers, session_id, body=None):
    if body is None:
        body = {"geo": GEO, "selfie_ref": "selfies/today.jpg"}
    return client.post(f"/api/v1/sessions/{session_id}/punch-in", json=body, headers=headers)


def test_requires_authentication(client):
    response = client.post("/api/v1/sessions")
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_admin_cannot_open_field_session(client, admin_actor, headers_for):
    response = client.post("/api/v1/sessions", headers=headers_for(admin_actor))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_get_or_create_session(client, field_actor, today_market, headers_for, open_session):
    assert open_session["status"] == "active"
    assert open_session["display_status"] == "active"
    assert open_session["market_id"] == today_market.id
    assert open_session["created_at"].endswith("+05:30")

    again = client.post("/api/v1/sessions", headers=headers_for(field_actor)).json()
    assert again["id"] == open_session["id"]

    today = client.get("/api/v1/sessions/today", headers=headers_for(field_actor)).json()
    assert today["id"] == open_session["id"]


def test_today_session_is_null_before_first_call(client, field_actor, headers_for):
    response = client.get("/api/v1/sessions/today", headers=headers_for(field_actor))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() is None


def test_market_not_live_returns_403(client, field_actor, headers_for, db):
    closed = Market(
        name="Closed Market",
        location="Aundh",
        is_active=True,
        day_of_week=(market_weekday(get_operational_date()) + 3) % 7,
    )
    db.add(closed)
    db.commit()
    response = client.post("/api/v1/sessions", json={"market_id": closed.id}, headers=headers_for(field_actor))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "policy_violation"


def test_client_session_date_is_ignored(client, field_actor, today_market, headers_for):
    headers = headers_for(field_actor)
    today = get_operational_date()
    past = today - timedelta(days=3)

    response = client.post(
        "/api/v1/sessions",
        json={"market_id": today_market.id, "session_date": past.isoformat()},
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["session_date"] == today.isoformat()

    sessions = client.get(f"/api/v1/sessions/my?from={past}&to={past}", headers=headers).json()
    assert sessions["total"] == 0
    attendance = client.get(f"/api/v1/attendance/my?from={past}&to={past}", headers=headers).json()
    assert [item["status"] for item in attendance["items"]] == ["absent"]


def test_market_date_outside_cross_midnight_window_returns_400(client, field_actor, today_market, headers_for):
    future = get_operational_date() + timedelta(days=10)
    response = client.post(
        "/api/v1/sessions",
        json={"market_id": today_market.id, "market_date": future.isoformat()},
        headers=headers_for(field_actor),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "precondition_failed"


def test_tasks_listing_in_required_order(client, field_actor, headers_for, open_session):
    response = client.get(f"/api/v1/sessions/{open_session['id']}/tasks", headers=headers_for(field_actor))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [t["task_type"] for t in data["tasks"]] == [
        "punch",
        "stall_confirm",
        "outside_rates",
        "selfie_gps",
        "rate_board",
        "market_video",
        "cleaning_video",
        "collection",
    ]
    assert data["completed_tasks"] == 0
    assert data["total_tasks"] == 8
    assert data["all_complete"] is False


def test_punch_in_validation(client, field_actor, headers_for, open_session):
    headers = headers_for(field_actor)
    response = _punch_in(client, headers, open_session["id"], {"selfie_ref": "s.jpg"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "precondition_failed"

    response = _punch_in(client, headers, open_session["id"], {"geo": GEO})
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = _punch_in(client, headers, open_session["id"])
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["punch_in_geo"]["lat"] == GEO["lat"]
    assert response.json()["punch_in_time"].endswith("+05:30")

    response = _punch_in(client, headers, open_session["id"])
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "conflict"


def test_punch_out_before_punch_in(client, field_actor, headers_for, open_session):
    response = client.post(
        f"/api/v1/sessions/{open_session['id']}/punch-out", headers=headers_for(field_actor)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_other_actor_cannot_touch_session(client, other_actor, headers_for, open_session):
    headers = headers_for(other_actor)
    assert _punch_in(client, headers, open_session["id"]).status_code == status.HTTP_404_NOT_FOUND
    response = client.get(f"/api/v1/sessions/{open_session['id']}/tasks", headers=headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_admin_can_read_any_session(client, admin_actor, headers_for, open_session):
    response = client.get(f"/api/v1/sessions/{open_session['id']}/summary", headers=headers_for(admin_actor))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["session_id"] == open_session["id"]


def test_submit_task_endpoint(client, field_actor, headers_for, open_session):
    headers = headers_for(field_actor)
    url = f"/api/v1/sessions/{open_session['id']}/tasks"

    response = client.post(url, json={"task_type": "outside_rates", "payload": {"onion": 30}}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "submitted"

    response = client.post(url, json={"task_type": "punch"}, headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.post(url, json={"task_type": "unknown"}, headers=headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_full_day_over_http(client, field_actor, headers_for, open_session):
    headers = headers_for(field_actor)
    session_id = open_session["id"]

    assert _punch_in(client, headers, session_id).status_code == status.HTTP_200_OK

    response = client.post(
        "/api/v1/stalls",
        json={"session_id": session_id, "farmer_name": "Ramesh", "stall_name": "Greens", "stall_no": "A-1"},
        headers=headers,
    )
    assert response.status_code == status.HTTP_201_CREATED

    client.post(
        f"/api/v1/sessions/{session_id}/tasks", json={"task_type": "outside_rates"}, headers=headers
    )
    for media_type in ("selfie_gps", "rate_board", "market_video", "cleaning_video", "customer_feedback"):
        response = client.post(
            "/api/v1/media",
            json={
                "session_id": session_id,
                "media_type": media_type,
                "file_url": f"media/{session_id}/{media_type}",
                "file_name": f"{media_type}.jpg",
                "content_type": "image/jpeg",
                "gps_lat": GEO["lat"],
                "gps_lng": GEO["lng"],
            },
            headers=headers,
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert isinstance(response.json()["is_late"], bool)

    response = client.post(
        "/api/v1/collections", json={"session_id": session_id, "amount": "250.00", "mode": "cash"}, headers=headers
    )
    assert response.status_code == status.HTTP_201_CREATED

    tasks = client.get(f"/api/v1/sessions/{session_id}/tasks", headers=headers).json()
    assert tasks["completed_tasks"] == 7
    assert tasks["all_complete"] is False

    response = client.post(f"/api/v1/sessions/{session_id}/punch-out", json={"geo": GEO}, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "completed"

    tasks = client.get(f"/api/v1/sessions/{session_id}/tasks", headers=headers).json()
    assert tasks["all_complete"] is True

    summary = client.get(f"/api/v1/sessions/{session_id}/summary", headers=headers).json()
    assert summary["stalls_count"] == 1
    assert summary["media_count"] == 5
    assert summary["snapshot"]["completed_tasks"] == 8

    today = get_operational_date().isoformat()
    attendance = client.get(f"/api/v1/attendance/my?from={today}&to={today}", headers=headers).json()
    assert attendance["total"] == 1
    record = attendance["items"][0]
    assert record["status"] == "full_day"
    assert (record["completed_tasks"], record["total_tasks"]) == (8, 8)
    assert record["city"] == "Pune"


def test_collection_validation_over_http(client, field_actor, headers_for, open_session):
    response = client.post(
        "/api/v1/collections",
        json={"session_id": open_session["id"], "amount": "0", "mode": "cash"},
        headers=headers_for(field_actor),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_selfie_gps_without_location_over_http(client, field_actor, headers_for, open_session):
    response = client.post(
        "/api/v1/media",
        json={
            "session_id": open_session["id"],
            "media_type": "selfie_gps",
            "file_url": "media/selfie",
            "file_name": "selfie.jpg",
            "content_type": "image/jpeg",
        },
        headers=headers_for(field_actor),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_stall_edit_and_delete(client, field_actor, headers_for, open_session):
    headers = headers_for(field_actor)
    created = client.post(
        "/api/v1/stalls",
        json={"session_id": open_session["id"], "farmer_name": "Ramesh", "stall_name": "Greens", "stall_no": "A-1"},
        headers=headers,
    ).json()

    response = client.patch(f"/api/v1/stalls/{created['id']}", json={"stall_no": "A-2"}, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["stall_no"] == "A-2"

    response = client.delete(f"/api/v1/stalls/{created['id']}", headers=headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    response = client.delete(f"/api/v1/stalls/{created['id']}", headers=headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_my_sessions_and_attendance_range_validation(client, field_actor, headers_for, open_session):
    headers = headers_for(field_actor)
    today = get_operational_date().isoformat()
    response = client.get(f"/api/v1/sessions/my?from={today}&to={today}", headers=headers)
    assert response.json()["total"] == 1

    response = client.get("/api/v1/attendance/my?from=2026-02-10&to=2026-02-01", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
