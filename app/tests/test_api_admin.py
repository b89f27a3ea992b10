"""
API tests for admin operations: session sweep, finalize/lock, task lock, attendance
overview and reconciliation.
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from fastapi import status

from app.models.audit_log import AuditLog
from app.models.field_session import SessionStatus, TaskType
from app.services import session_service, task_status_service

IST = ZoneInfo("Asia/Kolkata")
TUESDAY = date(2026, 1, 6)
GPS = {"lat": 18.52, "lng": 73.85}


def _at(hour, minute, d=TUESDAY):
    return datetime(d.year, d.month, d.day, hour, minute, tzinfo=IST).astimezone(timezone.utc)


@pytest.fixture
def past_session(db, field_actor, tuesday_market):
    return session_service.get_or_create_session(
        db, field_actor, market_id=tuesday_market.id, now=_at(9, 0)
    )


@pytest.fixture
def completed_session(db, field_actor, past_session):
    session_service.punch_in(db, past_session.id, field_actor, GPS, "selfie.jpg", now=_at(13, 0))
    task_status_service.record_event(db, past_session, TaskType.RATE_BOARD, now=_at(15, 50))
    return session_service.punch_out(db, past_session.id, field_actor, now=_at(22, 0))


def test_admin_endpoints_reject_field_actor(client, field_actor, headers_for):
    headers = headers_for(field_actor)
    assert client.post("/api/v1/admin/sessions/expire", headers=headers).status_code == status.HTTP_403_FORBIDDEN
    response = client.get("/api/v1/admin/attendance?from=2026-01-01&to=2026-01-31", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_expire_stale_sessions_endpoint(client, db, admin_actor, headers_for, past_session):
    response = client.post("/api/v1/admin/sessions/expire", headers=headers_for(admin_actor))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"expired": 1, "session_ids": [past_session.id]}

    db.refresh(past_session)
    assert past_session.status == SessionStatus.COMPLETED

    response = client.post("/api/v1/admin/sessions/expire", headers=headers_for(admin_actor))
    assert response.json()["expired"] == 0


def test_admin_list_sessions_shows_incomplete_expired(client, admin_actor, headers_for, past_session):
    response = client.get(
        "/api/v1/admin/sessions?from=2026-01-01&to=2026-01-31", headers=headers_for(admin_actor)
    )
    assert response.status_code == status.HTTP_200_OK
    items = response.json()["items"]
    assert [s["id"] for s in items] == [past_session.id]
    assert items[0]["status"] == "active"
    assert items[0]["display_status"] == "incomplete_expired"

    response = client.get(
        "/api/v1/admin/sessions?from=2026-01-01&to=2026-01-31&status=completed", headers=headers_for(admin_actor)
    )
    assert response.json()["total"] == 0


def test_finalize_then_lock(client, db, admin_actor, headers_for, completed_session):
    headers = headers_for(admin_actor)
    response = client.post(f"/api/v1/admin/sessions/{completed_session.id}/finalize", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "finalized"

    response = client.post(f"/api/v1/admin/sessions/{completed_session.id}/finalize", headers=headers)
    assert response.status_code == status.HTTP_409_CONFLICT

    response = client.post(f"/api/v1/admin/sessions/{completed_session.id}/lock", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "locked"

    entries = db.query(AuditLog).filter(AuditLog.entity_id == completed_session.id).all()
    assert {e.action for e in entries} >= {"SESSION_FINALIZE", "SESSION_LOCK"}


def test_finalize_active_session_conflicts(client, admin_actor, headers_for, past_session):
    response = client.post(f"/api/v1/admin/sessions/{past_session.id}/finalize", headers=headers_for(admin_actor))
    assert response.status_code == status.HTTP_409_CONFLICT


def test_finalize_unknown_session(client, admin_actor, headers_for):
    response = client.post("/api/v1/admin/sessions/9999/finalize", headers=headers_for(admin_actor))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_lock_task_endpoint(client, db, field_actor, admin_actor, headers_for, completed_session):
    response = client.post(
        f"/api/v1/admin/sessions/{completed_session.id}/tasks/rate_board/lock", headers=headers_for(admin_actor)
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "locked"

    response = client.post(
        f"/api/v1/sessions/{completed_session.id}/tasks",
        json={"task_type": "rate_board"},
        headers=headers_for(field_actor),
    )
    assert response.status_code == status.HTTP_409_CONFLICT

    response = client.post(
        f"/api/v1/admin/sessions/{completed_session.id}/tasks/market_video/lock", headers=headers_for(admin_actor)
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_reconcile_and_overview(client, admin_actor, other_actor, headers_for, completed_session):
    headers = headers_for(admin_actor)
    response = client.post("/api/v1/admin/attendance/reconcile?date=2026-01-06", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"date": "2026-01-06", "records": 2}

    response = client.get("/api/v1/admin/attendance?from=2026-01-06&to=2026-01-06", headers=headers)
    items = {r["actor_id"]: r for r in response.json()["items"]}
    assert items[completed_session.actor_id]["status"] == "half_day"
    assert items[completed_session.actor_id]["completed_tasks"] == 2
    assert items[other_actor.id]["status"] == "absent"

    response = client.get("/api/v1/admin/attendance?from=2026-01-06&to=2026-01-06&city=Mumbai", headers=headers)
    assert response.json()["total"] == 0


def test_admin_attendance_for_one_actor(client, admin_actor, field_actor, headers_for, completed_session):
    response = client.get(
        f"/api/v1/admin/attendance?from=2026-01-05&to=2026-01-07&actor_id={field_actor.id}",
        headers=headers_for(admin_actor),
    )
    assert response.status_code == status.HTTP_200_OK
    by_date = {r["attendance_date"]: r["status"] for r in response.json()["items"]}
    assert by_date == {"2026-01-05": "weekly_off", "2026-01-06": "half_day", "2026-01-07": "absent"}


def test_market_admin_endpoints(client, field_actor, admin_actor, headers_for):
    response = client.post(
        "/api/v1/markets",
        json={"name": "Wakad Market", "location": "Wakad", "city": "Pune", "day_of_week": 2},
        headers=headers_for(field_actor),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(
        "/api/v1/markets",
        json={"name": "Wakad Market", "location": "Wakad", "city": "Pune", "day_of_week": 2},
        headers=headers_for(admin_actor),
    )
    assert response.status_code == status.HTTP_201_CREATED
    market_id = response.json()["id"]

    response = client.get(f"/api/v1/markets/{market_id}/live?date=2026-01-06", headers=headers_for(field_actor))
    assert response.json()["is_live"] is True

    response = client.post(
        f"/api/v1/markets/{market_id}/schedule", json={"schedule_date": "2026-01-08"}, headers=headers_for(admin_actor)
    )
    assert response.status_code == status.HTTP_201_CREATED

    response = client.get("/api/v1/markets/live?date=2026-01-08", headers=headers_for(field_actor))
    assert [m["id"] for m in response.json()["items"]] == [market_id]
