"""
Tests for the capture time-window lateness rule
"""
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.errors import PreconditionFailed
from app.models.audit_log import AuditLog
from app.models.field_session import TaskType
from app.services import time_window_service as svc
from app.services.time_window_service import Window

IST = ZoneInfo("Asia/Kolkata")
MARKET_VIDEO = Window(time(16, 0), time(16, 15))


def _at(hour, minute, second=0, d=date(2026, 1, 6)):
    """Instant at the given Asia/Kolkata wall-clock time, expressed in UTC"""
    return datetime(d.year, d.month, d.day, hour, minute, second, tzinfo=IST).astimezone(timezone.utc)


def test_capture_after_window_end_is_late():
    assert svc.is_late(_at(16, 20), MARKET_VIDEO) is True


def test_capture_before_window_start_is_not_late():
    assert svc.is_late(_at(15, 55), MARKET_VIDEO) is False


def test_capture_inside_window_and_at_end_is_not_late():
    assert svc.is_late(_at(16, 5), MARKET_VIDEO) is False
    assert svc.is_late(_at(16, 15), MARKET_VIDEO) is False
    assert svc.is_late(_at(16, 15, 1), MARKET_VIDEO) is True


def test_lateness_uses_operational_zone_not_utc():
    # 10:50 UTC is 16:20 in Asia/Kolkata
    capture = datetime(2026, 1, 6, 10, 50, tzinfo=timezone.utc)
    assert svc.is_late(capture, MARKET_VIDEO) is True
    # Naive datetimes are treated as UTC
    assert svc.is_late(datetime(2026, 1, 6, 10, 25), MARKET_VIDEO) is False


def test_no_window_is_never_late():
    assert svc.is_late(_at(23, 59), None) is False


def test_default_windows(db):
    assert svc.get_window(db, TaskType.MARKET_VIDEO) == MARKET_VIDEO
    assert svc.get_window(db, TaskType.OUTSIDE_RATES) == Window(time(14, 0), time(14, 15))
    assert svc.get_window(db, TaskType.CLEANING_VIDEO) == Window(time(21, 15), time(21, 30))
    assert svc.get_window(db, TaskType.STALL_CONFIRM) is None
    assert svc.get_window(db, TaskType.PUNCH) is None


def test_update_task_window_overrides_default(db, admin_actor):
    svc.update_task_window(db, TaskType.MARKET_VIDEO, time(16, 0), time(17, 0), actor_id=admin_actor.id)
    assert svc.get_window(db, TaskType.MARKET_VIDEO) == Window(time(16, 0), time(17, 0))
    assert svc.is_late(_at(16, 20), svc.get_window(db, TaskType.MARKET_VIDEO)) is False

    entry = db.query(AuditLog).filter(AuditLog.action == "TASK_WINDOW_UPDATE").one()
    assert entry.meta_json["task_type"] == "market_video"
    assert entry.meta_json["old"] == {"start": "16:00:00", "end": "16:15:00"}


def test_update_task_window_rejects_inverted_window(db):
    with pytest.raises(PreconditionFailed):
        svc.update_task_window(db, TaskType.RATE_BOARD, time(16, 0), time(15, 45))


def test_list_windows_only_windowed_task_types(db):
    listed = {w["task_type"] for w in svc.list_windows(db)}
    assert listed == {
        TaskType.OUTSIDE_RATES,
        TaskType.SELFIE_GPS,
        TaskType.RATE_BOARD,
        TaskType.MARKET_VIDEO,
        TaskType.CLEANING_VIDEO,
    }


def test_task_window_endpoints(client, admin_actor, field_actor, headers_for):
    response = client.get("/api/v1/admin/task-windows", headers=headers_for(field_actor))
    assert response.status_code == 403

    response = client.put(
        "/api/v1/admin/task-windows/rate_board",
        json={"allowed_start": "15:30:00", "allowed_end": "16:00:00"},
        headers=headers_for(admin_actor),
    )
    assert response.status_code == 200
    assert response.json() == {"task_type": "rate_board", "allowed_start": "15:30:00", "allowed_end": "16:00:00"}

    response = client.get("/api/v1/admin/task-windows", headers=headers_for(admin_actor))
    items = {w["task_type"]: w for w in response.json()["items"]}
    assert items["rate_board"]["allowed_start"] == "15:30:00"
