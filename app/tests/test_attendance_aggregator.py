"""
Tests for attendance derivation (full_day / half_day / absent / weekly_off) and the
end-to-end day scenarios.
"""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.core.errors import NotFound, PreconditionFailed
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.field_session import SessionStatus, TaskType, TaskState, REQUIRED_TASK_TYPES
from app.services import attendance_service as svc
from app.services import session_service, task_status_service

IST = ZoneInfo("Asia/Kolkata")
MONDAY = date(2026, 1, 5)
TUESDAY = date(2026, 1, 6)
WEDNESDAY = date(2026, 1, 7)
GPS = {"lat": 12.9, "lng": 77.6}


def _at(hour, minute, d=TUESDAY):
    return datetime(d.year, d.month, d.day, hour, minute, tzinfo=IST).astimezone(timezone.utc)


def _submit(db, session, task_types, d=TUESDAY):
    for i, task_type in enumerate(task_types):
        task_status_service.record_event(db, session, task_type, now=_at(14, i, d))


NON_PUNCH = [t for t in REQUIRED_TASK_TYPES if t != TaskType.PUNCH]


@pytest.mark.parametrize(
    "completed,expected",
    [
        (8, AttendanceStatus.FULL_DAY),
        (7, AttendanceStatus.HALF_DAY),
        (3, AttendanceStatus.HALF_DAY),
        (1, AttendanceStatus.HALF_DAY),
        (0, AttendanceStatus.ABSENT),
    ],
)
def test_derive_status(completed, expected):
    assert svc.derive_status(completed) == expected


def test_total_tasks_is_required_set_size():
    assert svc.TOTAL_TASKS == 8


def test_three_of_eight_is_half_day(db, field_actor):
    session = session_service.get_or_create_session(db, field_actor, now=_at(9, 0))
    _submit(db, session, NON_PUNCH[:3])

    record = svc.recompute_attendance(db, field_actor, TUESDAY, today=TUESDAY)
    assert record.status == AttendanceStatus.HALF_DAY
    assert (record.completed_tasks, record.total_tasks) == (3, 8)


def test_zero_of_eight_is_absent(db, field_actor):
    session_service.get_or_create_session(db, field_actor, now=_at(9, 0))
    record = svc.recompute_attendance(db, field_actor, TUESDAY, today=TUESDAY)
    assert record.status == AttendanceStatus.ABSENT
    assert record.completed_tasks == 0


def test_weekly_off_overrides_full_completion(db, field_actor, admin_actor):
    session = session_service.get_or_create_session(db, field_actor, now=_at(9, 0, MONDAY))
    session_service.punch_in(db, session.id, field_actor, GPS, "selfie.jpg", now=_at(13, 0, MONDAY))
    _submit(db, session, NON_PUNCH, d=MONDAY)
    session_service.punch_out(db, session.id, field_actor, now=_at(22, 0, MONDAY))

    record = svc.recompute_attendance(db, field_actor, MONDAY, today=TUESDAY)
    assert record.status == AttendanceStatus.WEEKLY_OFF
    assert record.completed_tasks == 8


def test_weekly_off_without_session(db, field_actor):
    record = svc.recompute_attendance(db, field_actor, MONDAY, today=TUESDAY)
    assert record.status == AttendanceStatus.WEEKLY_OFF


def test_no_session_past_date_is_absent(db, field_actor):
    record = svc.recompute_attendance(db, field_actor, TUESDAY, today=WEDNESDAY)
    assert record.status == AttendanceStatus.ABSENT
    assert record.completed_tasks == 0
    assert record.city == "Pune"


def test_no_session_today_or_future_writes_nothing(db, field_actor):
    assert svc.recompute_attendance(db, field_actor, TUESDAY, today=TUESDAY) is None
    assert svc.recompute_attendance(db, field_actor, WEDNESDAY, today=TUESDAY) is None
    assert db.query(AttendanceRecord).count() == 0


def test_recompute_is_idempotent(db, field_actor):
    session = session_service.get_or_create_session(db, field_actor, now=_at(9, 0))
    _submit(db, session, NON_PUNCH[:2])

    first = svc.recompute_attendance(db, field_actor, TUESDAY, today=WEDNESDAY)
    second = svc.recompute_attendance(db, field_actor, TUESDAY, today=WEDNESDAY)
    assert first.id == second.id
    assert (second.status, second.completed_tasks) == (AttendanceStatus.HALF_DAY, 2)
    assert db.query(AttendanceRecord).count() == 1


def test_submissions_after_punch_out_do_not_change_attendance(db, field_actor):
    session = session_service.get_or_create_session(db, field_actor, now=_at(9, 0))
    session_service.punch_in(db, session.id, field_actor, GPS, "selfie.jpg", now=_at(13, 0))
    _submit(db, session, NON_PUNCH[:2])
    session_service.punch_out(db, session.id, field_actor, now=_at(20, 0))

    # Accepted, but after the punch-out snapshot
    task_status_service.record_event(db, session, TaskType.CLEANING_VIDEO, now=_at(21, 20))
    assert task_status_service.get_task_status(db, session.id, TaskType.CLEANING_VIDEO).status == TaskState.SUBMITTED

    record = svc.recompute_attendance(db, field_actor, TUESDAY, today=WEDNESDAY)
    assert record.completed_tasks == 3
    assert record.status == AttendanceStatus.HALF_DAY


def test_scenario_full_day(db, field_actor, tuesday_market):
    """Punch in, all seven other tasks, punch out -> full_day 8/8"""
    session = session_service.get_or_create_session(
        db, field_actor, market_id=tuesday_market.id, now=_at(12, 55)
    )
    session_service.punch_in(db, session.id, field_actor, GPS, "selfies/a.jpg", now=_at(13, 0))
    _submit(db, session, [
        TaskType.STALL_CONFIRM,
        TaskType.OUTSIDE_RATES,
        TaskType.SELFIE_GPS,
        TaskType.RATE_BOARD,
        TaskType.MARKET_VIDEO,
        TaskType.CLEANING_VIDEO,
        TaskType.COLLECTION,
    ])
    session = session_service.punch_out(db, session.id, field_actor, now=_at(22, 0))

    assert session.status == SessionStatus.COMPLETED
    statuses = task_status_service.status_map(db, session.id)
    assert all(state == TaskState.SUBMITTED for state in statuses.values())
    assert len(statuses) == 8

    record = db.query(AttendanceRecord).filter(
        AttendanceRecord.actor_id == field_actor.id, AttendanceRecord.attendance_date == TUESDAY
    ).one()
    assert record.status == AttendanceStatus.FULL_DAY
    assert (record.completed_tasks, record.total_tasks) == (8, 8)
    assert record.market_id == tuesday_market.id


def test_scenario_abandoned_session_half_day(db, other_actor):
    """Punch in, one task, no punch-out; after the sweep on D+1 -> completed, half_day"""
    session = session_service.get_or_create_session(db, other_actor, now=_at(12, 55))
    session_service.punch_in(db, session.id, other_actor, GPS, "selfies/b.jpg", now=_at(13, 0))
    task_status_service.record_event(db, session, TaskType.STALL_CONFIRM, now=_at(13, 15))

    session_service.expire_stale_sessions(db, now=_at(0, 30, WEDNESDAY))

    db.refresh(session)
    assert session.status == SessionStatus.COMPLETED
    record = db.query(AttendanceRecord).filter(
        AttendanceRecord.actor_id == other_actor.id, AttendanceRecord.attendance_date == TUESDAY
    ).one()
    assert record.status == AttendanceStatus.HALF_DAY
    assert record.completed_tasks == 1


def test_reconcile_covers_field_actors_only(db, field_actor, other_actor, admin_actor):
    session_service.get_or_create_session(db, field_actor, now=_at(9, 0))
    records = svc.reconcile_attendance_for_date(db, TUESDAY, today=WEDNESDAY)
    by_actor = {r.actor_id: r.status for r in records}
    assert by_actor == {field_actor.id: AttendanceStatus.ABSENT, other_actor.id: AttendanceStatus.ABSENT}


def test_get_attendance_recomputes_range(db, field_actor):
    session = session_service.get_or_create_session(db, field_actor, now=_at(9, 0))
    _submit(db, session, NON_PUNCH[:1])

    records = svc.get_attendance(db, field_actor.id, MONDAY, WEDNESDAY + timedelta(days=3), today=WEDNESDAY)
    assert [(r.attendance_date, r.status) for r in records] == [
        (MONDAY, AttendanceStatus.WEEKLY_OFF),
        (TUESDAY, AttendanceStatus.HALF_DAY),
    ]


def test_get_attendance_never_writes_rows_for_office_roles(db, admin_actor):
    assert svc.get_attendance(db, admin_actor.id, MONDAY, WEDNESDAY, today=WEDNESDAY) == []
    assert svc.list_attendance(db, MONDAY, WEDNESDAY) == []


def test_get_attendance_validation(db, field_actor, monkeypatch):
    with pytest.raises(PreconditionFailed):
        svc.get_attendance(db, field_actor.id, WEDNESDAY, TUESDAY)
    with pytest.raises(NotFound):
        svc.get_attendance(db, 999, TUESDAY, WEDNESDAY)

    from app.core.config import settings
    monkeypatch.setattr(settings, "MAX_ATTENDANCE_RANGE_DAYS", 2)
    with pytest.raises(PreconditionFailed):
        svc.get_attendance(db, field_actor.id, MONDAY, WEDNESDAY)
