"""
Attendance aggregator: derive one AttendanceRecord per (actor, operational date) from the
session and task status facts of that day.

The record is purely derived. It is recomputed after every session/task mutation, by the
daily reconciliation sweep, and on demand when read; it never diverges from a fresh
recomputation over the same facts.
"""
import logging
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFound, PreconditionFailed
from app.models.actor import Actor, FIELD_ROLES
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.field_session import (
    MarketSession,
    SessionStatus,
    TaskStatus,
    REQUIRED_TASK_TYPES,
    COMPLETED_TASK_STATES,
    INCOMPLETE_EXPIRED,
)
from app.services.market_schedule_service import is_non_operating_day
from app.services.notification_service import publish
from app.utils.datetime_utils import get_operational_date, now_utc

_log = logging.getLogger(__name__)

TOTAL_TASKS = len(REQUIRED_TASK_TYPES)


def derive_status(completed_tasks: int, total_tasks: int = TOTAL_TASKS) -> AttendanceStatus:
    """8/8 -> full_day, 0 < n < 8 -> half_day, 0 -> absent."""
    if completed_tasks >= total_tasks:
        return AttendanceStatus.FULL_DAY
    if completed_tasks > 0:
        return AttendanceStatus.HALF_DAY
    return AttendanceStatus.ABSENT


def find_session_for_date(db: Session, actor_id: int, d: date) -> Optional[MarketSession]:
    """The actor's session whose operational date (market_date, else session_date) is d."""
    return (
        db.query(MarketSession)
        .filter(
            MarketSession.actor_id == actor_id,
            or_(
                MarketSession.market_date == d,
                (MarketSession.market_date.is_(None)) & (MarketSession.session_date == d),
            ),
        )
        .order_by(MarketSession.id)
        .first()
    )


def count_completed_tasks(db: Session, session_id: int) -> int:
    """Live count of required task types in submitted/locked."""
    return (
        db.query(TaskStatus)
        .filter(
            TaskStatus.session_id == session_id,
            TaskStatus.task_type.in_(REQUIRED_TASK_TYPES),
            TaskStatus.status.in_(COMPLETED_TASK_STATES),
        )
        .count()
    )


def attendance_completed_tasks(db: Session, session: MarketSession) -> int:
    """
    Completion that counts toward attendance: the punch-out snapshot when one exists,
    otherwise the live task statuses. Submissions after punch-out do not change it.
    """
    if session.summary is not None:
        return session.summary.completed_tasks
    return count_completed_tasks(db, session.id)


def is_session_past(session: MarketSession, today: date) -> bool:
    return session.operational_date < today


def session_display_status(session: MarketSession, completed_tasks: int, today: Optional[date] = None) -> str:
    """
    Stored status, or incomplete_expired for an active/completed session past its
    operational date without all tasks complete. Never written back.
    """
    today = today or get_operational_date()
    status = SessionStatus(session.status)
    if (
        status in (SessionStatus.ACTIVE, SessionStatus.COMPLETED)
        and is_session_past(session, today)
        and completed_tasks < TOTAL_TASKS
    ):
        return INCOMPLETE_EXPIRED
    return status.value


def _upsert_record(db: Session, actor: Actor, d: date, values: dict) -> AttendanceRecord:
    record = (
        db.query(AttendanceRecord)
        .filter(AttendanceRecord.actor_id == actor.id, AttendanceRecord.attendance_date == d)
        .first()
    )
    if record is None:
        record = AttendanceRecord(actor_id=actor.id, attendance_date=d, created_at=now_utc())
        db.add(record)
    for key, value in values.items():
        setattr(record, key, value)
    record.updated_at = now_utc()
    try:
        db.commit()
    except IntegrityError:
        # Concurrent recompute inserted first; the derived values are identical
        db.rollback()
        record = (
            db.query(AttendanceRecord)
            .filter(AttendanceRecord.actor_id == actor.id, AttendanceRecord.attendance_date == d)
            .one()
        )
        for key, value in values.items():
            setattr(record, key, value)
        record.updated_at = now_utc()
        db.commit()
    db.refresh(record)
    return record


def recompute_attendance(
    db: Session,
    actor: Actor,
    d: date,
    today: Optional[date] = None,
) -> Optional[AttendanceRecord]:
    """
    Derive and persist the attendance record for (actor, d).

    1. weekly off day -> weekly_off, regardless of session activity
    2. no session and d in the past -> absent
    3. otherwise full_day / half_day / absent from completed task count

    Returns None (nothing persisted) when there is no session and d is today or later.
    """
    today = today or get_operational_date()
    session = find_session_for_date(db, actor.id, d)
    completed = attendance_completed_tasks(db, session) if session else 0

    if is_non_operating_day(d):
        status = AttendanceStatus.WEEKLY_OFF
    elif session is None:
        if d >= today:
            return None
        status = AttendanceStatus.ABSENT
    else:
        status = derive_status(completed)

    market = session.market if session else None
    values = {
        "role": actor.role,
        "market_id": session.market_id if session else None,
        "city": (market.city if market and market.city else actor.city),
        "total_tasks": TOTAL_TASKS,
        "completed_tasks": completed,
        "status": status,
    }
    record = _upsert_record(db, actor, d, values)
    _log.debug(
        "attendance recomputed: actor_id=%s date=%s status=%s completed=%s/%s",
        actor.id, d, status.value, completed, TOTAL_TASKS,
    )
    publish("attendance_records", record.id, "upserted", actor_id=actor.id, attendance_date=d.isoformat())
    return record


def recompute_for_session(db: Session, session: MarketSession, today: Optional[date] = None) -> Optional[AttendanceRecord]:
    """Recompute the record for the session's actor and operational date."""
    actor = db.query(Actor).filter(Actor.id == session.actor_id).first()
    if actor is None:
        raise NotFound(f"Actor with id {session.actor_id} not found")
    return recompute_attendance(db, actor, session.operational_date, today=today)


def is_field_actor(actor: Actor) -> bool:
    return actor.role in [role.value for role in FIELD_ROLES]


def list_field_actors(db: Session) -> List[Actor]:
    return (
        db.query(Actor)
        .filter(
            Actor.active == True,  # noqa: E712
            Actor.role.in_([role.value for role in FIELD_ROLES]),
        )
        .order_by(Actor.id)
        .all()
    )


def reconcile_attendance_for_date(db: Session, d: date, today: Optional[date] = None) -> List[AttendanceRecord]:
    """Daily sweep: recompute (actor, d) for every active field actor."""
    records = []
    for actor in list_field_actors(db):
        record = recompute_attendance(db, actor, d, today=today)
        if record is not None:
            records.append(record)
    _log.info("Attendance reconciled for %s: %s records", d, len(records))
    return records


def _validate_range(from_date: date, to_date: date) -> None:
    if from_date > to_date:
        raise PreconditionFailed("from_date must be on or before to_date")
    if (to_date - from_date).days + 1 > settings.MAX_ATTENDANCE_RANGE_DAYS:
        raise PreconditionFailed(
            f"Date range cannot exceed {settings.MAX_ATTENDANCE_RANGE_DAYS} days"
        )


def get_attendance(
    db: Session,
    actor_id: int,
    from_date: date,
    to_date: date,
    today: Optional[date] = None,
) -> List[AttendanceRecord]:
    """
    Attendance records for one actor in [from_date, to_date]. For field actors, days up to
    today are recomputed first so the result never lags behind the sweep. Other roles
    have no attendance and only ever read what is stored.
    """
    _validate_range(from_date, to_date)
    actor = db.query(Actor).filter(Actor.id == actor_id).first()
    if actor is None:
        raise NotFound(f"Actor with id {actor_id} not found")

    if is_field_actor(actor):
        today = today or get_operational_date()
        d = from_date
        while d <= min(to_date, today):
            recompute_attendance(db, actor, d, today=today)
            d += timedelta(days=1)

    return list_attendance(db, from_date, to_date, actor_id=actor_id)


def list_attendance(
    db: Session,
    from_date: date,
    to_date: date,
    actor_id: Optional[int] = None,
    city: Optional[str] = None,
) -> List[AttendanceRecord]:
    """Stored records in range (no recomputation), for the admin overview."""
    _validate_range(from_date, to_date)
    query = db.query(AttendanceRecord).filter(
        AttendanceRecord.attendance_date >= from_date,
        AttendanceRecord.attendance_date <= to_date,
    )
    if actor_id is not None:
        query = query.filter(AttendanceRecord.actor_id == actor_id)
    if city:
        query = query.filter(AttendanceRecord.city == city)
    return query.order_by(AttendanceRecord.attendance_date, AttendanceRecord.actor_id).all()
