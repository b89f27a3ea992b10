"""
Session lifecycle: one session per actor per operational date, punch in/out, the stale
session sweep, and admin finalize/lock.

session_date is always the Asia/Kolkata (settings.OPERATIONAL_TZ) date of server time.
All timestamps are stored in UTC.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, NotFound, PolicyViolation, PreconditionFailed
from app.models.actor import Actor
from app.models.field_session import MarketSession, SessionStatus, TaskType, TaskAction
from app.services import attendance_service, summary_service, task_status_service
from app.services.audit_service import log_audit
from app.services.market_schedule_service import get_market, is_market_live
from app.services.notification_service import publish
from app.utils.datetime_utils import get_operational_date, now_utc
from app.utils.json_serializer import sanitize_for_json

_log = logging.getLogger(__name__)

# Stall confirmations may be edited/removed only while the session is in one of these
EDITABLE_STATUSES = (SessionStatus.ACTIVE, SessionStatus.COMPLETED)


def _find_session(db: Session, actor_id: int, session_date: date) -> Optional[MarketSession]:
    return (
        db.query(MarketSession)
        .filter(
            MarketSession.actor_id == actor_id,
            MarketSession.session_date == session_date,
        )
        .first()
    )


def _resolve_market_date(session_date: date, market_date: Optional[date]) -> Optional[date]:
    if market_date is None or market_date == session_date:
        return market_date
    if market_date == session_date - timedelta(days=1):
        return market_date
    raise PreconditionFailed(
        f"market_date must be {session_date} or {session_date - timedelta(days=1)}"
    )


def get_or_create_session(
    db: Session,
    actor: Actor,
    market_id: Optional[int] = None,
    market_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> MarketSession:
    """
    Return the actor's session for today, creating it if absent. session_date is always
    the operational date of `now` (server time); callers cannot choose it.

    Idempotent: a replay returns the existing session unchanged, even with a different
    market_id (the first call binds the day's market). A concurrent insert that loses
    the uniqueness race returns the winner's row.

    market_date defaults to session_date. The only other accepted value is the previous
    day, for a market that ran past midnight.

    Raises:
        Conflict: the day's session is locked, or another session already covers the
            claimed operational date
        PreconditionFailed: market_date is neither session_date nor the day before
        PolicyViolation: market not live on the date (when ENFORCE_MARKET_SCHEDULE)
        NotFound: unknown market
    """
    now = now or now_utc()
    session_date = get_operational_date(now)

    existing = _find_session(db, actor.id, session_date)
    if existing:
        if existing.status == SessionStatus.LOCKED:
            raise Conflict(f"Session for {session_date} is locked")
        return existing

    market_date = _resolve_market_date(session_date, market_date)
    claimed = market_date or session_date
    if attendance_service.find_session_for_date(db, actor.id, claimed) is not None:
        raise Conflict(f"A session for operational date {claimed} already exists")

    if market_id is not None:
        market = get_market(db, market_id)
        market_date = claimed
        if settings.ENFORCE_MARKET_SCHEDULE and not is_market_live(db, market, market_date):
            raise PolicyViolation(f"Market '{market.name}' is not live on {market_date}")

    session = MarketSession(
        actor_id=actor.id,
        market_id=market_id,
        session_date=session_date,
        market_date=market_date,
        status=SessionStatus.ACTIVE,
        punch_in_time=None,
        punch_out_time=None,
        created_at=now,
        updated_at=now,
    )
    db.add(session)
    try:
        db.flush()
        task_status_service.seed_task_statuses(db, session, now)
        db.commit()
    except IntegrityError:
        db.rollback()
        _log.info("Concurrent session create for actor_id=%s date=%s; returning existing", actor.id, session_date)
        winner = _find_session(db, actor.id, session_date)
        if winner is None:
            raise
        if winner.status == SessionStatus.LOCKED:
            raise Conflict(f"Session for {session_date} is locked")
        return winner
    db.refresh(session)

    _log.debug(
        "session created: id=%s actor_id=%s session_date=%s market_id=%s",
        session.id, actor.id, session_date, market_id,
    )
    publish("sessions", session.id, "created", actor_id=actor.id)
    attendance_service.recompute_for_session(db, session)
    return session


def get_session(db: Session, session_id: int) -> MarketSession:
    session = db.query(MarketSession).filter(MarketSession.id == session_id).first()
    if not session:
        raise NotFound(f"Session with id {session_id} not found")
    return session


def get_session_for_actor(db: Session, session_id: int, actor: Actor) -> MarketSession:
    """Session owned by `actor`; someone else's session is reported as not found."""
    session = get_session(db, session_id)
    if session.actor_id != actor.id:
        raise NotFound(f"Session with id {session_id} not found")
    return session


def _require_gps(gps: Optional[dict]) -> dict:
    if not gps or gps.get("lat") is None or gps.get("lng") is None:
        raise PreconditionFailed("GPS location is required to punch in")
    return gps


def punch_in(
    db: Session,
    session_id: int,
    actor: Actor,
    gps: Optional[dict],
    selfie_ref: Optional[str],
    now: Optional[datetime] = None,
) -> MarketSession:
    """
    Punch in: server UTC time, mandatory GPS fix and selfie reference.
    Advances the punch task to in_progress.
    """
    now = now or now_utc()
    session = get_session_for_actor(db, session_id, actor)

    if session.punch_in_time is not None:
        raise Conflict("Already punched in")
    if session.status != SessionStatus.ACTIVE:
        raise Conflict(f"Session is {SessionStatus(session.status).value}")
    gps = _require_gps(gps)
    if not selfie_ref or not selfie_ref.strip():
        raise PreconditionFailed("Selfie is required to punch in")

    gps_safe = sanitize_for_json(gps)
    session.punch_in_time = now
    session.punch_in_geo = gps_safe
    session.selfie_ref = selfie_ref
    session.updated_at = now
    _log.debug("punch_in persist: session_id=%s actor_id=%s geo=set", session.id, actor.id)

    task_status_service.record_event(
        db,
        session,
        TaskType.PUNCH,
        {"geo": gps_safe, "selfie_ref": selfie_ref},
        action=TaskAction.PUNCH_IN,
        gps_lat=gps.get("lat"),
        gps_lng=gps.get("lng"),
        file_url=selfie_ref,
        now=now,
    )
    db.refresh(session)
    publish("sessions", session.id, "punched_in", actor_id=actor.id)
    return session


def punch_out(
    db: Session,
    session_id: int,
    actor: Actor,
    gps: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> MarketSession:
    """
    Punch out: completes the session, submits the punch task and freezes the
    attendance-eligible completion snapshot.
    """
    now = now or now_utc()
    session = get_session_for_actor(db, session_id, actor)

    if session.punch_in_time is None:
        raise PreconditionFailed("Punch in before punching out")
    if session.punch_out_time is not None:
        raise Conflict("Already punched out")
    if session.status != SessionStatus.ACTIVE:
        raise Conflict(f"Session is {SessionStatus(session.status).value}")

    session.punch_out_time = now
    session.status = SessionStatus.COMPLETED
    session.updated_at = now

    gps_safe = sanitize_for_json(gps) if gps else None
    task_status_service.record_event(
        db,
        session,
        TaskType.PUNCH,
        {"geo": gps_safe},
        action=TaskAction.PUNCH_OUT,
        gps_lat=gps.get("lat") if gps else None,
        gps_lng=gps.get("lng") if gps else None,
        now=now,
        commit=False,
    )
    summary_service.snapshot_session_summary(db, session, now)
    db.commit()
    db.refresh(session)

    publish("sessions", session.id, "punched_out", actor_id=actor.id)
    attendance_service.recompute_for_session(db, session)
    return session


def is_session_expired(session: MarketSession, today: Optional[date] = None) -> bool:
    """The sweep's rule, for readers that cannot wait for it. No mutation."""
    today = today or get_operational_date()
    return session.status == SessionStatus.ACTIVE and session.operational_date < today


def expire_stale_sessions(db: Session, now: Optional[datetime] = None) -> List[MarketSession]:
    """
    Move every active session whose operational date is before today to completed and
    recompute attendance for each. Returns the sessions it transitioned.
    """
    now = now or now_utc()
    today = get_operational_date(now)
    stale = (
        db.query(MarketSession)
        .filter(
            MarketSession.status == SessionStatus.ACTIVE,
            or_(
                MarketSession.market_date < today,
                and_(MarketSession.market_date.is_(None), MarketSession.session_date < today),
            ),
        )
        .order_by(MarketSession.id)
        .all()
    )
    if not stale:
        return []

    for session in stale:
        session.status = SessionStatus.COMPLETED
        session.updated_at = now
    db.commit()

    for session in stale:
        db.refresh(session)
        publish("sessions", session.id, "expired", actor_id=session.actor_id)
        attendance_service.recompute_for_session(db, session, today=today)

    _log.info("Expired %s stale sessions before %s", len(stale), today)
    return stale


def ensure_session_editable(session: MarketSession) -> None:
    """Stall edits/deletes are undo operations; refused once finalized or locked."""
    if session.status not in EDITABLE_STATUSES:
        raise Conflict(f"Session is {SessionStatus(session.status).value}; changes are not allowed")


def finalize_session(
    db: Session,
    session_id: int,
    actor_id: int,
    now: Optional[datetime] = None,
) -> MarketSession:
    """Office review: completed -> finalized."""
    now = now or now_utc()
    session = get_session(db, session_id)
    if session.status != SessionStatus.COMPLETED:
        raise Conflict(f"Only a completed session can be finalized (session is {SessionStatus(session.status).value})")

    session.status = SessionStatus.FINALIZED
    session.finalized_at = now
    session.updated_at = now
    db.commit()
    db.refresh(session)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="SESSION_FINALIZE",
        entity_type="sessions",
        entity_id=session.id,
        meta={"session_date": session.session_date, "finalized_at": now},
    )
    publish("sessions", session.id, "finalized")
    return session


def lock_session(
    db: Session,
    session_id: int,
    actor_id: int,
    now: Optional[datetime] = None,
) -> MarketSession:
    """Administrative freeze: completed|finalized -> locked. No further events accepted."""
    now = now or now_utc()
    session = get_session(db, session_id)
    if session.status not in (SessionStatus.COMPLETED, SessionStatus.FINALIZED):
        raise Conflict(f"Only a completed or finalized session can be locked (session is {SessionStatus(session.status).value})")

    old_status = SessionStatus(session.status)
    session.status = SessionStatus.LOCKED
    session.updated_at = now
    db.commit()
    db.refresh(session)

    log_audit(
        db=db,
        actor_id=actor_id,
        action="SESSION_LOCK",
        entity_type="sessions",
        entity_id=session.id,
        meta={"old_status": old_status, "new_status": SessionStatus.LOCKED},
    )
    publish("sessions", session.id, "locked")
    return session


def get_today_session(db: Session, actor_id: int, now: Optional[datetime] = None) -> Optional[MarketSession]:
    """Today's session (operational date) for the actor."""
    return _find_session(db, actor_id, get_operational_date(now))


def _validate_range(from_date: date, to_date: date) -> None:
    if from_date > to_date:
        raise PreconditionFailed("from must be less than or equal to to")


def list_my_sessions(
    db: Session,
    actor_id: int,
    from_date: date,
    to_date: date,
) -> List[MarketSession]:
    """Sessions for the actor in the date range, newest first."""
    _validate_range(from_date, to_date)
    return (
        db.query(MarketSession)
        .filter(
            MarketSession.actor_id == actor_id,
            MarketSession.session_date >= from_date,
            MarketSession.session_date <= to_date,
        )
        .order_by(MarketSession.session_date.desc())
        .all()
    )


def admin_list_sessions(
    db: Session,
    from_date: date,
    to_date: date,
    actor_id: Optional[int] = None,
    market_id: Optional[int] = None,
    status_filter: Optional[SessionStatus] = None,
) -> List[MarketSession]:
    """Admin: sessions in date range with optional actor, market and status filters."""
    _validate_range(from_date, to_date)
    query = db.query(MarketSession).filter(
        MarketSession.session_date >= from_date,
        MarketSession.session_date <= to_date,
    )
    if actor_id is not None:
        query = query.filter(MarketSession.actor_id == actor_id)
    if market_id is not None:
        query = query.filter(MarketSession.market_id == market_id)
    if status_filter is not None:
        query = query.filter(MarketSession.status == status_filter)
    return query.order_by(MarketSession.session_date.desc(), MarketSession.actor_id).all()
