"""
Session summary: live activity counters for a session, and the snapshot frozen at punch-out.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.field_session import MarketSession, SessionSummary, TaskEvent
from app.models.media import Media
from app.models.stall import StallConfirmation
from app.services import task_status_service
from app.utils.datetime_utils import ensure_utc


def _activity_bounds(db: Session, session: MarketSession):
    first, last = (
        db.query(func.min(TaskEvent.created_at), func.max(TaskEvent.created_at))
        .filter(TaskEvent.session_id == session.id)
        .one()
    )
    return ensure_utc(first), ensure_utc(last)


def compute_session_summary(db: Session, session: MarketSession) -> dict:
    """Counters recomputed from the current rows."""
    stalls_count = db.query(StallConfirmation).filter(StallConfirmation.session_id == session.id).count()
    media_count = db.query(Media).filter(Media.session_id == session.id).count()
    late_uploads_count = (
        db.query(Media)
        .filter(Media.session_id == session.id, Media.is_late == True)  # noqa: E712
        .count()
    )
    first_activity_at, last_activity_at = _activity_bounds(db, session)
    statuses = task_status_service.status_map(db, session.id)
    completed = task_status_service.completed_task_types(statuses)
    return {
        "session_id": session.id,
        "stalls_count": stalls_count,
        "media_count": media_count,
        "late_uploads_count": late_uploads_count,
        "first_activity_at": first_activity_at,
        "last_activity_at": last_activity_at,
        "completed_tasks": len(completed),
        "completed_task_types": [t.value for t in completed],
    }


def get_session_summary(db: Session, session: MarketSession) -> dict:
    """
    Live summary, plus the punch-out snapshot (if any) under "snapshot".
    """
    summary = compute_session_summary(db, session)
    snapshot: Optional[SessionSummary] = session.summary
    summary["snapshot"] = snapshot
    return summary


def snapshot_session_summary(db: Session, session: MarketSession, now: datetime) -> SessionSummary:
    """
    Freeze the summary at punch-out. The caller commits. completed_tasks stored here is
    what attendance counts for the day from now on.
    """
    values = compute_session_summary(db, session)
    values.pop("session_id")
    row = session.summary
    if row is None:
        row = SessionSummary(session_id=session.id, created_at=now)
        db.add(row)
        session.summary = row
    for key, value in values.items():
        setattr(row, key, value)
    row.finalized_at = now
    return row
