"""
Time-window policy: classify a capture as on-time or late against the allowed window
for its task type. Windows are times of day in the operational zone and apply to every
operational day.
"""
from dataclasses import dataclass
from datetime import datetime, time
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import PreconditionFailed
from app.models.field_session import TaskType
from app.models.task_window import TaskWindow
from app.services.audit_service import log_audit
from app.utils.datetime_utils import now_utc, operational_time_of_day


@dataclass(frozen=True)
class Window:
    start: time
    end: time


DEFAULT_TASK_WINDOWS: Dict[TaskType, Window] = {
    TaskType.OUTSIDE_RATES: Window(time(14, 0), time(14, 15)),
    TaskType.SELFIE_GPS: Window(time(14, 15), time(14, 20)),
    TaskType.RATE_BOARD: Window(time(15, 45), time(16, 0)),
    TaskType.MARKET_VIDEO: Window(time(16, 0), time(16, 15)),
    TaskType.CLEANING_VIDEO: Window(time(21, 15), time(21, 30)),
}


def is_late(capture_time: datetime, window: Optional[Window]) -> bool:
    """
    True iff the capture's time of day (operational zone) is after window.end.
    Captures before window.start are accepted as early, not late. No window: never late.
    """
    if window is None:
        return False
    return operational_time_of_day(capture_time) > window.end


def get_window(db: Session, task_type: TaskType) -> Optional[Window]:
    """Configured window for `task_type`, falling back to the built-in default."""
    row = db.query(TaskWindow).filter(TaskWindow.task_type == task_type).first()
    if row:
        return Window(row.allowed_start, row.allowed_end)
    return DEFAULT_TASK_WINDOWS.get(task_type)


def list_windows(db: Session) -> List[dict]:
    windows = []
    for task_type in TaskType:
        window = get_window(db, task_type)
        if window is None:
            continue
        windows.append({
            "task_type": task_type,
            "allowed_start": window.start,
            "allowed_end": window.end,
        })
    return windows


def update_task_window(
    db: Session,
    task_type: TaskType,
    allowed_start: time,
    allowed_end: time,
    actor_id: Optional[int] = None,
) -> TaskWindow:
    """
    Set the window for a task type. Affects future captures only; stored is_late flags
    are never recomputed.
    """
    if allowed_start >= allowed_end:
        raise PreconditionFailed("allowed_start must be before allowed_end")

    row = db.query(TaskWindow).filter(TaskWindow.task_type == task_type).first()
    old = get_window(db, task_type)
    if row is None:
        row = TaskWindow(task_type=task_type)
        db.add(row)
    row.allowed_start = allowed_start
    row.allowed_end = allowed_end
    row.updated_at = now_utc()
    db.commit()
    db.refresh(row)

    if actor_id:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="TASK_WINDOW_UPDATE",
            entity_type="task_windows",
            entity_id=row.id,
            meta={
                "task_type": task_type,
                "old": {"start": old.start, "end": old.end} if old else None,
                "new": {"start": allowed_start, "end": allowed_end},
            },
        )
    return row
