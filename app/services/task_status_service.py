"""
Task status tracker: append task events and keep the per-(session, task_type) status
projection in step with them.

TaskEvent is authoritative. TaskStatus always equals project_task_status() over the
events of its (session, task_type); rebuild_task_status() recomputes it from scratch.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound, PreconditionFailed
from app.models.field_session import (
    MarketSession,
    SessionStatus,
    TaskEvent,
    TaskStatus,
    TaskType,
    TaskState,
    TaskAction,
    REQUIRED_TASK_TYPES,
    COMPLETED_TASK_STATES,
)
from app.services import attendance_service
from app.services.audit_service import log_audit
from app.services.notification_service import publish
from app.services.time_window_service import get_window, is_late as evaluate_lateness
from app.utils.datetime_utils import now_utc
from app.utils.json_serializer import sanitize_for_json

_log = logging.getLogger(__name__)


def next_task_status(current: TaskState, task_type: TaskType, action: TaskAction) -> TaskState:
    """
    Forward-only state machine for one (session, task_type).

    punch:  pending -punch_in-> in_progress -punch_out-> submitted
    others: pending|submitted -submit-> submitted
    any:    submitted -lock-> locked
    """
    current = TaskState(current)
    task_type = TaskType(task_type)
    action = TaskAction(action)

    if current == TaskState.LOCKED:
        raise Conflict(f"Task '{task_type.value}' is locked")

    if action == TaskAction.LOCK:
        if current != TaskState.SUBMITTED:
            raise Conflict(f"Only a submitted task can be locked ('{task_type.value}' is {current.value})")
        return TaskState.LOCKED

    if task_type == TaskType.PUNCH:
        if action == TaskAction.PUNCH_IN:
            if current != TaskState.PENDING:
                raise Conflict("Already punched in")
            return TaskState.IN_PROGRESS
        if action == TaskAction.PUNCH_OUT:
            if current == TaskState.PENDING:
                raise PreconditionFailed("Punch in before punching out")
            if current == TaskState.SUBMITTED:
                raise Conflict("Already punched out")
            return TaskState.SUBMITTED
        raise Conflict("The punch task only accepts punch-in and punch-out")

    if action != TaskAction.SUBMIT:
        raise Conflict(f"Action '{action.value}' does not apply to task '{task_type.value}'")
    return TaskState.SUBMITTED


def project_task_status(events: Iterable[TaskEvent]) -> Tuple[TaskState, Optional[int]]:
    """Fold an event history (any order) into (status, latest_event_id)."""
    state = TaskState.PENDING
    latest_event_id = None
    for event in sorted(events, key=lambda e: e.id):
        state = next_task_status(state, event.task_type, TaskAction(event.action))
        latest_event_id = event.id
    return state, latest_event_id


def seed_task_statuses(db: Session, session: MarketSession, now: datetime) -> None:
    """Add one pending row per required task type (caller commits)."""
    for task_type in REQUIRED_TASK_TYPES:
        db.add(TaskStatus(
            session_id=session.id,
            task_type=task_type,
            status=TaskState.PENDING,
            latest_event_id=None,
            updated_at=now,
        ))


def _lock_status_row(db: Session, session_id: int, task_type: TaskType, now: datetime) -> TaskStatus:
    """Fetch the projection row with a row lock, creating it if the seed is missing."""
    row = (
        db.query(TaskStatus)
        .filter(TaskStatus.session_id == session_id, TaskStatus.task_type == task_type)
        .with_for_update()
        .first()
    )
    if row is not None:
        return row

    row = TaskStatus(
        session_id=session_id,
        task_type=task_type,
        status=TaskState.PENDING,
        updated_at=now,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Task '{task_type.value}' was updated concurrently; retry the submission")
    return row


def record_event(
    db: Session,
    session: MarketSession,
    task_type: TaskType,
    payload: Optional[dict] = None,
    *,
    action: TaskAction = TaskAction.SUBMIT,
    gps_lat: Optional[float] = None,
    gps_lng: Optional[float] = None,
    file_url: Optional[str] = None,
    is_late: Optional[bool] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> TaskStatus:
    """
    Append a TaskEvent and advance the TaskStatus projection for (session, task_type).

    Lateness is evaluated here, once, against the window in force at `now` unless the
    caller already evaluated it (media captures). With commit=False the caller owns the
    commit and the attendance recomputation.

    Raises:
        Conflict: session locked, task locked, or backward transition
        PreconditionFailed: punch-out before punch-in
    """
    task_type = TaskType(task_type)
    action = TaskAction(action)
    now = now or now_utc()

    if session.status == SessionStatus.LOCKED:
        raise Conflict("Session is locked")

    status_row = _lock_status_row(db, session.id, task_type, now)
    try:
        new_state = next_task_status(status_row.status, task_type, action)
    except (Conflict, PreconditionFailed):
        # Drop the caller's pending rows (stall, collection, session fields) with the event
        db.rollback()
        raise

    if is_late is None:
        is_late = evaluate_lateness(now, get_window(db, task_type))

    event_payload = dict(sanitize_for_json(payload) or {})
    event_payload["action"] = action.value
    event = TaskEvent(
        session_id=session.id,
        task_type=task_type,
        payload=event_payload,
        gps_lat=gps_lat,
        gps_lng=gps_lng,
        file_url=file_url,
        is_late=is_late,
        created_at=now,
    )
    db.add(event)
    db.flush()

    status_row.status = new_state
    status_row.latest_event_id = event.id
    status_row.updated_at = now
    _log.debug(
        "task event: session_id=%s task_type=%s action=%s -> %s (late=%s)",
        session.id, task_type.value, action.value, new_state.value, is_late,
    )

    if commit:
        db.commit()
        db.refresh(status_row)
        attendance_service.recompute_for_session(db, session)
    else:
        db.flush()

    publish("task_events", event.id, "created", session_id=session.id, task_type=task_type.value)
    publish("task_status", status_row.id, "updated", session_id=session.id, status=new_state.value)
    return status_row


def submit_task(
    db: Session,
    session: MarketSession,
    task_type: TaskType,
    payload: Optional[dict] = None,
    *,
    gps_lat: Optional[float] = None,
    gps_lng: Optional[float] = None,
    file_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TaskStatus:
    """Generic task submission. The punch task only moves through punch-in/punch-out."""
    if TaskType(task_type) == TaskType.PUNCH:
        raise PreconditionFailed("Use punch-in / punch-out for the punch task")
    return record_event(
        db,
        session,
        task_type,
        payload,
        action=TaskAction.SUBMIT,
        gps_lat=gps_lat,
        gps_lng=gps_lng,
        file_url=file_url,
        now=now,
    )


def get_task_status(db: Session, session_id: int, task_type: TaskType) -> Optional[TaskStatus]:
    return (
        db.query(TaskStatus)
        .filter(TaskStatus.session_id == session_id, TaskStatus.task_type == TaskType(task_type))
        .first()
    )


def list_task_statuses(db: Session, session_id: int) -> List[TaskStatus]:
    """Projection rows for a session in required-task order."""
    rows = db.query(TaskStatus).filter(TaskStatus.session_id == session_id).all()
    order = {task_type: i for i, task_type in enumerate(REQUIRED_TASK_TYPES)}
    return sorted(rows, key=lambda row: order.get(TaskType(row.task_type), len(order)))


def status_map(db: Session, session_id: int) -> Dict[TaskType, TaskState]:
    """Status per required task type; missing rows count as pending."""
    found = {TaskType(row.task_type): TaskState(row.status) for row in list_task_statuses(db, session_id)}
    return {task_type: found.get(task_type, TaskState.PENDING) for task_type in REQUIRED_TASK_TYPES}


def completed_task_types(statuses: Dict[TaskType, TaskState]) -> List[TaskType]:
    return [t for t in REQUIRED_TASK_TYPES if statuses.get(t) in COMPLETED_TASK_STATES]


def all_tasks_complete(statuses: Dict[TaskType, TaskState]) -> bool:
    return len(completed_task_types(statuses)) == len(REQUIRED_TASK_TYPES)


def list_events(db: Session, session_id: int, task_type: Optional[TaskType] = None) -> List[TaskEvent]:
    query = db.query(TaskEvent).filter(TaskEvent.session_id == session_id)
    if task_type is not None:
        query = query.filter(TaskEvent.task_type == TaskType(task_type))
    return query.order_by(TaskEvent.id).all()


def rebuild_task_status(db: Session, session_id: int, task_type: TaskType) -> TaskStatus:
    """Recompute the projection row from the event log and persist it."""
    task_type = TaskType(task_type)
    now = now_utc()
    state, latest_event_id = project_task_status(list_events(db, session_id, task_type))
    row = _lock_status_row(db, session_id, task_type, now)
    if row.status != state or row.latest_event_id != latest_event_id:
        _log.warning(
            "task_status drift repaired: session_id=%s task_type=%s stored=%s rebuilt=%s",
            session_id, task_type.value, row.status, state.value,
        )
        row.status = state
        row.latest_event_id = latest_event_id
        row.updated_at = now
    db.commit()
    db.refresh(row)
    return row


def lock_task(
    db: Session,
    session_id: int,
    task_type: TaskType,
    actor_id: int,
    now: Optional[datetime] = None,
) -> TaskStatus:
    """Administratively freeze a submitted task (office role)."""
    session = db.query(MarketSession).filter(MarketSession.id == session_id).first()
    if not session:
        raise NotFound(f"Session with id {session_id} not found")

    row = record_event(
        db,
        session,
        task_type,
        {"locked_by": actor_id},
        action=TaskAction.LOCK,
        is_late=False,
        now=now,
    )
    log_audit(
        db=db,
        actor_id=actor_id,
        action="TASK_LOCK",
        entity_type="task_status",
        entity_id=row.id,
        meta={"session_id": session_id, "task_type": TaskType(task_type)},
    )
    return row
