"""
Session endpoints: get-or-create today's session, punch in/out, task submission and
status, session summary. Field actors only see their own sessions; admin can read any.
"""
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_current_user, require_field_actor
from app.models.actor import Actor, Role
from app.models.field_session import MarketSession
from app.schemas.session import (
    SessionCreateRequest,
    PunchInRequest,
    PunchOutRequest,
    SessionDto,
    SessionListResponse,
    SessionTasksResponse,
    TaskStatusDto,
    TaskSubmitRequest,
    SessionSummaryDto,
    SessionSummarySnapshotDto,
)
from app.services import session_service as svc
from app.services import task_status_service, summary_service
from app.services.attendance_service import (
    count_completed_tasks,
    session_display_status,
    TOTAL_TASKS,
)
from app.utils.datetime_utils import get_operational_date

router = APIRouter()
_log = logging.getLogger(__name__)


def _geo_to_dict(geo) -> Optional[dict]:
    if geo is None:
        return None
    return geo.model_dump(exclude_none=True)


def session_to_dto(db: Session, s: MarketSession, today: Optional[date] = None) -> SessionDto:
    dto = SessionDto.model_validate(s)
    dto.display_status = session_display_status(s, count_completed_tasks(db, s.id), today)
    return dto


def _readable_session(db: Session, session_id: int, current_user: Actor) -> MarketSession:
    if current_user.role == Role.ADMIN:
        return svc.get_session(db, session_id)
    return svc.get_session_for_actor(db, session_id, current_user)


@router.post("", response_model=SessionDto)
async def get_or_create_session(
    body: Optional[SessionCreateRequest] = None,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """
    Today's session for the caller, created on first call. market_id binds the day's
    market on the first call; later calls return the same session unchanged.
    """
    payload = body or SessionCreateRequest()
    session = svc.get_or_create_session(
        db,
        current_user,
        market_id=payload.market_id,
        market_date=payload.market_date,
    )
    return session_to_dto(db, session)


@router.get("/today", response_model=Optional[SessionDto])
async def today_session(
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """Caller's session for today (operational zone), or null."""
    session = svc.get_today_session(db, current_user.id)
    if session is None:
        return None
    return session_to_dto(db, session)


@router.get("/my", response_model=SessionListResponse)
async def my_sessions(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    sessions = svc.list_my_sessions(db, current_user.id, from_date, to_date)
    today = get_operational_date()
    items = [session_to_dto(db, s, today) for s in sessions]
    return SessionListResponse(items=items, total=len(items))


@router.post("/{session_id}/punch-in", response_model=SessionDto)
async def punch_in(
    session_id: int,
    body: Optional[PunchInRequest] = None,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """Punch in with a GPS fix and selfie reference (both required)."""
    payload = body or PunchInRequest()
    session = svc.punch_in(
        db,
        session_id,
        current_user,
        gps=_geo_to_dict(payload.geo),
        selfie_ref=payload.selfie_ref,
    )
    _log.debug("punch_in response: session_id=%s", session.id)
    return session_to_dto(db, session)


@router.post("/{session_id}/punch-out", response_model=SessionDto)
async def punch_out(
    session_id: int,
    body: Optional[PunchOutRequest] = None,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    payload = body or PunchOutRequest()
    session = svc.punch_out(db, session_id, current_user, gps=_geo_to_dict(payload.geo))
    return session_to_dto(db, session)


@router.get("/{session_id}/tasks", response_model=SessionTasksResponse)
async def session_tasks(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    session = _readable_session(db, session_id, current_user)
    rows = task_status_service.list_task_statuses(db, session.id)
    completed = count_completed_tasks(db, session.id)
    return SessionTasksResponse(
        session_id=session.id,
        status=session.status,
        display_status=session_display_status(session, completed),
        completed_tasks=completed,
        total_tasks=TOTAL_TASKS,
        all_complete=completed == TOTAL_TASKS,
        tasks=[TaskStatusDto.model_validate(r) for r in rows],
    )


@router.post("/{session_id}/tasks", response_model=TaskStatusDto, status_code=status.HTTP_201_CREATED)
async def submit_task(
    session_id: int,
    body: TaskSubmitRequest,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_field_actor),
):
    """RecordTaskEvent for any task type except punch."""
    session = svc.get_session_for_actor(db, session_id, current_user)
    return task_status_service.submit_task(
        db,
        session,
        body.task_type,
        body.payload,
        gps_lat=body.gps_lat,
        gps_lng=body.gps_lng,
        file_url=body.file_url,
    )


@router.get("/{session_id}/summary", response_model=SessionSummaryDto)
async def session_summary(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    session = _readable_session(db, session_id, current_user)
    summary = summary_service.get_session_summary(db, session)
    snapshot = summary.pop("snapshot")
    return SessionSummaryDto(
        **summary,
        snapshot=SessionSummarySnapshotDto.model_validate(snapshot) if snapshot else None,
    )
