"""
Admin session endpoints: list, stale-session sweep, finalize/lock, task lock.
"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.sessions import session_to_dto
from app.core.deps import get_db, require_roles
from app.models.actor import Actor, Role
from app.models.field_session import SessionStatus, TaskType
from app.schemas.session import SessionDto, SessionListResponse, TaskStatusDto, ExpireSessionsResponse
from app.services import session_service as svc
from app.services.task_status_service import lock_task
from app.utils.datetime_utils import get_operational_date

router = APIRouter()


@router.get("", response_model=SessionListResponse)
async def admin_list(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    actor_id: Optional[int] = Query(None),
    market_id: Optional[int] = Query(None),
    status: Optional[SessionStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    sessions = svc.admin_list_sessions(
        db, from_date, to_date, actor_id=actor_id, market_id=market_id, status_filter=status
    )
    today = get_operational_date()
    items = [session_to_dto(db, s, today) for s in sessions]
    return SessionListResponse(items=items, total=len(items))


@router.post("/expire", response_model=ExpireSessionsResponse)
async def expire_sessions(
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Run the stale-session sweep now."""
    expired = svc.expire_stale_sessions(db)
    return ExpireSessionsResponse(expired=len(expired), session_ids=[s.id for s in expired])


@router.post("/{session_id}/finalize", response_model=SessionDto)
async def finalize(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    session = svc.finalize_session(db, session_id, current_user.id)
    return session_to_dto(db, session)


@router.post("/{session_id}/lock", response_model=SessionDto)
async def lock(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    session = svc.lock_session(db, session_id, current_user.id)
    return session_to_dto(db, session)


@router.post("/{session_id}/tasks/{task_type}/lock", response_model=TaskStatusDto)
async def lock_session_task(
    session_id: int,
    task_type: TaskType,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Freeze one submitted task; later submissions for it get 409."""
    return lock_task(db, session_id, task_type, current_user.id)
