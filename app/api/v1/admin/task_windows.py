"""
Admin task window endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.models.actor import Actor, Role
from app.models.field_session import TaskType
from app.schemas.task_window import TaskWindowOut, TaskWindowUpdate, TaskWindowListResponse
from app.services import time_window_service as svc

router = APIRouter()


@router.get("", response_model=TaskWindowListResponse)
async def list_task_windows(
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    return TaskWindowListResponse(items=[TaskWindowOut(**w) for w in svc.list_windows(db)])


@router.put("/{task_type}", response_model=TaskWindowOut)
async def update_task_window(
    task_type: TaskType,
    body: TaskWindowUpdate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    """New window applies to future captures only."""
    row = svc.update_task_window(db, task_type, body.allowed_start, body.allowed_end, actor_id=current_user.id)
    return TaskWindowOut(task_type=row.task_type, allowed_start=row.allowed_start, allowed_end=row.allowed_end)
