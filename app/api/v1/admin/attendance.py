"""
Admin attendance endpoints: range overview and per-day reconciliation.
"""
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.models.actor import Actor, Role
from app.schemas.attendance import AttendanceListResponse, AttendanceRecordOut, ReconcileResponse
from app.services import attendance_service as svc
from app.utils.datetime_utils import get_operational_date

router = APIRouter()


@router.get("", response_model=AttendanceListResponse)
async def admin_attendance(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    actor_id: Optional[int] = Query(None),
    city: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    """
    With actor_id: GetAttendance (recomputed up to today). Without: stored records for
    every actor, as last written by mutations and the reconciliation sweep.
    """
    if actor_id is not None:
        records = svc.get_attendance(db, actor_id, from_date, to_date)
        if city:
            records = [r for r in records if r.city == city]
    else:
        records = svc.list_attendance(db, from_date, to_date, city=city)
    items = [AttendanceRecordOut.model_validate(r) for r in records]
    return AttendanceListResponse(items=items, total=len(items))


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    on_date: Optional[date] = Query(None, alias="date", description="Defaults to yesterday"),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Recompute (actor, date) for every active field actor."""
    d = on_date or (get_operational_date() - timedelta(days=1))
    records = svc.reconcile_attendance_for_date(db, d)
    return ReconcileResponse(date=d, records=len(records))
