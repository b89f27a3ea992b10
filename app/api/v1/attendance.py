"""
Attendance endpoints: the caller's own derived attendance records.
"""
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_current_user
from app.models.actor import Actor
from app.schemas.attendance import AttendanceListResponse, AttendanceRecordOut
from app.services.attendance_service import get_attendance

router = APIRouter()


@router.get("/my", response_model=AttendanceListResponse)
async def my_attendance(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    GetAttendance for the caller. Days up to today are recomputed before reading, so the
    result does not wait for the nightly reconciliation.
    """
    records = get_attendance(db, current_user.id, from_date, to_date)
    items = [AttendanceRecordOut.model_validate(r) for r in records]
    return AttendanceListResponse(items=items, total=len(items))
