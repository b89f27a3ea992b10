"""
Attendance record schemas (derived, one row per actor per operational date).
"""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, field_serializer

from app.models.attendance import AttendanceStatus
from app.utils.datetime_utils import iso_operational


class AttendanceRecordOut(BaseModel):
    id: int
    actor_id: int
    attendance_date: date
    role: str
    market_id: Optional[int] = None
    city: Optional[str] = None
    total_tasks: int
    completed_tasks: int
    status: AttendanceStatus
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("updated_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class AttendanceListResponse(BaseModel):
    items: List[AttendanceRecordOut]
    total: int


class ReconcileResponse(BaseModel):
    date: date
    records: int
