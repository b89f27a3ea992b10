"""
Session, task status and session summary schemas. All datetimes are emitted in the
operational zone (e.g. +05:30), never Z.
"""
import json
from datetime import date, datetime
from typing import Optional, List, Any, Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator, field_serializer

from app.models.field_session import SessionStatus, TaskType, TaskState
from app.utils.datetime_utils import iso_operational


class GeoSchema(BaseModel):
    """GPS fix: lat, lng required; optional accuracy, provider, captured_at, address."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")
    accuracy: Optional[float] = Field(None, gt=0)
    provider: Optional[str] = None
    captured_at: Optional[datetime] = None
    address: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class SessionCreateRequest(BaseModel):
    """
    GetOrCreateSession body. market_id binds the day's market on the first call only.
    The session date is always taken from server time; a client-sent session_date is ignored.
    """
    market_id: Optional[int] = None
    market_date: Optional[date] = Field(None, description="Today (default) or yesterday for a market that ran past midnight")


class PunchInRequest(BaseModel):
    """GPS and selfie are mandatory; they are validated by the service so a missing
    value is reported as a precondition failure rather than a schema error."""
    geo: Optional[GeoSchema] = None
    selfie_ref: Optional[str] = Field(None, description="Object storage reference of the selfie")


class PunchOutRequest(BaseModel):
    geo: Optional[GeoSchema] = None


def _ensure_geo_dict(v: Any) -> Optional[Dict[str, Any]]:
    """ORM may return str for a SQLite JSON column."""
    if v is None:
        return None
    if isinstance(v, dict):
        return v
    if isinstance(v, str):
        try:
            return json.loads(v)
        except (TypeError, ValueError):
            return None
    return None


class SessionDto(BaseModel):
    """Session output. display_status folds in incomplete_expired for past sessions."""
    id: int
    actor_id: int
    market_id: Optional[int] = None
    session_date: date
    market_date: Optional[date] = None
    status: SessionStatus
    display_status: Optional[str] = None
    punch_in_time: Optional[datetime] = None
    punch_out_time: Optional[datetime] = None
    punch_in_geo: Optional[Dict[str, Any]] = None
    selfie_ref: Optional[str] = None
    finalized_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("punch_in_geo", mode="before")
    @classmethod
    def geo_to_dict(cls, v: Any) -> Optional[Dict[str, Any]]:
        return _ensure_geo_dict(v)

    @field_serializer("punch_in_time", "punch_out_time", "finalized_at", "created_at", "updated_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class SessionListResponse(BaseModel):
    items: List[SessionDto]
    total: int


class TaskStatusDto(BaseModel):
    id: int
    session_id: int
    task_type: TaskType
    status: TaskState
    latest_event_id: Optional[int] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("updated_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class SessionTasksResponse(BaseModel):
    session_id: int
    status: SessionStatus
    display_status: str
    completed_tasks: int
    total_tasks: int
    all_complete: bool
    tasks: List[TaskStatusDto]


class TaskSubmitRequest(BaseModel):
    """RecordTaskEvent body for the generic task endpoint."""
    task_type: TaskType
    payload: Optional[Dict[str, Any]] = None
    gps_lat: Optional[float] = Field(None, ge=-90, le=90)
    gps_lng: Optional[float] = Field(None, ge=-180, le=180)
    file_url: Optional[str] = None


class SessionSummarySnapshotDto(BaseModel):
    """Frozen at punch-out."""
    stalls_count: int
    media_count: int
    late_uploads_count: int
    first_activity_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    completed_tasks: int
    completed_task_types: Optional[List[str]] = None
    finalized_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("first_activity_at", "last_activity_at", "finalized_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class SessionSummaryDto(BaseModel):
    """GetSessionSummary: live values plus the punch-out snapshot when present."""
    session_id: int
    stalls_count: int
    media_count: int
    late_uploads_count: int
    first_activity_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    completed_tasks: int
    completed_task_types: List[str]
    snapshot: Optional[SessionSummarySnapshotDto] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("first_activity_at", "last_activity_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class ExpireSessionsResponse(BaseModel):
    expired: int
    session_ids: List[int]
