"""
Media capture schemas
"""
from datetime import datetime, time
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.models.media import MediaType
from app.utils.datetime_utils import iso_operational


class MediaCreate(BaseModel):
    """The file is uploaded to object storage first; only its reference is sent here."""
    session_id: int
    media_type: MediaType
    file_url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    content_type: str = Field(..., min_length=1)
    gps_lat: Optional[float] = Field(None, ge=-90, le=90)
    gps_lng: Optional[float] = Field(None, ge=-180, le=180)


class MediaOut(BaseModel):
    id: int
    actor_id: int
    session_id: int
    market_id: Optional[int] = None
    media_type: MediaType
    file_url: str
    file_name: str
    content_type: str
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    captured_at: datetime
    allowed_start: Optional[time] = None
    allowed_end: Optional[time] = None
    is_late: bool
    task_event_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("captured_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)
