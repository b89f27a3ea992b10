"""
Market schemas
"""
from datetime import date, datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.utils.datetime_utils import iso_operational


class MarketBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    location: str = Field(..., min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    is_active: bool = True
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="0=Sunday ... 6=Saturday")
    schedule_json: Optional[Dict[str, Any]] = Field(None, description="Opaque schedule metadata")


class MarketCreate(MarketBase):
    """Schema for creating a market"""
    pass


class MarketUpdate(BaseModel):
    """Schema for updating a market (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    is_active: Optional[bool] = None
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    schedule_json: Optional[Dict[str, Any]] = None


class MarketOut(MarketBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class ScheduleOverrideCreate(BaseModel):
    schedule_date: date


class ScheduleOverrideOut(BaseModel):
    id: int
    market_id: int
    schedule_date: date
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class MarketLiveOut(BaseModel):
    """IsMarketLive result"""
    market_id: int
    date: date
    is_live: bool


class LiveMarketsResponse(BaseModel):
    date: date
    items: List[MarketOut]
    total: int
