"""
Stall confirmation and collection schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.models.stall import CollectionMode
from app.utils.datetime_utils import iso_operational


class StallCreate(BaseModel):
    session_id: int
    farmer_name: str = Field(..., min_length=1)
    stall_name: str = Field(..., min_length=1)
    stall_no: str = Field(..., min_length=1)


class StallUpdate(BaseModel):
    farmer_name: Optional[str] = Field(None, min_length=1)
    stall_name: Optional[str] = Field(None, min_length=1)
    stall_no: Optional[str] = Field(None, min_length=1)


class StallOut(BaseModel):
    id: int
    session_id: int
    actor_id: int
    market_id: Optional[int] = None
    market_date: date
    farmer_name: str
    stall_name: str
    stall_no: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)


class CollectionCreate(BaseModel):
    session_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    mode: CollectionMode


class CollectionOut(BaseModel):
    id: int
    session_id: int
    market_id: Optional[int] = None
    market_date: date
    amount: Decimal
    mode: CollectionMode
    collected_by: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_operational(dt)
