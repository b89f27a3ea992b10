"""
Market endpoints: list/get, live-market resolution, and admin create/update/schedule.
"""
from datetime import date
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_current_user, require_roles
from app.models.actor import Actor, Role
from app.schemas.market import (
    MarketCreate,
    MarketUpdate,
    MarketOut,
    ScheduleOverrideCreate,
    ScheduleOverrideOut,
    MarketLiveOut,
    LiveMarketsResponse,
)
from app.services import market_schedule_service as svc
from app.utils.datetime_utils import get_operational_date

router = APIRouter()


@router.get("", response_model=List[MarketOut])
async def list_markets(
    city: Optional[str] = Query(None),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    return svc.list_markets(db, city=city, active_only=active_only)


@router.get("/live", response_model=LiveMarketsResponse)
async def live_markets(
    on_date: Optional[date] = Query(None, alias="date", description="Defaults to today (operational zone)"),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """Markets live on a date (weekday recurrence plus explicit overrides)."""
    d = on_date or get_operational_date()
    markets = svc.list_live_markets(db, d)
    return LiveMarketsResponse(
        date=d,
        items=[MarketOut.model_validate(m) for m in markets],
        total=len(markets),
    )


@router.get("/{market_id}", response_model=MarketOut)
async def get_market(
    market_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    return svc.get_market(db, market_id)


@router.get("/{market_id}/live", response_model=MarketLiveOut)
async def is_market_live(
    market_id: int,
    on_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    d = on_date or get_operational_date()
    market = svc.get_market(db, market_id)
    return MarketLiveOut(market_id=market.id, date=d, is_live=svc.is_market_live(db, market, d))


@router.post("", response_model=MarketOut, status_code=status.HTTP_201_CREATED)
async def create_market(
    body: MarketCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    return svc.create_market(db, actor_id=current_user.id, **body.model_dump())


@router.patch("/{market_id}", response_model=MarketOut)
async def update_market(
    market_id: int,
    body: MarketUpdate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    return svc.update_market(db, market_id, actor_id=current_user.id, **body.model_dump(exclude_unset=True))


@router.post("/{market_id}/schedule", response_model=ScheduleOverrideOut, status_code=status.HTTP_201_CREATED)
async def add_schedule_override(
    market_id: int,
    body: ScheduleOverrideCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_roles(Role.ADMIN)),
):
    """Mark the market live on a specific date. Re-adding returns the existing override."""
    return svc.add_schedule_override(db, market_id, body.schedule_date, actor_id=current_user.id)
