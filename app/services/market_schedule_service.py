"""
Market schedule service - which markets are live on a given operational date,
plus market and schedule-override administration.
"""
import logging
from datetime import date
from typing import List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFound, PreconditionFailed
from app.models.market import Market, MarketScheduleOverride
from app.services.audit_service import log_audit
from app.services.notification_service import publish
from app.utils.datetime_utils import market_weekday, now_utc

_log = logging.getLogger(__name__)


def is_non_operating_day(d: date) -> bool:
    """Designated weekly closure (no markets, weekly_off attendance)."""
    return d.weekday() == settings.WEEKLY_OFF_DAY


def _override_market_ids(db: Session, d: date) -> Set[int]:
    rows = (
        db.query(MarketScheduleOverride.market_id)
        .filter(MarketScheduleOverride.schedule_date == d)
        .all()
    )
    return {row[0] for row in rows}


def is_market_live(db: Session, market: Market, d: date) -> bool:
    """
    A market is live on `d` if it recurs on that weekday and is active, or an explicit
    override exists for (market, d). On the non-operating weekday only an override counts.
    """
    if market.id in _override_market_ids(db, d):
        return True
    if is_non_operating_day(d):
        return False
    return bool(
        market.is_active
        and market.day_of_week is not None
        and market.day_of_week == market_weekday(d)
    )


def list_live_markets(db: Session, d: date) -> List[Market]:
    """All markets live on `d`, ordered by name."""
    override_ids = _override_market_ids(db, d)
    query = db.query(Market)
    if is_non_operating_day(d):
        if not override_ids:
            return []
        query = query.filter(Market.id.in_(override_ids))
    else:
        recurring = (Market.is_active == True) & (Market.day_of_week == market_weekday(d))  # noqa: E712
        if override_ids:
            query = query.filter(or_(recurring, Market.id.in_(override_ids)))
        else:
            query = query.filter(recurring)
    return query.order_by(Market.name).all()


def get_market(db: Session, market_id: int) -> Market:
    market = db.query(Market).filter(Market.id == market_id).first()
    if not market:
        raise NotFound(f"Market with id {market_id} not found")
    return market


def list_markets(
    db: Session,
    city: Optional[str] = None,
    active_only: bool = False,
) -> List[Market]:
    query = db.query(Market)
    if city:
        query = query.filter(Market.city == city)
    if active_only:
        query = query.filter(Market.is_active == True)  # noqa: E712
    return query.order_by(Market.name).all()


def _validate_day_of_week(day_of_week: Optional[int]) -> None:
    if day_of_week is not None and not 0 <= day_of_week <= 6:
        raise PreconditionFailed("day_of_week must be between 0 (Sunday) and 6 (Saturday)")


def create_market(
    db: Session,
    name: str,
    location: str,
    *,
    city: Optional[str] = None,
    address: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    is_active: bool = True,
    day_of_week: Optional[int] = None,
    schedule_json: Optional[dict] = None,
    actor_id: Optional[int] = None,
) -> Market:
    """Create a market (office role)."""
    _validate_day_of_week(day_of_week)
    now = now_utc()
    market = Market(
        name=name,
        location=location,
        city=city,
        address=address,
        lat=lat,
        lng=lng,
        is_active=is_active,
        day_of_week=day_of_week,
        schedule_json=schedule_json,
        created_at=now,
        updated_at=now,
    )
    db.add(market)
    db.commit()
    db.refresh(market)

    if actor_id:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="MARKET_CREATE",
            entity_type="markets",
            entity_id=market.id,
            meta={"name": name, "day_of_week": day_of_week, "city": city},
        )
    publish("markets", market.id, "created")
    return market


_REQUIRED_MARKET_FIELDS = ("name", "location", "is_active")


def update_market(
    db: Session,
    market_id: int,
    actor_id: Optional[int] = None,
    **changes,
) -> Market:
    """
    Patch a market with the keys present in `changes`. An explicit None clears a nullable
    column (day_of_week, schedule_json, city, ...); name, location and is_active cannot be
    cleared.
    """
    market = get_market(db, market_id)
    for field in _REQUIRED_MARKET_FIELDS:
        if field in changes and changes[field] is None:
            raise PreconditionFailed(f"{field} cannot be cleared")
    if "day_of_week" in changes:
        _validate_day_of_week(changes["day_of_week"])

    meta = {}
    for field in ("name", "location", "city", "address", "lat", "lng", "is_active", "day_of_week", "schedule_json"):
        if field in changes:
            meta[field] = {"old": getattr(market, field), "new": changes[field]}
            setattr(market, field, changes[field])
    market.updated_at = now_utc()
    db.commit()
    db.refresh(market)

    if actor_id and meta:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="MARKET_UPDATE",
            entity_type="markets",
            entity_id=market.id,
            meta=meta,
        )
    publish("markets", market.id, "updated")
    return market


def add_schedule_override(
    db: Session,
    market_id: int,
    schedule_date: date,
    actor_id: Optional[int] = None,
) -> MarketScheduleOverride:
    """
    Mark a market live on `schedule_date`. Idempotent: an existing override is returned.
    """
    get_market(db, market_id)

    existing = (
        db.query(MarketScheduleOverride)
        .filter(
            MarketScheduleOverride.market_id == market_id,
            MarketScheduleOverride.schedule_date == schedule_date,
        )
        .first()
    )
    if existing:
        return existing

    override = MarketScheduleOverride(
        market_id=market_id,
        schedule_date=schedule_date,
        created_by=actor_id,
        created_at=now_utc(),
    )
    db.add(override)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        _log.info("Concurrent override insert for market=%s date=%s", market_id, schedule_date)
        return (
            db.query(MarketScheduleOverride)
            .filter(
                MarketScheduleOverride.market_id == market_id,
                MarketScheduleOverride.schedule_date == schedule_date,
            )
            .one()
        )
    db.refresh(override)

    if actor_id:
        log_audit(
            db=db,
            actor_id=actor_id,
            action="MARKET_SCHEDULE_OVERRIDE_ADD",
            entity_type="market_schedule",
            entity_id=override.id,
            meta={"market_id": market_id, "schedule_date": schedule_date},
        )
    publish("market_schedule", override.id, "created", market_id=market_id)
    return override
