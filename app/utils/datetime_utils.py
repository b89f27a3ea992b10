"""
Timezone-aware datetime helpers.
- Store and compute instants in UTC in the DB.
- Every civil-date / time-of-day decision goes through the operational zone
  (settings.OPERATIONAL_TZ); never the caller's local clock.
"""
from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.core.config import settings

UTC = timezone.utc


def operational_tz() -> ZoneInfo:
    return ZoneInfo(settings.OPERATIONAL_TZ)


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Use for punch times, event times, created_at, etc."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def to_operational(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to the operational zone. Naive datetimes are treated as UTC."""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(operational_tz())


def get_operational_date(now: Optional[datetime] = None) -> date:
    """Civil date of `now` (default: current time) in the operational zone."""
    return to_operational(now or now_utc()).date()


def operational_time_of_day(dt: datetime) -> time:
    """Wall-clock time of `dt` in the operational zone, without tzinfo."""
    return to_operational(dt).time().replace(tzinfo=None)


def market_weekday(d: date) -> int:
    """Weekday in market numbering: Sunday=0 ... Saturday=6."""
    return d.isoweekday() % 7


def iso_operational(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 with the operational zone offset. Use for API response datetimes."""
    if dt is None:
        return None
    return to_operational(dt).isoformat()
