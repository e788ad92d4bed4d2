"""Timezone-aware calendar helpers (local day, ISO week, day scope)."""
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from models.checkup import DayScope

logger = logging.getLogger(__name__)

WEEKDAY_CODES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
EVENING_KEYWORDS = ("evening", "night", "soir", "nuit")


def get_zone(name: Optional[str], default: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or default)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, using {default}")
        return ZoneInfo(default)


def to_local(moment: datetime, zone: ZoneInfo) -> datetime:
    """Naive datetimes are read as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone)


def iso_week_start(moment: datetime, zone: ZoneInfo) -> date:
    local_day = to_local(moment, zone).date()
    return local_day - timedelta(days=local_day.weekday())


def same_iso_week(a: datetime, b: datetime, zone: ZoneInfo) -> bool:
    return iso_week_start(a, zone) == iso_week_start(b, zone)


def weekday_code(day: date) -> str:
    return WEEKDAY_CODES[day.weekday()]


def global_day_scope(local_hour: int, cutoff_hour: int) -> DayScope:
    return DayScope.TODAY if local_hour >= cutoff_hour else DayScope.YESTERDAY


def item_day_scope(time_of_day: Optional[str], local_hour: int, cutoff_hour: int) -> DayScope:
    """Before the cutoff we always ask about yesterday.

    After it, evening/night items still refer to last night, the rest to today.
    """
    if local_hour < cutoff_hour:
        return DayScope.YESTERDAY
    tod = (time_of_day or "").strip().lower()
    if any(k in tod for k in EVENING_KEYWORDS):
        return DayScope.YESTERDAY
    return DayScope.TODAY


def scoped_day(now: datetime, zone: ZoneInfo, scope: DayScope) -> date:
    """The local calendar day a day scope refers to."""
    today = to_local(now, zone).date()
    return today if scope == DayScope.TODAY else today - timedelta(days=1)
