# services/timeutil.py
import calendar
import os
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

# calendar days (timeline buckets, applied_date filter) start at local midnight in this zone
TIMELINE_TZ = os.getenv("TIMELINE_TZ", "UTC")


def local_zone():
    if TIMELINE_TZ.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(TIMELINE_TZ)


def local_today(now: Optional[datetime] = None) -> date:
    return (now or utcnow()).astimezone(local_zone()).date()


def local_date(value: datetime) -> date:
    return as_utc(value).astimezone(local_zone()).date()


def day_bounds_utc(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a local calendar day, expressed in UTC."""
    tz = local_zone()
    start = datetime.combine(day, time.min).replace(tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min).replace(tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def one_calendar_month_before(value: datetime) -> datetime:
    """Same wall-clock time one month earlier, clamped to the end of shorter months (Mar 31 -> Feb 28/29)."""
    year, month = (value.year, value.month - 1) if value.month > 1 else (value.year - 1, 12)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
