# agenda/core.py

import re
from datetime import datetime, date, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ScheduleConfigError

CLOCK_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

# Statuses ignored by every conflict check and load count
CANCELLED_STATUSES = frozenset(
    {"canceled", "cancelled", "cancelled_by_customer", "cancelled_by_admin"}
)


def to_minutes(clock: str) -> int:
    """"HH:mm" -> minutes since midnight."""
    if not isinstance(clock, str) or not CLOCK_RE.match(clock):
        raise ValueError(f"Invalid clock time {clock!r}, expected HH:mm")
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


def to_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    # open intervals: touching ends do not overlap
    return a_start < b_end and b_start < a_end


def in_range(value, start, end) -> bool:
    return start <= value < end


def in_range_inclusive(value, start, end) -> bool:
    return start <= value <= end


def weekday_of(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ScheduleConfigError(f"Unknown timezone {name!r}")


def as_aware(value: datetime) -> datetime:
    """Stored instants are UTC; some backends hand them back without tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def in_zone(value: datetime, tz: ZoneInfo) -> datetime:
    """Caller-supplied instant in `tz`; a naive value is local wall-clock time."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    return as_aware(instant).astimezone(tz).date()


def at_minutes(day: date, minutes: int, tz: ZoneInfo) -> datetime:
    hours, mins = divmod(minutes, 60)
    return datetime.combine(day, time(hours, mins), tzinfo=tz)


def minutes_of(instant: datetime, tz: ZoneInfo) -> int:
    local = as_aware(instant).astimezone(tz)
    return local.hour * 60 + local.minute


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Local midnight of `day` and of the following day, in UTC."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(date.fromordinal(day.toordinal() + 1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
