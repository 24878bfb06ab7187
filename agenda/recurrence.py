# agenda/recurrence.py

import logging
from datetime import datetime, time, timedelta
from typing import Iterable, List
from zoneinfo import ZoneInfo

from .core import in_zone, minutes_of, weekday_of
from .resolver import resolve_working_window, timezone_for, window_has_break
from .schemas import (
    EmployeeProfile,
    EndType,
    Occurrence,
    OccurrenceStatus,
    OccurrenceValidation,
    OrganizationProfile,
    RecurrencePattern,
)
from .settings import DEFAULT_SETTINGS, EngineSettings
from .slots import count_overlapping

logger = logging.getLogger(__name__)


def expand(
    base_start: datetime,
    pattern: RecurrencePattern,
    tz: ZoneInfo,
    *,
    max_week_steps: int = DEFAULT_SETTINGS.max_week_steps,
) -> List[Occurrence]:
    """
    Expand a weekly pattern into concrete start instants.

    Weeks run Sunday to Saturday in `tz`, starting with the week that holds
    `base_start`. Every occurrence keeps the wall-clock time of `base_start`.
    A naive `base_start` is read as wall-clock time in `tz`.
    Days before `base_start`'s own day are skipped; an end date is inclusive.
    """
    base = in_zone(base_start, tz)
    base_day = base.date()
    wall_time = time(base.hour, base.minute, base.second)
    week_start = base_day - timedelta(days=weekday_of(base_day))

    occurrences = []
    for _ in range(max_week_steps):
        for weekday in pattern.weekdays:
            day = week_start + timedelta(days=weekday)
            if day < base_day:
                continue
            if pattern.end_type == EndType.date and day > pattern.end_date:
                return occurrences
            if pattern.end_type == EndType.count and len(occurrences) >= pattern.count:
                return occurrences
            occurrences.append(Occurrence(date=datetime.combine(day, wall_time, tzinfo=tz), weekday=weekday))
        week_start += timedelta(weeks=pattern.interval_weeks)

    logger.warning(f"Recurrence expansion stopped after {max_week_steps} week steps")
    return occurrences


def validate_occurrence(
    start: datetime,
    duration_minutes: int,
    employee: EmployeeProfile,
    org: OrganizationProfile,
    appointments: Iterable,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> OccurrenceValidation:
    tz = timezone_for(org, settings)
    local = in_zone(start, tz)
    weekday = weekday_of(local.date())

    def result(status, reason=None):
        return OccurrenceValidation(date=local, weekday=weekday, status=status, reason=reason)

    schedule = resolve_working_window(org, employee, weekday)
    if not schedule.is_open:
        return result(OccurrenceStatus.no_work, f"No working hours on {local:%A}")

    start_minute = minutes_of(local, tz)
    end_minute = start_minute + duration_minutes
    if start_minute < schedule.start_minutes or end_minute > schedule.end_minutes:
        return result(
            OccurrenceStatus.no_work,
            f"Outside working hours ({schedule.start} - {schedule.end})",
        )
    if window_has_break(start_minute, end_minute, schedule.breaks):
        return result(OccurrenceStatus.no_work, "Overlaps a break")

    taken = count_overlapping(appointments, local, local + timedelta(minutes=duration_minutes), employee.id)
    if taken:
        return result(OccurrenceStatus.conflict, f"Conflicts with {taken} existing appointment(s)")
    return result(OccurrenceStatus.available)
