# agenda/slots.py

import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, NamedTuple, Optional
from zoneinfo import ZoneInfo

from .core import CANCELLED_STATUSES, as_aware, at_minutes, local_date, overlaps, to_clock, to_minutes, weekday_of
from .errors import InvalidRequestError
from .resolver import resolve_working_window, step_minutes_for, timezone_for
from .schemas import BreakPeriod, EmployeeProfile, OrganizationProfile, Slot
from .settings import DEFAULT_SETTINGS, EngineSettings

logger = logging.getLogger(__name__)


class Segment(NamedTuple):
    start: int
    end: int


def build_segments(start: int, end: int, breaks: Iterable[BreakPeriod]) -> List[Segment]:
    """
    Partition the open window [start, end) into break-free segments.

    Slots restart at each segment's own start, so an unevenly placed break
    does not push the rest of the day off the step grid.
    """
    segments = []
    cursor = start
    for break_start, break_end in sorted((to_minutes(b.start), to_minutes(b.end)) for b in breaks):
        if cursor >= end:
            break
        if cursor < break_start:
            segments.append(Segment(cursor, min(break_start, end)))
        cursor = max(cursor, break_end)

    if cursor < end:
        segments.append(Segment(cursor, end))
    return segments


def is_active(appointment) -> bool:
    return appointment.status not in CANCELLED_STATUSES


def count_overlapping(appointments, start: datetime, end: datetime, employee_id: Optional[int] = None) -> int:
    count = 0
    for appt in appointments:
        if not is_active(appt):
            continue
        if employee_id is not None and appt.employee_id != employee_id:
            continue
        if overlaps(start, end, as_aware(appt.starts_at), as_aware(appt.ends_at)):
            count += 1
    return count


def is_today(day: date, tz: ZoneInfo, now: Optional[datetime] = None) -> bool:
    current = as_aware(now) if now is not None else datetime.now(timezone.utc)
    return local_date(current, tz) == day


def drop_past_slots(slots: List[Slot], day: date, tz: ZoneInfo, now: Optional[datetime] = None) -> List[Slot]:
    if not is_today(day, tz, now):
        return slots
    current = as_aware(now) if now is not None else datetime.now(timezone.utc)
    # unavailable slots stay so booked times do not vanish from the grid
    return [slot for slot in slots if not slot.available or slot.datetime > current]


def generate_slots(
    day: date,
    org: OrganizationProfile,
    employee: Optional[EmployeeProfile] = None,
    duration_minutes: int = 30,
    appointments: Iterable = (),
    max_concurrent: int = 1,
    *,
    settings: EngineSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> List[Slot]:
    if duration_minutes <= 0:
        raise InvalidRequestError("duration_minutes must be positive")
    if max_concurrent < 1:
        raise InvalidRequestError("max_concurrent must be at least 1")

    tz = timezone_for(org, settings)
    schedule = resolve_working_window(org, employee, weekday_of(day))
    if not schedule.is_open:
        return []

    step = step_minutes_for(org, settings)
    employee_id = employee.id if employee is not None else None
    appointments = list(appointments)

    slots = []
    for segment in build_segments(schedule.start_minutes, schedule.end_minutes, schedule.breaks):
        for minute in range(segment.start, segment.end, step):
            end_minute = minute + duration_minutes
            if end_minute > segment.end:
                break

            start_at = at_minutes(day, minute, tz)
            end_at = at_minutes(day, end_minute, tz)
            taken = count_overlapping(appointments, start_at, end_at, employee_id)
            slots.append(Slot(time=to_clock(minute), datetime=start_at, available=taken < max_concurrent))

    logger.debug(f"Generated {len(slots)} slots for {day} (employee={employee_id}, step={step})")
    return drop_past_slots(slots, day, tz, now)
