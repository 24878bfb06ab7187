# agenda/blocks.py

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .assignment import DEFAULT_STRATEGY, AssignmentContext, AssignmentStrategy
from .core import as_aware, at_minutes, in_range, in_range_inclusive, to_clock, weekday_of
from .errors import InvalidRequestError
from .resolver import (
    intersect,
    merge_breaks,
    resolve_employee,
    resolve_organization,
    step_minutes_for,
    timezone_for,
    window_has_break,
)
from .schemas import (
    BlockInterval,
    BreakPeriod,
    EffectiveSchedule,
    EmployeeProfile,
    MultiServiceBlock,
    OrganizationProfile,
    ServiceRequest,
)
from .settings import DEFAULT_SETTINGS, EngineSettings
from .slots import build_segments, count_overlapping, is_today

logger = logging.getLogger(__name__)


class PinnedEmployee(NamedTuple):
    employee: EmployeeProfile
    window: EffectiveSchedule
    # employee's own breaks; org breaks are removed by segmentation
    breaks: Tuple[BreakPeriod, ...]


def eligible_for(service_id: int, employees: Iterable[EmployeeProfile]) -> List[EmployeeProfile]:
    return [emp for emp in employees if emp.is_active and service_id in emp.service_ids]


def find_blocks(
    day: date,
    org: OrganizationProfile,
    services: Sequence[ServiceRequest],
    candidate_employees: Sequence[EmployeeProfile],
    appointments: Iterable = (),
    *,
    strategy: Optional[AssignmentStrategy] = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
    now: Optional[datetime] = None,
) -> List[MultiServiceBlock]:
    """
    Find start times where every service can run back-to-back on `day`.

    Pinned services narrow the day's window to their employee's hours; the
    rest are assigned per step by `strategy`. A block is returned only when
    every step succeeds, with the resolved employee recorded per interval.
    """
    if not services:
        raise InvalidRequestError("At least one service is required")

    tz = timezone_for(org, settings)
    weekday = weekday_of(day)
    org_schedule = resolve_organization(org, weekday)
    if not org_schedule.is_open:
        return []

    by_id = {emp.id: emp for emp in candidate_employees}
    start, end = org_schedule.start_minutes, org_schedule.end_minutes
    break_groups = [org_schedule.breaks]

    pinned: Dict[int, PinnedEmployee] = {}
    for service in services:
        emp_id = service.pinned_employee_id
        if emp_id is None or emp_id in pinned:
            continue
        employee = by_id.get(emp_id)
        if employee is None:
            logger.info(f"Pinned employee {emp_id} is not among the candidates for {day}")
            return []

        emp_schedule = resolve_employee(employee, weekday)
        window = intersect(org_schedule, emp_schedule)
        if not window.is_open:
            return []

        own_breaks = emp_schedule.breaks if emp_schedule.has_range else ()
        pinned[emp_id] = PinnedEmployee(employee, window, own_breaks)
        start = max(start, window.start_minutes)
        end = min(end, window.end_minutes)
        break_groups.append(own_breaks)

    if start >= end:
        return []

    step = step_minutes_for(org, settings)
    total = sum(service.duration_minutes for service in services)
    appointments = tuple(appointments)
    strategy = strategy or DEFAULT_STRATEGY

    segments = build_segments(start, end, merge_breaks(*break_groups))
    logger.debug(
        f"Block search {day}: window {to_clock(start)}-{to_clock(end)}, "
        f"{len(segments)} segments, step={step}, total={total}m"
    )

    blocks = []
    for segment in segments:
        minute = segment.start
        while minute + total <= segment.end:
            intervals = _chain_services(
                day, minute, services, candidate_employees, pinned, appointments, org, tz, strategy
            )
            if intervals is not None:
                blocks.append(
                    MultiServiceBlock(start=intervals[0].start, end=intervals[-1].end, intervals=intervals)
                )
            minute += step

    if is_today(day, tz, now):
        current = as_aware(now) if now is not None else datetime.now(tz)
        blocks = [block for block in blocks if block.start > current]
    return blocks


def _chain_services(day, minute, services, candidates, pinned, appointments, org, tz, strategy):
    intervals = []
    cursor = minute
    for service in services:
        end_minute = cursor + service.duration_minutes
        start_at = at_minutes(day, cursor, tz)
        end_at = at_minutes(day, end_minute, tz)

        if service.pinned_employee_id is not None:
            entry = pinned[service.pinned_employee_id]
            if not _pinned_fits(entry, cursor, end_minute):
                return None
            taken = count_overlapping(appointments, start_at, end_at, entry.employee.id)
            if taken >= service.max_concurrent:
                return None
            employee_id = entry.employee.id
        else:
            context = AssignmentContext(
                organization=org,
                day=day,
                tz=tz,
                start_minute=cursor,
                duration_minutes=service.duration_minutes,
                appointments=appointments,
                skip_org_breaks=True,
            )
            chosen = strategy.pick_best(eligible_for(service.service_id, candidates), context)
            if chosen is None:
                return None
            employee_id = chosen.id

        intervals.append(
            BlockInterval(service_id=service.service_id, employee_id=employee_id, start=start_at, end=end_at)
        )
        cursor = end_minute
    return intervals


def _pinned_fits(entry: PinnedEmployee, start: int, end: int) -> bool:
    window = entry.window
    if not in_range(start, window.start_minutes, window.end_minutes):
        return False
    if not in_range_inclusive(end, window.start_minutes, window.end_minutes):
        return False
    return not window_has_break(start, end, entry.breaks)
