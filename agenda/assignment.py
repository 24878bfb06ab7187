# agenda/assignment.py
"""
Automatic employee assignment for a single service interval.

The default strategy is greedy: among employees who are open and free for the
interval, pick the one with the fewest bookings that day (ties keep input
order). Chained services are assigned one step at a time, so the result is
not a global optimum across a whole block.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional, Protocol, Sequence, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from .core import at_minutes, in_range, in_range_inclusive, local_date, to_minutes, weekday_of
from .resolver import (
    intersect,
    resolve_employee,
    resolve_organization,
    timezone_for,
    window_has_break,
)
from .schemas import EmployeeProfile, OrganizationProfile
from .settings import DEFAULT_SETTINGS, EngineSettings
from .slots import count_overlapping, is_active

logger = logging.getLogger(__name__)


class AssignmentContext(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    organization: OrganizationProfile
    day: date
    tz: ZoneInfo
    start_minute: int
    duration_minutes: int
    appointments: Tuple[Any, ...] = ()
    # org breaks already carved out by block segmentation
    skip_org_breaks: bool = False

    @property
    def weekday(self) -> int:
        return weekday_of(self.day)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def start_at(self) -> datetime:
        return at_minutes(self.day, self.start_minute, self.tz)

    @property
    def end_at(self) -> datetime:
        return at_minutes(self.day, self.end_minute, self.tz)


class AssignmentStrategy(Protocol):
    def pick_best(
        self, candidates: Sequence[EmployeeProfile], context: AssignmentContext
    ) -> Optional[EmployeeProfile]:
        ...


def fits_schedule(employee: EmployeeProfile, context: AssignmentContext) -> bool:
    """Open for the whole interval and not inside one of the relevant breaks."""
    org_schedule = resolve_organization(context.organization, context.weekday)
    emp_schedule = resolve_employee(employee, context.weekday)
    window = intersect(org_schedule, emp_schedule)
    if not window.is_open:
        return False

    start, end = context.start_minute, context.end_minute
    # the interval may end exactly at closing time
    if not in_range(start, window.start_minutes, window.end_minutes):
        return False
    if not in_range_inclusive(end, window.start_minutes, window.end_minutes):
        return False

    if context.skip_org_breaks:
        breaks = emp_schedule.breaks if emp_schedule.has_range else ()
    else:
        breaks = window.breaks
    return not window_has_break(start, end, breaks)


def is_free(employee: EmployeeProfile, context: AssignmentContext) -> bool:
    taken = count_overlapping(context.appointments, context.start_at, context.end_at, employee.id)
    return taken == 0


def daily_load(employee: EmployeeProfile, context: AssignmentContext) -> int:
    return sum(
        1
        for appt in context.appointments
        if is_active(appt)
        and appt.employee_id == employee.id
        and local_date(appt.starts_at, context.tz) == context.day
    )


class LeastLoadedStrategy:
    def pick_best(
        self, candidates: Sequence[EmployeeProfile], context: AssignmentContext
    ) -> Optional[EmployeeProfile]:
        open_candidates = [emp for emp in candidates if fits_schedule(emp, context)]
        free = [emp for emp in open_candidates if is_free(emp, context)]
        if not free:
            return None
        # min() keeps the first of equally loaded employees
        return min(free, key=lambda emp: daily_load(emp, context))


DEFAULT_STRATEGY = LeastLoadedStrategy()


def assign_best(
    candidates: Sequence[EmployeeProfile],
    day: date,
    start_time: str,
    duration: int,
    appointments,
    organization: OrganizationProfile,
    *,
    skip_org_breaks: bool = False,
    strategy: Optional[AssignmentStrategy] = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Optional[EmployeeProfile]:
    context = AssignmentContext(
        organization=organization,
        day=day,
        tz=timezone_for(organization, settings),
        start_minute=to_minutes(start_time),
        duration_minutes=duration,
        appointments=tuple(appointments),
        skip_org_breaks=skip_org_breaks,
    )
    chosen = (strategy or DEFAULT_STRATEGY).pick_best(candidates, context)
    logger.debug(
        f"Assignment for {day} {start_time} (+{duration}m): "
        f"{chosen.id if chosen else 'none'} of {len(candidates)} candidates"
    )
    return chosen
