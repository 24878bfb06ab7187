# agenda/resolver.py
"""
Resolve the effective open hours of an organization or employee on a weekday.

Priority for an organization (first match wins):
  1. enabled weekly schedule: the day's entry, open or closed, no fall-through
  2. legacy single-range hours when the weekday is a business day
  3. closed

An employee without an enabled weekly schedule defers to the organization.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from .core import in_range, in_zone, minutes_of, overlaps, to_minutes, weekday_of, zone
from .errors import ScheduleConfigError
from .schemas import (
    CLOSED,
    DEFER_TO_ORG,
    BreakPeriod,
    DateTimeCheck,
    EffectiveSchedule,
    EmployeeProfile,
    OrganizationProfile,
)
from .settings import DEFAULT_SETTINGS, EngineSettings

logger = logging.getLogger(__name__)

ALL_DAYS = list(range(7))


def load_organization(**fields) -> OrganizationProfile:
    """Build an organization profile from stored fields, rejecting bad schedules."""
    try:
        return OrganizationProfile.model_validate(fields)
    except ValidationError as exc:
        logger.warning(f"Rejected schedule config for organization {fields.get('id')}")
        raise ScheduleConfigError(f"Invalid schedule for organization {fields.get('id')}: {exc}") from exc


def load_employee(**fields) -> EmployeeProfile:
    try:
        return EmployeeProfile.model_validate(fields)
    except ValidationError as exc:
        raise ScheduleConfigError(f"Invalid schedule for employee {fields.get('id')}: {exc}") from exc


def timezone_for(org: OrganizationProfile, settings: EngineSettings = DEFAULT_SETTINGS) -> ZoneInfo:
    return zone(org.timezone or settings.default_timezone)


def step_minutes_for(org: OrganizationProfile, settings: EngineSettings = DEFAULT_SETTINGS) -> int:
    if org.weekly_schedule and org.weekly_schedule.step_minutes:
        return org.weekly_schedule.step_minutes
    if org.legacy_hours and org.legacy_hours.step_minutes:
        return org.legacy_hours.step_minutes
    return settings.default_step_minutes


def breaks_for_day(breaks: Iterable[BreakPeriod], weekday: int) -> tuple:
    return tuple(b for b in breaks if b.applies_to(weekday))


def merge_breaks(*groups: Iterable[BreakPeriod]) -> tuple:
    """Union of break lists, deduplicated on (start, end) and sorted by start."""
    seen = {}
    for group in groups:
        for b in group:
            seen.setdefault((b.start, b.end), b)
    return tuple(sorted(seen.values(), key=lambda b: to_minutes(b.start)))


def resolve_organization(org: OrganizationProfile, weekday: int) -> EffectiveSchedule:
    weekly = org.weekly_schedule
    if weekly is not None and weekly.enabled:
        day = weekly.day(weekday)
        if day is None or not day.is_open:
            return CLOSED
        return EffectiveSchedule(
            is_open=True, start=day.start, end=day.end, breaks=breaks_for_day(day.breaks, weekday)
        )

    legacy = org.legacy_hours
    if legacy is not None and legacy.start and legacy.end:
        business_days = ALL_DAYS if legacy.business_days is None else legacy.business_days
        if weekday in business_days:
            return EffectiveSchedule(
                is_open=True,
                start=legacy.start,
                end=legacy.end,
                breaks=breaks_for_day(legacy.breaks, weekday),
            )

    return CLOSED


def resolve_employee(employee: EmployeeProfile, weekday: int) -> EffectiveSchedule:
    weekly = employee.weekly_schedule
    if weekly is None or not weekly.enabled:
        return DEFER_TO_ORG

    day = weekly.day(weekday)
    if day is None or not day.is_open:
        return CLOSED
    return EffectiveSchedule(
        is_open=True, start=day.start, end=day.end, breaks=breaks_for_day(day.breaks, weekday)
    )


def intersect(org_schedule: EffectiveSchedule, emp_schedule: EffectiveSchedule) -> EffectiveSchedule:
    """Working window shared by the organization and one employee."""
    if not org_schedule.is_open or not emp_schedule.is_open:
        return CLOSED
    if emp_schedule.use_org_schedule:
        return org_schedule

    start = max(org_schedule.start_minutes, emp_schedule.start_minutes)
    end = min(org_schedule.end_minutes, emp_schedule.end_minutes)
    if start >= end:
        return CLOSED

    return EffectiveSchedule(
        is_open=True,
        start=org_schedule.start if start == org_schedule.start_minutes else emp_schedule.start,
        end=org_schedule.end if end == org_schedule.end_minutes else emp_schedule.end,
        breaks=merge_breaks(org_schedule.breaks, emp_schedule.breaks),
    )


def resolve_working_window(
    org: OrganizationProfile,
    employee: Optional[EmployeeProfile],
    weekday: int,
) -> EffectiveSchedule:
    org_schedule = resolve_organization(org, weekday)
    if not org_schedule.is_open or employee is None:
        return org_schedule
    return intersect(org_schedule, resolve_employee(employee, weekday))


def open_days(org: OrganizationProfile) -> List[int]:
    return [day for day in ALL_DAYS if resolve_organization(org, day).is_open]


def employee_available_days(employee: EmployeeProfile, org: OrganizationProfile) -> List[int]:
    return [day for day in ALL_DAYS if is_employee_available_on_day(employee, day, org)]


def is_employee_available_on_day(employee: EmployeeProfile, weekday: int, org: OrganizationProfile) -> bool:
    return resolve_working_window(org, employee, weekday).is_open


def check_datetime(
    instant: datetime,
    org: OrganizationProfile,
    employee: Optional[EmployeeProfile] = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> DateTimeCheck:
    """Whether a single start instant falls inside open, break-free hours."""
    tz = timezone_for(org, settings)
    local = in_zone(instant, tz)
    weekday = weekday_of(local.date())
    minute = minutes_of(local, tz)

    org_schedule = resolve_organization(org, weekday)
    if not org_schedule.is_open:
        return DateTimeCheck(valid=False, reason="The organization is closed on this day")
    if not in_range(minute, org_schedule.start_minutes, org_schedule.end_minutes):
        return DateTimeCheck(
            valid=False,
            reason=f"The organization is open from {org_schedule.start} to {org_schedule.end}",
        )
    if _in_break(minute, org_schedule.breaks):
        return DateTimeCheck(valid=False, reason="This time falls in an organization break")

    if employee is not None:
        emp_schedule = resolve_employee(employee, weekday)
        if not emp_schedule.is_open:
            return DateTimeCheck(valid=False, reason="The employee does not work on this day")
        if emp_schedule.has_range:
            if not in_range(minute, emp_schedule.start_minutes, emp_schedule.end_minutes):
                return DateTimeCheck(
                    valid=False,
                    reason=f"The employee works from {emp_schedule.start} to {emp_schedule.end}",
                )
            if _in_break(minute, emp_schedule.breaks):
                return DateTimeCheck(valid=False, reason="This time falls in an employee break")

    return DateTimeCheck(valid=True)


def _in_break(minute: int, breaks: Iterable[BreakPeriod]) -> bool:
    return any(in_range(minute, to_minutes(b.start), to_minutes(b.end)) for b in breaks)


def window_has_break(start: int, end: int, breaks: Iterable[BreakPeriod]) -> bool:
    return any(overlaps(start, end, to_minutes(b.start), to_minutes(b.end)) for b in breaks)
