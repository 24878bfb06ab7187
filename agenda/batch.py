# agenda/batch.py
"""
Availability across many dates with a fixed number of store reads.

Organization, employees and the appointments of the whole date range are
fetched once; each date is then computed from its in-memory slice only.
"""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence

from .blocks import find_blocks
from .core import day_bounds, local_date, weekday_of
from .errors import InvalidRequestError, NotFoundError
from .resolver import is_employee_available_on_day, timezone_for
from .schemas import OrganizationProfile, ServiceRequest, SlotBatchResult, SlotRequest
from .settings import DEFAULT_SETTINGS, EngineSettings
from .slots import generate_slots
from .store import AppointmentStore

logger = logging.getLogger(__name__)


class BatchAvailabilityChecker:
    def __init__(
        self,
        store: AppointmentStore,
        settings: EngineSettings = DEFAULT_SETTINGS,
        now: Optional[datetime] = None,
    ):
        self.store = store
        self.settings = settings
        self.now = now

    def check_slots(self, organization_id: int, requests: Sequence[SlotRequest]) -> List[SlotBatchResult]:
        """Available start times per (date, service, employee?) request."""
        if not requests:
            raise InvalidRequestError("At least one request is required")
        org, employees, by_day = self._prefetch(organization_id, [r.date for r in requests])

        def run(request: SlotRequest) -> SlotBatchResult:
            weekday = weekday_of(request.date)
            candidates = [
                emp
                for emp in employees
                if (request.employee_id is None or emp.id == request.employee_id)
                and (request.service_id is None or request.service_id in emp.service_ids)
                and is_employee_available_on_day(emp, weekday, org)
            ]
            times = set()
            for emp in candidates:
                slots = generate_slots(
                    request.date,
                    org,
                    emp,
                    request.duration_minutes,
                    by_day.get(request.date, []),
                    request.max_concurrent,
                    settings=self.settings,
                    now=self.now,
                )
                times.update(slot.time for slot in slots if slot.available)
            return SlotBatchResult(
                date=request.date,
                service_id=request.service_id,
                employee_id=request.employee_id,
                slots=sorted(times),
            )

        return self._map(run, requests)

    def check_days(
        self, organization_id: int, dates: Sequence[date], services: Sequence[ServiceRequest]
    ) -> Dict[date, bool]:
        """Whether each date has at least one bookable block for `services`."""
        if not dates:
            raise InvalidRequestError("At least one date is required")
        if not services:
            raise InvalidRequestError("At least one service is required")
        org, employees, by_day = self._prefetch(organization_id, dates)

        def run(day: date) -> bool:
            blocks = find_blocks(
                day, org, services, employees, by_day.get(day, []), settings=self.settings, now=self.now
            )
            return bool(blocks)

        days = list(dict.fromkeys(dates))
        return dict(zip(days, self._map(run, days)))

    def _prefetch(self, organization_id: int, dates: Sequence[date]):
        first, last = min(dates), max(dates)
        span = (last - first).days + 1
        if span > self.settings.max_batch_days:
            raise InvalidRequestError(
                f"Date range of {span} days exceeds the limit of {self.settings.max_batch_days}"
            )

        org = self.store.get_organization(organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        employees = self.store.list_organization_employees(organization_id)

        tz = timezone_for(org, self.settings)
        start, _ = day_bounds(first, tz)
        _, end = day_bounds(last, tz)
        appointments = self.store.list_appointments(org.id, [emp.id for emp in employees], start, end)
        logger.info(
            f"Batch prefetch for organization {org.id}: {len(employees)} employees, "
            f"{len(appointments)} appointments over {span} days"
        )
        return org, employees, self._group_by_day(appointments, org)

    def _group_by_day(self, appointments, org: OrganizationProfile) -> Dict[date, list]:
        tz = timezone_for(org, self.settings)
        by_day = defaultdict(list)
        for appt in appointments:
            first_day = local_date(appt.starts_at, tz)
            last_day = local_date(appt.ends_at, tz)
            by_day[first_day].append(appt)
            # appointments crossing midnight count on both days
            if last_day != first_day:
                by_day[last_day].append(appt)
        return by_day

    def _map(self, func: Callable, items: Sequence) -> list:
        if self.settings.batch_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.batch_workers) as executor:
                return list(executor.map(func, items))
        return [func(item) for item in items]
