# agenda/series.py
"""
Preview and creation of recurring appointment series.

A series is created in one unit of work: one appointment per (occurrence x
service), services chained back-to-back inside each occurrence, all rows
sharing a series id, a cancellation group and one cancel token hash.
"""

import hashlib
import logging
import secrets
import time
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import OperationalError

from .core import in_zone, weekday_of, zone
from .errors import NoOccurrencesError, NotFoundError, SeriesWriteError
from .models import Appointment, Service
from .recurrence import expand, validate_occurrence
from .resolver import timezone_for
from .schemas import (
    CreatedAppointment,
    EmployeeProfile,
    OccurrenceStatus,
    OccurrenceValidation,
    OrganizationProfile,
    SeriesPolicy,
    SeriesPreview,
    SeriesRequest,
    SeriesResult,
    SeriesSummary,
)
from .settings import DEFAULT_SETTINGS, EngineSettings
from .store import AppointmentStore, to_storage

logger = logging.getLogger(__name__)


def generate_cancel_token() -> Tuple[str, str]:
    """Random token for the client and its SHA-256 hash for storage."""
    token = secrets.token_hex(32)
    return token, hashlib.sha256(token.encode()).hexdigest()


def summarize(validations: List[OccurrenceValidation]) -> SeriesSummary:
    counts = {status.value: 0 for status in OccurrenceStatus}
    for validation in validations:
        counts[validation.status.value] += 1
    return SeriesSummary(total=len(validations), will_be_created=counts["available"], **counts)


def should_create(validation: OccurrenceValidation, policy: SeriesPolicy) -> bool:
    status = validation.status
    if status == OccurrenceStatus.error:
        return False
    if status == OccurrenceStatus.no_work and policy.omit_if_no_work:
        return False
    if status == OccurrenceStatus.conflict and (policy.omit_if_conflict or not policy.allow_overbooking):
        return False
    return True


class SeriesService:
    def __init__(self, store: AppointmentStore, settings: EngineSettings = DEFAULT_SETTINGS, sleep=time.sleep):
        self.store = store
        self.settings = settings
        self._sleep = sleep

    def validate(
        self, start: datetime, duration_minutes: int, employee_id: int, organization_id: int
    ) -> OccurrenceValidation:
        """Classify one occurrence, reading schedules and bookings from the store."""
        org = self.store.get_organization(organization_id)
        employee = self.store.get_employee(employee_id)
        if org is None or employee is None:
            # no organization to take a timezone from
            start = in_zone(start, zone(self.settings.default_timezone))
            return OccurrenceValidation(
                date=start,
                weekday=weekday_of(start.date()),
                status=OccurrenceStatus.error,
                reason="Employee or organization not found",
            )

        start = in_zone(start, timezone_for(org, self.settings))
        appointments = self.store.list_appointments(
            org.id, [employee.id], start, start + timedelta(minutes=duration_minutes)
        )
        return validate_occurrence(start, duration_minutes, employee, org, appointments, self.settings)

    def preview(self, request: SeriesRequest) -> SeriesPreview:
        org, employee, services = self._load(request)
        return self._preview(request, org, employee, services)

    def create(self, request: SeriesRequest, policy: Optional[SeriesPolicy] = None) -> SeriesResult:
        policy = policy or SeriesPolicy()
        org, employee, services = self._load(request)
        preview = self._preview(request, org, employee, services)

        to_create = [v for v in preview.occurrences if should_create(v, policy)]
        skipped = [v for v in preview.occurrences if not should_create(v, policy)]
        if not to_create:
            raise NoOccurrencesError("No valid occurrences to create; every occurrence was skipped")

        series_id = uuid.uuid4().hex
        group_id = uuid.uuid4().hex
        token, token_hash = generate_cancel_token()
        logger.info(
            f"Creating series {series_id}: {len(to_create)} of {len(preview.occurrences)} "
            f"occurrences x {len(services)} services"
        )

        created = self._write_with_retry(
            request, employee, services, to_create, series_id, group_id, token_hash
        )
        summary = preview.summary.model_copy(update={"created": len(created), "skipped": len(skipped)})
        return SeriesResult(
            series_id=series_id,
            group_id=group_id,
            cancel_token=token,
            created=created,
            skipped=skipped,
            summary=summary,
        )

    def _load(self, request: SeriesRequest) -> Tuple[OrganizationProfile, EmployeeProfile, List[Service]]:
        org = self.store.get_organization(request.organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        employee = self.store.get_employee(request.employee_id)
        if employee is None:
            raise NotFoundError("Employee not found")

        by_id = self.store.get_services(request.service_ids)
        missing = [service_id for service_id in request.service_ids if service_id not in by_id]
        if missing:
            raise NotFoundError(f"Services not found: {missing}")
        return org, employee, [by_id[service_id] for service_id in request.service_ids]

    def _preview(self, request, org, employee, services) -> SeriesPreview:
        tz = timezone_for(org, self.settings)
        duration = sum(service.duration for service in services)
        occurrences = expand(
            request.starts_at, request.pattern, tz, max_week_steps=self.settings.max_week_steps
        )

        validations = []
        if occurrences:
            # one read for the whole series window
            appointments = self.store.list_appointments(
                org.id,
                [employee.id],
                occurrences[0].date,
                occurrences[-1].date + timedelta(minutes=duration),
            )
            validations = [
                validate_occurrence(occ.date, duration, employee, org, appointments, self.settings)
                for occ in occurrences
            ]

        logger.info(f"Previewed {len(validations)} occurrences for employee {employee.id}")
        return SeriesPreview(occurrences=validations, summary=summarize(validations))

    def _write_with_retry(self, request, employee, services, to_create, series_id, group_id, token_hash):
        attempts = self.settings.series_write_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self._write(request, employee, services, to_create, series_id, group_id, token_hash)
            except OperationalError as exc:
                if attempt == attempts:
                    raise SeriesWriteError(
                        f"Series {series_id} was not created: {exc}", attempted=to_create
                    ) from exc
                delay = self.settings.series_retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Transient storage error writing series {series_id}. "
                    f"Retrying in {delay}s (attempt {attempt}/{attempts})"
                )
                self._sleep(delay)
            except Exception as exc:
                logger.error(f"Series {series_id} rolled back: {exc}")
                raise SeriesWriteError(
                    f"Series {series_id} was not created: {exc}", attempted=to_create
                ) from exc

    def _write(self, request, employee, services, to_create, series_id, group_id, token_hash):
        created = []
        pattern = request.pattern.model_dump(mode="json")
        with self.store.unit_of_work() as uow:
            for number, occurrence in enumerate(to_create, start=1):
                cursor = occurrence.date
                for service in services:
                    ends_at = cursor + timedelta(minutes=service.duration)
                    row = uow.add(
                        Appointment(
                            organization_id=request.organization_id,
                            employee_id=employee.id,
                            service_id=service.id,
                            client_email=request.client_email,
                            starts_at=to_storage(cursor),
                            ends_at=to_storage(ends_at),
                            status="booked",
                            series_id=series_id,
                            occurrence_number=number,
                            group_id=group_id,
                            cancel_token_hash=token_hash,
                            recurrence_pattern=pattern if number == 1 else None,
                        )
                    )
                    created.append(
                        CreatedAppointment(
                            id=row.id,
                            service_id=service.id,
                            starts_at=cursor,
                            ends_at=ends_at,
                            occurrence_number=number,
                        )
                    )
                    # next service starts where this one ends
                    cursor = ends_at
        return created
