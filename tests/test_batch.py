"""Tests for batch availability over many dates."""

from datetime import date, timedelta

import pytest

from agenda.batch import BatchAvailabilityChecker
from agenda.errors import InvalidRequestError, NotFoundError
from agenda.schemas import ServiceRequest, SlotRequest
from agenda.settings import EngineSettings
from agenda.store import AppointmentStore

from conftest import FIXED_NOW, MONDAY, SUNDAY, add_booking, utc


class CountingStore(AppointmentStore):
    def __init__(self, session):
        super().__init__(session)
        self.appointment_reads = 0

    def list_appointments(self, *args, **kwargs):
        self.appointment_reads += 1
        return super().list_appointments(*args, **kwargs)


@pytest.fixture
def store(seeded):
    return CountingStore(seeded)


@pytest.fixture
def checker(store, settings):
    return BatchAvailabilityChecker(store, settings, now=FIXED_NOW)


CUT = ServiceRequest(service_id=1, duration_minutes=30)


class TestCheckSlots:

    def test_union_across_employees(self, seeded, checker):
        add_booking(seeded, 1, utc(2025, 6, 2, 9), utc(2025, 6, 2, 12))
        results = checker.check_slots(
            1,
            [
                SlotRequest(date=MONDAY, service_id=1),
                SlotRequest(date=MONDAY, service_id=1, employee_id=1),
                SlotRequest(date=SUNDAY, service_id=1),
            ],
        )

        assert results[0].slots[:2] == ["09:00", "09:30"]
        assert len(results[0].slots) == 14
        assert results[1].slots[0] == "13:00"
        assert results[2].slots == []

    def test_service_filters_employees(self, checker):
        [result] = checker.check_slots(1, [SlotRequest(date=MONDAY, service_id=42)])
        assert result.slots == []

    def test_single_appointment_read(self, store, checker):
        requests = [SlotRequest(date=MONDAY + timedelta(days=offset), service_id=1) for offset in range(10)]
        checker.check_slots(1, requests)
        assert store.appointment_reads == 1


class TestCheckDays:

    def test_days(self, checker):
        days = checker.check_days(1, [MONDAY, SUNDAY], [CUT])
        assert days == {MONDAY: True, SUNDAY: False}
        assert list(days) == [MONDAY, SUNDAY]

    def test_fully_booked_day(self, seeded, checker):
        for employee_id in (1, 2):
            add_booking(seeded, employee_id, utc(2025, 6, 2, 9), utc(2025, 6, 2, 17))
        assert checker.check_days(1, [MONDAY], [CUT]) == {MONDAY: False}

    def test_single_appointment_read(self, store, checker):
        checker.check_days(1, [MONDAY + timedelta(days=offset) for offset in range(14)], [CUT])
        assert store.appointment_reads == 1

    def test_parallel_workers_match_sequential(self, store, checker):
        dates = [MONDAY + timedelta(days=offset) for offset in range(7)]
        parallel = BatchAvailabilityChecker(store, EngineSettings(default_timezone="UTC", batch_workers=4), now=FIXED_NOW)
        assert parallel.check_days(1, dates, [CUT]) == checker.check_days(1, dates, [CUT])

    def test_range_cap(self, checker):
        with pytest.raises(InvalidRequestError):
            checker.check_days(1, [SUNDAY, date(2025, 8, 15)], [CUT])

    def test_missing_organization(self, checker):
        with pytest.raises(NotFoundError):
            checker.check_days(99, [MONDAY], [CUT])

    def test_empty_input(self, checker):
        with pytest.raises(InvalidRequestError):
            checker.check_days(1, [], [CUT])
        with pytest.raises(InvalidRequestError):
            checker.check_slots(1, [])
