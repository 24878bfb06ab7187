"""Tests for automatic employee assignment and multi-service blocks."""

import pytest

from agenda.assignment import assign_best
from agenda.blocks import eligible_for, find_blocks
from agenda.errors import InvalidRequestError
from agenda.schemas import ExistingAppointment, ServiceRequest

from conftest import FIXED_NOW, MONDAY, SUNDAY, make_employee, make_org, utc, weekly_payload


def booking(employee_id, start, end, status="booked"):
    return ExistingAppointment(
        employee_id=employee_id, starts_at=utc(2025, 6, 2, *start), ends_at=utc(2025, 6, 2, *end), status=status
    )


def clocks(blocks):
    return [block.start.strftime("%H:%M") for block in blocks]


# =============================================================================
# ASSIGNMENT
# =============================================================================

class TestAssignBest:

    @pytest.fixture
    def staff(self):
        return [make_employee(1), make_employee(2)]

    def test_tie_keeps_input_order(self, office, staff, settings):
        chosen = assign_best(staff, MONDAY, "10:00", 60, [], office, settings=settings)
        assert chosen.id == 1

    def test_least_loaded_wins(self, office, staff, settings):
        appointments = [booking(1, (14,), (15,))]
        chosen = assign_best(staff, MONDAY, "10:00", 60, appointments, office, settings=settings)
        assert chosen.id == 2

    def test_busy_employee_skipped_even_if_less_loaded(self, office, staff, settings):
        appointments = [booking(1, (10,), (11,)), booking(2, (14,), (15,)), booking(2, (15,), (16,))]
        chosen = assign_best(staff, MONDAY, "10:00", 60, appointments, office, settings=settings)
        assert chosen.id == 2

    def test_cancelled_bookings_do_not_count(self, office, staff, settings):
        appointments = [booking(1, (10,), (11,), status="cancelled_by_customer")]
        assert assign_best(staff, MONDAY, "10:00", 60, appointments, office, settings=settings).id == 1

    def test_may_end_at_closing_time(self, office, staff, settings):
        assert assign_best(staff, MONDAY, "16:00", 60, [], office, settings=settings) is not None
        assert assign_best(staff, MONDAY, "16:30", 60, [], office, settings=settings) is None

    def test_break_blocks_assignment(self, office, staff, settings):
        assert assign_best(staff, MONDAY, "11:30", 60, [], office, settings=settings) is None

    def test_employee_schedule_respected(self, office, settings):
        part_time = make_employee(1, weekly=weekly_payload({1: ("13:00", "17:00")}))
        chosen = assign_best([part_time, make_employee(2)], MONDAY, "10:00", 60, [], office, settings=settings)
        assert chosen.id == 2

    def test_no_candidates(self, office, settings):
        assert assign_best([], MONDAY, "10:00", 60, [], office, settings=settings) is None

    def test_booked_employee_never_auto_assigned(self, office, staff, settings):
        appointments = [booking(1, (10,), (11,)), booking(2, (10,), (10, 30))]
        assert assign_best(staff, MONDAY, "10:00", 60, appointments, office, settings=settings) is None


def test_eligible_for_skips_inactive_and_unqualified():
    staff = [make_employee(1, service_ids=[1]), make_employee(2, service_ids=[2]), make_employee(3, is_active=False)]
    assert [emp.id for emp in eligible_for(1, staff)] == [1]


# =============================================================================
# MULTI-SERVICE BLOCKS
# =============================================================================

class TestFindBlocks:

    @pytest.fixture
    def morning(self):
        return make_org(weekly=weekly_payload({1: ("09:00", "11:00")}))

    @pytest.fixture
    def staff(self):
        return [make_employee(1, service_ids=[1]), make_employee(2, service_ids=[2])]

    @pytest.fixture
    def services(self):
        return [ServiceRequest(service_id=1, duration_minutes=30), ServiceRequest(service_id=2, duration_minutes=30)]

    def test_services_chained_back_to_back(self, morning, staff, services, settings):
        blocks = find_blocks(MONDAY, morning, services, staff, settings=settings, now=FIXED_NOW)
        assert clocks(blocks) == ["09:00", "09:30", "10:00"]

        first = blocks[0]
        assert [(i.service_id, i.employee_id) for i in first.intervals] == [(1, 1), (2, 2)]
        assert first.intervals[0].end == first.intervals[1].start
        assert first.end == utc(2025, 6, 2, 10, 0)

    def test_busy_second_step_rejects_block(self, morning, staff, services, settings):
        appointments = [booking(2, (9, 30), (10,))]
        blocks = find_blocks(MONDAY, morning, services, staff, appointments, settings=settings, now=FIXED_NOW)
        assert clocks(blocks) == ["09:30", "10:00"]

    def test_blocks_skip_org_breaks(self, office, staff, services, settings):
        blocks = find_blocks(MONDAY, office, services, staff, settings=settings, now=FIXED_NOW)
        starts = clocks(blocks)
        assert "11:00" in starts
        assert "11:30" not in starts and "12:00" not in starts
        assert "13:00" in starts

    def test_pinned_employee_narrows_window(self, morning, settings):
        pinned = make_employee(1, weekly=weekly_payload({1: ("10:00", "12:00")}), service_ids=[1])
        services = [
            ServiceRequest(service_id=1, duration_minutes=30, pinned_employee_id=1),
            ServiceRequest(service_id=2, duration_minutes=30),
        ]
        blocks = find_blocks(
            MONDAY, morning, services, [pinned, make_employee(2, service_ids=[2])], settings=settings, now=FIXED_NOW
        )
        assert clocks(blocks) == ["10:00"]

    def test_pinned_employee_booked(self, morning, staff, settings):
        services = [ServiceRequest(service_id=1, duration_minutes=60, employee_id=1)]
        blocks = find_blocks(MONDAY, morning, services, staff, [booking(1, (9,), (9, 30))], settings=settings, now=FIXED_NOW)
        assert clocks(blocks) == ["09:30", "10:00"]

    def test_capacity_does_not_apply_to_auto_assignment(self, morning, settings):
        group_class = [ServiceRequest(service_id=1, duration_minutes=30, max_concurrent=2)]
        staff = [make_employee(1, service_ids=[1]), make_employee(2, service_ids=[1])]
        appointments = [booking(1, (9,), (9, 30))]

        blocks = find_blocks(MONDAY, morning, group_class, staff, appointments, settings=settings, now=FIXED_NOW)
        assert blocks[0].intervals[0].employee_id == 2

        blocks = find_blocks(MONDAY, morning, group_class, staff[:1], appointments, settings=settings, now=FIXED_NOW)
        assert clocks(blocks) == ["09:30", "10:00", "10:30"]

    def test_pinned_step_uses_service_capacity(self, morning, staff, settings):
        group_class = [ServiceRequest(service_id=1, duration_minutes=30, max_concurrent=2, pinned_employee_id=1)]
        appointments = [booking(1, (9,), (9, 30))]
        blocks = find_blocks(MONDAY, morning, group_class, staff, appointments, settings=settings, now=FIXED_NOW)
        assert clocks(blocks)[0] == "09:00"

    def test_pinned_employee_missing(self, morning, staff, settings):
        services = [ServiceRequest(service_id=1, duration_minutes=30, pinned_employee_id=99)]
        assert find_blocks(MONDAY, morning, services, staff, settings=settings, now=FIXED_NOW) == []

    def test_closed_day(self, morning, staff, services, settings):
        assert find_blocks(SUNDAY, morning, services, staff, settings=settings, now=FIXED_NOW) == []

    def test_no_qualified_employee(self, morning, services, settings):
        staff = [make_employee(1, service_ids=[1])]
        assert find_blocks(MONDAY, morning, services, staff, settings=settings, now=FIXED_NOW) == []

    def test_past_blocks_dropped_today(self, morning, staff, services, settings):
        blocks = find_blocks(MONDAY, morning, services, staff, settings=settings, now=utc(2025, 6, 2, 9, 10))
        assert clocks(blocks) == ["09:30", "10:00"]

    def test_empty_services_rejected(self, morning, staff, settings):
        with pytest.raises(InvalidRequestError):
            find_blocks(MONDAY, morning, [], staff, settings=settings)
