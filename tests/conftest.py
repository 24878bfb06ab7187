"""
Pytest configuration and fixtures.

Builders for schedule payloads and profiles, plus an in-memory SQLite
database seeded with one organization, two employees and two services.
"""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from agenda.db import init_db
from agenda.models import Appointment, Employee, Organization, Service
from agenda.resolver import load_employee, load_organization
from agenda.settings import EngineSettings
from agenda.store import to_storage

# Fixture builders are imported by the test modules
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

# 2025-06-01 is a Sunday
SUNDAY = date(2025, 6, 1)
MONDAY = date(2025, 6, 2)
FIXED_NOW = datetime(2025, 5, 1, 8, 0, tzinfo=timezone.utc)

WEEKDAYS = {1: ("09:00", "17:00"), 2: ("09:00", "17:00"), 3: ("09:00", "17:00"),
            4: ("09:00", "17:00"), 5: ("09:00", "17:00")}
LUNCH = [{"start": "12:00", "end": "13:00"}]


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def weekly_payload(hours, breaks=None, step=None) -> dict:
    """Enabled weekly schedule payload: `hours` maps weekday -> (start, end)."""
    breaks = breaks or {}
    days = []
    for weekday in range(7):
        if weekday in hours:
            start, end = hours[weekday]
            days.append(
                {
                    "weekday": weekday,
                    "is_open": True,
                    "start": start,
                    "end": end,
                    "breaks": breaks.get(weekday, []),
                }
            )
        else:
            days.append({"weekday": weekday, "is_open": False})
    return {"enabled": True, "step_minutes": step, "days": days}


def office_week(step=30) -> dict:
    """Monday to Friday 09:00-17:00 with a 12:00-13:00 lunch break."""
    return weekly_payload(WEEKDAYS, {day: LUNCH for day in WEEKDAYS}, step=step)


def make_org(weekly=None, legacy=None, tz="UTC", org_id=1):
    return load_organization(
        id=org_id, name="Studio", timezone=tz, weekly_schedule=weekly, legacy_hours=legacy
    )


def make_employee(employee_id=1, weekly=None, service_ids=(1, 2), is_active=True):
    return load_employee(
        id=employee_id,
        name=f"Employee {employee_id}",
        organization_id=1,
        is_active=is_active,
        weekly_schedule=weekly,
        service_ids=list(service_ids),
    )


@pytest.fixture
def settings():
    return EngineSettings(default_timezone="UTC", series_retry_delay=0)


@pytest.fixture
def office():
    return make_org(weekly=office_week())


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seeded(session):
    session.add(Organization(id=1, name="Studio", timezone="UTC", weekly_schedule=office_week()))
    session.add(Employee(id=1, organization_id=1, name="Ana", service_ids=[1, 2]))
    session.add(Employee(id=2, organization_id=1, name="Luis", service_ids=[1, 2]))
    session.add(Employee(id=3, organization_id=1, name="Retired", is_active=False, service_ids=[1]))
    session.add(Service(id=1, organization_id=1, name="Cut", duration=30))
    session.add(Service(id=2, organization_id=1, name="Wash", duration=30, max_concurrent=2))
    session.commit()
    return session


def add_booking(session, employee_id, start, end, status="booked"):
    session.add(
        Appointment(
            organization_id=1,
            employee_id=employee_id,
            service_id=1,
            client_email="walk-in@example.com",
            starts_at=to_storage(start),
            ends_at=to_storage(end),
            status=status,
        )
    )
    session.commit()
