# agenda/store.py
"""Read and write access to organizations, employees and appointments."""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, col, select

from .core import CANCELLED_STATUSES, as_aware
from .models import Appointment, Employee, Organization, Service
from .resolver import load_employee, load_organization
from .schemas import EmployeeProfile, OrganizationProfile

logger = logging.getLogger(__name__)


def to_storage(value: datetime) -> datetime:
    """Instants are stored as aware UTC."""
    return as_aware(value).astimezone(timezone.utc)


def organization_profile(row: Organization) -> OrganizationProfile:
    return load_organization(
        id=row.id,
        name=row.name,
        timezone=row.timezone,
        weekly_schedule=row.weekly_schedule,
        legacy_hours=row.opening_hours,
    )


def employee_profile(row: Employee) -> EmployeeProfile:
    return load_employee(
        id=row.id,
        name=row.name,
        organization_id=row.organization_id,
        is_active=row.is_active,
        weekly_schedule=row.weekly_schedule,
        service_ids=row.service_ids or [],
    )


class UnitOfWork:
    """Handle for one atomic batch of appointment inserts."""

    def __init__(self, session: Session):
        self.session = session
        self.added: List[Appointment] = []

    def add(self, appointment: Appointment) -> Appointment:
        self.session.add(appointment)
        # flush per row so a failing insert aborts the batch right away
        self.session.flush()
        self.added.append(appointment)
        return appointment


class AppointmentStore:
    unit_of_work_class = UnitOfWork

    def __init__(self, session: Session):
        self.session = session

    def get_organization(self, organization_id: int) -> Optional[OrganizationProfile]:
        row = self.session.get(Organization, organization_id)
        return organization_profile(row) if row is not None else None

    def get_employee(self, employee_id: int) -> Optional[EmployeeProfile]:
        row = self.session.get(Employee, employee_id)
        return employee_profile(row) if row is not None else None

    def list_employees(self, employee_ids: Iterable[int]) -> List[EmployeeProfile]:
        ids = list(employee_ids)
        if not ids:
            return []
        rows = self.session.exec(
            select(Employee).where(col(Employee.id).in_(ids)).order_by(Employee.id)
        ).all()
        return [employee_profile(row) for row in rows]

    def list_organization_employees(self, organization_id: int, active_only: bool = True) -> List[EmployeeProfile]:
        stmt = select(Employee).where(Employee.organization_id == organization_id)
        if active_only:
            stmt = stmt.where(Employee.is_active == True)  # noqa: E712
        rows = self.session.exec(stmt.order_by(Employee.id)).all()
        return [employee_profile(row) for row in rows]

    def list_eligible_employees(self, organization_id: int, service_id: int) -> List[EmployeeProfile]:
        # service lists live in a JSON column, filter here
        return [
            emp
            for emp in self.list_organization_employees(organization_id)
            if service_id in emp.service_ids
        ]

    def get_services(self, service_ids: Iterable[int]) -> Dict[int, Service]:
        ids = list(service_ids)
        if not ids:
            return {}
        rows = self.session.exec(select(Service).where(col(Service.id).in_(ids))).all()
        return {row.id: row for row in rows}

    def list_appointments(
        self,
        organization_id: int,
        employee_ids: Optional[Iterable[int]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        include_cancelled: bool = False,
    ) -> List[Appointment]:
        """Appointments overlapping [start, end), oldest first."""
        stmt = select(Appointment).where(Appointment.organization_id == organization_id)

        if employee_ids is not None:
            stmt = stmt.where(col(Appointment.employee_id).in_(list(employee_ids)))
        if start is not None:
            stmt = stmt.where(Appointment.ends_at > to_storage(start))
        if end is not None:
            stmt = stmt.where(Appointment.starts_at < to_storage(end))
        if not include_cancelled:
            stmt = stmt.where(col(Appointment.status).not_in(list(CANCELLED_STATUSES)))

        stmt = stmt.order_by(Appointment.starts_at)
        return list(self.session.exec(stmt).all())

    @contextmanager
    def unit_of_work(self):
        """Everything added through the yielded handle commits or rolls back together."""
        uow = self.unit_of_work_class(self.session)
        try:
            yield uow
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.warning(f"Rolled back unit of work after {len(uow.added)} insert(s)")
            raise
