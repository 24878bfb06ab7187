# agenda/routers/schedule_routes.py

from fastapi import APIRouter, Depends, HTTPException

from agenda.batch import BatchAvailabilityChecker
from agenda.blocks import find_blocks
from agenda.core import day_bounds
from agenda.deps import as_http_error, get_settings, get_store
from agenda.errors import SchedulingError
from agenda.resolver import check_datetime, employee_available_days, open_days, timezone_for
from agenda.schemas import (
    AvailabilityResponse,
    AvailableDaysRequest,
    AvailableDaysResponse,
    AvailableSlotsRequest,
    BatchSlotsRequest,
    BatchSlotsResponse,
    BlocksResponse,
    DateTimeCheck,
    MultiServiceBlocksRequest,
    OpenDaysResponse,
    ValidateDateTimeRequest,
)
from agenda.settings import EngineSettings
from agenda.slots import generate_slots
from agenda.store import AppointmentStore

router = APIRouter(
    prefix="/schedule",
    tags=["schedule"],
)


def _organization_or_404(store: AppointmentStore, organization_id: int):
    org = store.get_organization(organization_id)
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def _employee_or_404(store: AppointmentStore, employee_id: int):
    employee = store.get_employee(employee_id)
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.post("/available-slots", response_model=AvailabilityResponse)
def available_slots(
    payload: AvailableSlotsRequest,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        # 1) Lookup organization and optional employee
        org = _organization_or_404(store, payload.organization_id)
        employee = _employee_or_404(store, payload.employee_id) if payload.employee_id is not None else None

        # 2) Duration and capacity come from the service when one is given
        duration = payload.duration_minutes
        max_concurrent = 1
        if payload.service_id is not None:
            service = store.get_services([payload.service_id]).get(payload.service_id)
            if service is None:
                raise HTTPException(status_code=404, detail="Service not found")
            duration = duration or service.duration
            max_concurrent = service.max_concurrent

        # 3) Appointments touching the local day
        start, end = day_bounds(payload.date, timezone_for(org, settings))
        employee_ids = [employee.id] if employee is not None else None
        appointments = store.list_appointments(org.id, employee_ids, start, end)

        # 4) Generate slots
        slots = generate_slots(
            payload.date,
            org,
            employee,
            duration or 30,
            appointments,
            max_concurrent,
            settings=settings,
        )
    except SchedulingError as err:
        raise as_http_error(err) from err

    return {"date": payload.date, "slots": slots, "total_slots": len(slots)}


@router.post("/validate-datetime", response_model=DateTimeCheck)
def validate_datetime(
    payload: ValidateDateTimeRequest,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        org = _organization_or_404(store, payload.organization_id)
        employee = _employee_or_404(store, payload.employee_id) if payload.employee_id is not None else None
        return check_datetime(payload.starts_at, org, employee, settings)
    except SchedulingError as err:
        raise as_http_error(err) from err


@router.get("/organization/{org_id}/open-days", response_model=OpenDaysResponse)
def organization_open_days(org_id: int, store: AppointmentStore = Depends(get_store)):
    try:
        org = _organization_or_404(store, org_id)
        return {"days": open_days(org)}
    except SchedulingError as err:
        raise as_http_error(err) from err


@router.get("/employee/{employee_id}/available-days", response_model=OpenDaysResponse)
def employee_days(employee_id: int, store: AppointmentStore = Depends(get_store)):
    try:
        employee = _employee_or_404(store, employee_id)
        if employee.organization_id is None:
            raise HTTPException(status_code=404, detail="Organization not found")
        org = _organization_or_404(store, employee.organization_id)
        return {"days": employee_available_days(employee, org)}
    except SchedulingError as err:
        raise as_http_error(err) from err


@router.post("/multi-service-blocks", response_model=BlocksResponse)
def multi_service_blocks(
    payload: MultiServiceBlocksRequest,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        org = _organization_or_404(store, payload.organization_id)
        employees = store.list_organization_employees(org.id)

        start, end = day_bounds(payload.date, timezone_for(org, settings))
        appointments = store.list_appointments(org.id, [emp.id for emp in employees], start, end)

        blocks = find_blocks(payload.date, org, payload.services, employees, appointments, settings=settings)
    except SchedulingError as err:
        raise as_http_error(err) from err

    return {"blocks": blocks}


@router.post("/available-slots-batch", response_model=BatchSlotsResponse)
def available_slots_batch(
    payload: BatchSlotsRequest,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        results = BatchAvailabilityChecker(store, settings).check_slots(payload.organization_id, payload.requests)
    except SchedulingError as err:
        raise as_http_error(err) from err
    return {"results": results}


@router.post("/available-days", response_model=AvailableDaysResponse)
def available_days(
    payload: AvailableDaysRequest,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        days = BatchAvailabilityChecker(store, settings).check_days(
            payload.organization_id, payload.dates, payload.services
        )
    except SchedulingError as err:
        raise as_http_error(err) from err
    return {"days": days}
