# agenda/routers/series_routes.py

from fastapi import APIRouter, Depends

from agenda.deps import as_http_error, get_settings, get_store
from agenda.errors import SchedulingError
from agenda.schemas import SeriesCreate, SeriesPreview, SeriesRequest, SeriesResult
from agenda.series import SeriesService
from agenda.settings import EngineSettings
from agenda.store import AppointmentStore

router = APIRouter(
    prefix="/series",
    tags=["series"],
)


@router.post("/preview", response_model=SeriesPreview)
def preview_series(
    payload: SeriesRequest,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        return SeriesService(store, settings).preview(payload)
    except SchedulingError as err:
        raise as_http_error(err) from err


@router.post("", response_model=SeriesResult, status_code=201)
def create_series(
    payload: SeriesCreate,
    store: AppointmentStore = Depends(get_store),
    settings: EngineSettings = Depends(get_settings),
):
    try:
        return SeriesService(store, settings).create(payload, payload.policy)
    except SchedulingError as err:
        raise as_http_error(err) from err
