# agenda/deps.py

from functools import lru_cache

from fastapi import Depends, HTTPException
from sqlmodel import Session

from .db import get_session
from .errors import (
    InvalidRequestError,
    NoOccurrencesError,
    NotFoundError,
    ScheduleConfigError,
    SchedulingError,
    SeriesWriteError,
)
from .settings import EngineSettings, load_settings
from .store import AppointmentStore

STATUS_CODES = {
    ScheduleConfigError: 422,
    InvalidRequestError: 422,
    NotFoundError: 404,
    NoOccurrencesError: 409,
    SeriesWriteError: 500,
}


@lru_cache
def get_settings() -> EngineSettings:
    return load_settings()


def get_store(session: Session = Depends(get_session)) -> AppointmentStore:
    return AppointmentStore(session)


def as_http_error(err: SchedulingError) -> HTTPException:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(err, error_type):
            return HTTPException(status_code=status_code, detail=str(err))
    return HTTPException(status_code=400, detail=str(err))
