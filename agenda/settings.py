# agenda/settings.py

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class EngineSettings(BaseModel):
    """Defaults threaded explicitly through every engine call."""

    default_timezone: str = "America/Bogota"
    default_step_minutes: int = Field(default=30, ge=1)
    max_batch_days: int = Field(default=60, ge=1)
    max_week_steps: int = Field(default=500, ge=1)
    series_write_attempts: int = Field(default=3, ge=1)
    series_retry_delay: float = Field(default=0.2, ge=0)
    batch_workers: int = Field(default=1, ge=1)


DEFAULT_SETTINGS = EngineSettings()


def load_settings() -> EngineSettings:
    """Build settings from AGENDA_* environment variables (and a .env file)."""
    load_dotenv()
    values = {}
    for name in EngineSettings.model_fields:
        raw = os.getenv(f"AGENDA_{name.upper()}")
        if raw is not None:
            values[name] = raw
    return EngineSettings(**values)
