# agenda/models.py

from typing import Optional, List
from datetime import datetime

from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column


class Organization(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    timezone: Optional[str] = None
    # WeeklySchedule / LegacyHours payloads, validated when loaded
    weekly_schedule: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    opening_hours: Optional[dict] = Field(default=None, sa_column=Column(JSON))


class Employee(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(index=True)
    name: str
    is_active: bool = True
    weekly_schedule: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    service_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(index=True)
    name: str
    duration: int = 60
    max_concurrent: int = 1


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    organization_id: int = Field(index=True)
    employee_id: int = Field(index=True)
    service_id: int
    client_email: str
    starts_at: datetime = Field(index=True)
    ends_at: datetime
    status: str = "booked"

    series_id: Optional[str] = Field(default=None, index=True)
    occurrence_number: Optional[int] = None
    group_id: Optional[str] = Field(default=None, index=True)
    cancel_token_hash: Optional[str] = None
    # only the first occurrence of a series keeps the pattern
    recurrence_pattern: Optional[dict] = Field(default=None, sa_column=Column(JSON))
