# agenda/schemas.py

from datetime import datetime, date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .core import to_minutes


def _check_weekday(value: int) -> int:
    if not (0 <= value <= 6):
        raise ValueError("weekdays must be integers between 0 (Sunday) and 6 (Saturday)")
    return value


# ---- schedules -------------------------------------------------------------

class BreakPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    weekday: Optional[int] = Field(default=None, validation_alias=AliasChoices("weekday", "day"))

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, v: Optional[int]) -> Optional[int]:
        return v if v is None else _check_weekday(v)

    @model_validator(mode="after")
    def validate_range(self):
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError(f"break {self.start}-{self.end} must start before it ends")
        return self

    def applies_to(self, weekday: int) -> bool:
        return self.weekday is None or self.weekday == weekday


class DaySchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    weekday: int = Field(validation_alias=AliasChoices("weekday", "day"))
    is_open: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_open", "is_available", "isOpen", "isAvailable"),
    )
    start: Optional[str] = None
    end: Optional[str] = None
    breaks: List[BreakPeriod] = Field(default_factory=list)

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, v: int) -> int:
        return _check_weekday(v)

    @model_validator(mode="after")
    def validate_hours(self):
        if not self.is_open:
            return self
        if not self.start or not self.end:
            raise ValueError(f"day {self.weekday} is marked open but has no hours")
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError(f"day {self.weekday} must start before it ends")
        return self


class WeeklySchedule(BaseModel):
    enabled: bool = False
    step_minutes: Optional[int] = Field(
        default=None, ge=1, validation_alias=AliasChoices("step_minutes", "stepMinutes")
    )
    days: List[DaySchedule] = Field(
        default_factory=list, validation_alias=AliasChoices("days", "schedule")
    )

    @model_validator(mode="after")
    def validate_days(self):
        if self.enabled and sorted(d.weekday for d in self.days) != list(range(7)):
            raise ValueError("weekly schedule must define each weekday 0-6 exactly once")
        return self

    def day(self, weekday: int) -> Optional[DaySchedule]:
        for day_schedule in self.days:
            if day_schedule.weekday == weekday:
                return day_schedule
        return None


class LegacyHours(BaseModel):
    """Single open range used when no weekly schedule is enabled."""

    start: Optional[str] = None
    end: Optional[str] = None
    # explicit null means every day
    business_days: Optional[List[int]] = Field(
        default=[1, 2, 3, 4, 5], validation_alias=AliasChoices("business_days", "businessDays")
    )
    breaks: List[BreakPeriod] = Field(default_factory=list)
    step_minutes: Optional[int] = Field(
        default=None, ge=1, validation_alias=AliasChoices("step_minutes", "stepMinutes")
    )

    @field_validator("business_days")
    @classmethod
    def validate_business_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None:
            for day in v:
                _check_weekday(day)
        return v

    @model_validator(mode="after")
    def validate_hours(self):
        if self.start and self.end and to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError("opening hours must start before they end")
        return self


class OrganizationProfile(BaseModel):
    id: int
    name: str = ""
    timezone: Optional[str] = None
    weekly_schedule: Optional[WeeklySchedule] = None
    legacy_hours: Optional[LegacyHours] = None


class EmployeeProfile(BaseModel):
    id: int
    name: str = ""
    organization_id: Optional[int] = None
    is_active: bool = True
    weekly_schedule: Optional[WeeklySchedule] = None
    service_ids: List[int] = Field(default_factory=list)


class EffectiveSchedule(BaseModel):
    """Resolved hours of one entity on one weekday. Never mutated."""

    model_config = ConfigDict(frozen=True)

    is_open: bool
    start: Optional[str] = None
    end: Optional[str] = None
    breaks: Tuple[BreakPeriod, ...] = ()
    use_org_schedule: bool = False

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    @property
    def has_range(self) -> bool:
        return self.is_open and not self.use_org_schedule


CLOSED = EffectiveSchedule(is_open=False)
DEFER_TO_ORG = EffectiveSchedule(is_open=True, use_org_schedule=True)


class DateTimeCheck(BaseModel):
    valid: bool
    reason: Optional[str] = None


# ---- availability ----------------------------------------------------------

class ServiceRequest(BaseModel):
    service_id: int
    duration_minutes: int = Field(gt=0, validation_alias=AliasChoices("duration_minutes", "duration"))
    pinned_employee_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("pinned_employee_id", "employee_id")
    )
    max_concurrent: int = Field(default=1, ge=1)


class ExistingAppointment(BaseModel):
    employee_id: Optional[int] = None
    starts_at: datetime
    ends_at: datetime
    status: str = "booked"


class Slot(BaseModel):
    time: str
    datetime: datetime
    available: bool


class BlockInterval(BaseModel):
    service_id: int
    employee_id: int
    start: datetime
    end: datetime


class MultiServiceBlock(BaseModel):
    start: datetime
    end: datetime
    intervals: List[BlockInterval]


class SlotRequest(BaseModel):
    date: date
    service_id: Optional[int] = None
    employee_id: Optional[int] = None
    duration_minutes: int = Field(default=30, gt=0, validation_alias=AliasChoices("duration_minutes", "duration"))
    max_concurrent: int = Field(default=1, ge=1)


class SlotBatchResult(BaseModel):
    date: date
    service_id: Optional[int] = None
    employee_id: Optional[int] = None
    slots: List[str]


# ---- recurrence ------------------------------------------------------------

class EndType(str, Enum):
    date = "date"
    count = "count"


class OccurrenceStatus(str, Enum):
    available = "available"
    no_work = "no_work"
    conflict = "conflict"
    error = "error"


class RecurrencePattern(BaseModel):
    interval_weeks: int = Field(default=1, ge=1, le=52)
    weekdays: List[int] = Field(min_length=1)
    end_type: EndType
    end_date: Optional[date] = None
    count: Optional[int] = Field(default=None, ge=1, le=100)

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v: List[int]) -> List[int]:
        for day in v:
            _check_weekday(day)
        if len(v) != len(set(v)):
            raise ValueError("weekdays cannot contain duplicates")
        return sorted(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def drop_time_component(cls, v):
        # only the calendar day of the end date matters
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            return v.split("T")[0]
        return v

    @model_validator(mode="after")
    def validate_end(self):
        if self.end_type == EndType.date and self.end_date is None:
            raise ValueError("end_date is required when end_type is 'date'")
        if self.end_type == EndType.count and self.count is None:
            raise ValueError("count is required when end_type is 'count'")
        return self


class Occurrence(BaseModel):
    date: datetime
    weekday: int


class OccurrenceValidation(BaseModel):
    date: datetime
    weekday: int
    status: OccurrenceStatus
    reason: Optional[str] = None


class SeriesPolicy(BaseModel):
    omit_if_no_work: bool = True
    omit_if_conflict: bool = True
    allow_overbooking: bool = False


class SeriesRequest(BaseModel):
    organization_id: int
    employee_id: int
    client_email: str
    service_ids: List[int] = Field(min_length=1)
    starts_at: datetime
    pattern: RecurrencePattern


class SeriesCreate(SeriesRequest):
    policy: SeriesPolicy = Field(default_factory=SeriesPolicy)


class SeriesSummary(BaseModel):
    total: int = 0
    available: int = 0
    no_work: int = 0
    conflict: int = 0
    error: int = 0
    will_be_created: int = 0
    created: int = 0
    skipped: int = 0


class SeriesPreview(BaseModel):
    occurrences: List[OccurrenceValidation]
    summary: SeriesSummary


class CreatedAppointment(BaseModel):
    id: int
    service_id: int
    starts_at: datetime
    ends_at: datetime
    occurrence_number: int


class SeriesResult(BaseModel):
    series_id: str
    group_id: str
    cancel_token: str
    created: List[CreatedAppointment]
    skipped: List[OccurrenceValidation]
    summary: SeriesSummary


# ---- HTTP payloads ---------------------------------------------------------

class AvailableSlotsRequest(BaseModel):
    date: date
    organization_id: int
    employee_id: Optional[int] = None
    service_id: Optional[int] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class AvailabilityResponse(BaseModel):
    date: date
    slots: List[Slot]
    total_slots: int


class ValidateDateTimeRequest(BaseModel):
    starts_at: datetime
    organization_id: int
    employee_id: Optional[int] = None


class OpenDaysResponse(BaseModel):
    days: List[int]


class MultiServiceBlocksRequest(BaseModel):
    date: date
    organization_id: int
    services: List[ServiceRequest] = Field(min_length=1)


class BlocksResponse(BaseModel):
    blocks: List[MultiServiceBlock]


class BatchSlotsRequest(BaseModel):
    organization_id: int
    requests: List[SlotRequest] = Field(min_length=1)


class BatchSlotsResponse(BaseModel):
    results: List[SlotBatchResult]


class AvailableDaysRequest(BaseModel):
    organization_id: int
    dates: List[date] = Field(min_length=1)
    services: List[ServiceRequest] = Field(min_length=1)


class AvailableDaysResponse(BaseModel):
    days: Dict[date, bool]
