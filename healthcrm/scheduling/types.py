"""Domain models shared by the scheduling components."""

from datetime import date, datetime, time, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


AppointmentStatus = Literal['scheduled', 'checked-in', 'completed', 'cancelled', 'no-show', 'waitlist']
ResizeDirection = Literal['top', 'bottom']
RecurrenceFrequency = Literal['daily', 'weekly', 'monthly']

APPOINTMENT_STATUSES: tuple[str, ...] = (
    'scheduled',
    'checked-in',
    'completed',
    'cancelled',
    'no-show',
    'waitlist',
)

# Indexed like the weekday numbers used by recurrence patterns (0 = Sunday).
WEEKDAY_NAMES: tuple[str, ...] = (
    'sunday',
    'monday',
    'tuesday',
    'wednesday',
    'thursday',
    'friday',
    'saturday',
)


def weekday_index(value: date) -> int:
    """Return the weekday of ``value`` with Sunday as 0."""
    return (value.weekday() + 1) % 7


def weekday_name(value: date) -> str:
    return WEEKDAY_NAMES[weekday_index(value)]


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Stored times are naive UTC; convert offset-aware input to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def check_duration_bounds(min_duration: int | None, max_duration: int | None) -> None:
    if min_duration is not None and max_duration is not None and min_duration > max_duration:
        raise ValueError('Minimum duration cannot exceed maximum duration.')


class Appointment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    therapist_id: str
    client_id: str
    client_name: str = ''
    service_id: str
    service_name: str | None = None
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = 'scheduled'
    notes: str | None = None
    color: str | None = None
    cancellation_reason: str | None = None
    is_recurring: bool = False
    is_blocked: bool = False
    is_draggable: bool = True
    is_resizable: bool = True
    is_dragging: bool = False
    is_resizing: bool = False
    recurrence_group_id: str | None = None
    is_exception: bool = False
    min_duration: int | None = Field(default=None, ge=1)
    max_duration: int | None = Field(default=None, ge=1)

    @field_validator('is_recurring', 'is_blocked', 'is_exception', mode='before')
    @classmethod
    def default_false_flags(cls, value):
        return False if value is None else value

    @field_validator('is_draggable', 'is_resizable', mode='before')
    @classmethod
    def default_true_flags(cls, value):
        return True if value is None else value

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode='after')
    def validate_time_order(self) -> 'Appointment':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        check_duration_bounds(self.min_duration, self.max_duration)
        return self

    @property
    def duration_minutes(self) -> int:
        return round((self.end_time - self.start_time).total_seconds() / 60)

    @property
    def is_cancelled(self) -> bool:
        return self.status == 'cancelled'


class AppointmentDraft(BaseModel):
    """Partially filled appointment as submitted for validation."""

    id: str | None = None
    therapist_id: str | None = None
    client_id: str | None = None
    client_name: str = ''
    service_id: str | None = None
    service_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus = 'scheduled'
    notes: str | None = None
    color: str | None = None
    is_blocked: bool = False
    is_draggable: bool = True
    is_resizable: bool = True
    min_duration: int | None = Field(default=None, ge=1)
    max_duration: int | None = Field(default=None, ge=1)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value)

    @model_validator(mode='after')
    def validate_duration_bounds(self) -> 'AppointmentDraft':
        check_duration_bounds(self.min_duration, self.max_duration)
        return self


class RecurrencePattern(BaseModel):
    frequency: RecurrenceFrequency
    interval: int = Field(default=1, ge=1)
    end_date: date | None = None
    occurrences: int | None = Field(default=None, ge=1)
    days_of_week: list[int] | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    skip_dates: list[date] = Field(default_factory=list)

    @field_validator('days_of_week')
    @classmethod
    def validate_days_of_week(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        for day in value:
            if day < 0 or day > 6:
                raise ValueError('Days of week must be between 0 (Sunday) and 6 (Saturday).')
        return sorted(set(value))

    @model_validator(mode='after')
    def require_end_condition(self) -> 'RecurrencePattern':
        if self.end_date is None and self.occurrences is None:
            raise ValueError('A recurrence pattern needs an end date or a number of occurrences.')
        return self


class BreakPeriod(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: time
    end: time
    title: str = 'Break'

    @model_validator(mode='after')
    def validate_order(self) -> 'BreakPeriod':
        if self.end <= self.start:
            raise ValueError('Break end must be after break start.')
        return self


class WorkingDay(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: time
    end: time
    breaks: list[BreakPeriod] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_order(self) -> 'WorkingDay':
        if self.end <= self.start:
            raise ValueError('Working hours must end after they start.')
        return self


class Provider(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    specialty: str | None = None
    # None means the provider has no configured hours and is bookable at any time.
    working_hours: dict[str, WorkingDay] | None = None

    @field_validator('working_hours')
    @classmethod
    def validate_weekday_keys(cls, value: dict[str, WorkingDay] | None) -> dict[str, WorkingDay] | None:
        if value is None:
            return None
        normalized = {}
        for day_name, working_day in value.items():
            key = day_name.strip().lower()
            if key not in WEEKDAY_NAMES:
                raise ValueError(f'Unknown weekday: {day_name}.')
            normalized[key] = working_day
        return normalized
