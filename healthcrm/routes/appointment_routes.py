from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthcrm.routes.common import (
    build_appointment_service,
    database_unavailable,
    ensure_database_ready,
    get_db,
    to_http_exception,
)
from healthcrm.scheduling.errors import AppointmentValidationError, SchedulingError
from healthcrm.scheduling.resize import can_resize, format_duration, get_resize_constraints, get_suggested_durations
from healthcrm.scheduling.service import CONFLICT_MESSAGE
from healthcrm.scheduling.types import (
    Appointment,
    AppointmentDraft,
    AppointmentStatus,
    RecurrencePattern,
    ResizeDirection,
    check_duration_bounds,
    to_naive_utc,
)

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600
MAX_CANCELLATION_REASON_LENGTH = 300


class CreateAppointmentRequest(BaseModel):
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
    is_blocked: bool = False
    is_draggable: bool = True
    is_resizable: bool = True
    min_duration: int | None = None
    max_duration: int | None = None

    @field_validator('therapist_id', 'client_id', 'service_id')
    @classmethod
    def strip_identifiers(cls, value: str) -> str:
        return value.strip()

    @field_validator('client_name')
    @classmethod
    def normalize_client_name(cls, value: str) -> str:
        return value.strip()

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode='after')
    def validate_duration_bounds(self) -> 'CreateAppointmentRequest':
        check_duration_bounds(self.min_duration, self.max_duration)
        return self

    def to_draft(self) -> AppointmentDraft:
        return AppointmentDraft(**self.model_dump())


class CreateRecurringAppointmentRequest(BaseModel):
    appointment: CreateAppointmentRequest
    pattern: RecurrencePattern


class ConflictCheckRequest(BaseModel):
    therapist_id: str
    start_time: datetime
    end_time: datetime
    exclude_appointment_id: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode='after')
    def validate_time_order(self) -> 'ConflictCheckRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


class CancelAppointmentRequest(BaseModel):
    reason: str

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('A cancellation reason is required.')
        if len(normalized) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_CANCELLATION_REASON_LENGTH} characters or fewer.')
        return normalized


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus
    reason: str | None = None


class UpdateSeriesRequest(BaseModel):
    update_all: bool = False
    client_name: str | None = None
    service_id: str | None = None
    service_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus | None = None
    notes: str | None = None
    color: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value)

    def changes(self) -> dict:
        return self.model_dump(exclude={'update_all'}, exclude_unset=True)


class ResizeRequest(BaseModel):
    direction: ResizeDirection
    duration_minutes: int


class AppointmentResponse(BaseModel):
    id: str
    therapist_id: str
    client_id: str
    client_name: str
    service_id: str
    service_name: str | None = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    notes: str | None = None
    color: str | None = None
    cancellation_reason: str | None = None
    is_recurring: bool
    is_blocked: bool
    is_draggable: bool
    is_resizable: bool
    recurrence_group_id: str | None = None
    is_exception: bool
    min_duration: int | None = None
    max_duration: int | None = None

    class Config:
        from_attributes = True


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: list[AppointmentResponse]
    reason: str | None = None


class SeriesDeletedResponse(BaseModel):
    recurrence_group_id: str
    deleted: int


class ResizeOptionsResponse(BaseModel):
    can_resize: bool
    min_duration: int
    max_duration: int
    snap_interval: int
    suggested_durations: list[int]
    suggested_labels: list[str]


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


def validate_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start, end = to_naive_utc(start), to_naive_utc(end)
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The end of the range must not be before its start.',
        )
    return start, end


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()
    service = build_appointment_service(db)
    draft = data.to_draft()

    try:
        return to_response(service.schedule_appointment(draft))
    except AppointmentValidationError as exc:
        validation_error = exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    if CONFLICT_MESSAGE not in validation_error.errors or data.end_time <= data.start_time:
        raise to_http_exception(validation_error) from validation_error

    try:
        conflict_result = service.find_conflicts(data.therapist_id, data.start_time, data.end_time)
        candidate = Appointment(id='requested', **draft.model_dump(exclude={'id'}))
        suggestions = service.suggest_alternatives(candidate, data.start_time)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            'message': str(validation_error),
            'errors': validation_error.errors,
            'conflicts': [item.model_dump(mode='json') for item in conflict_result.conflicts],
            'suggested_start_times': [slot.isoformat() for slot in suggestions],
        },
    ) from validation_error


@router.post('/recurring', response_model=list[AppointmentResponse], status_code=status.HTTP_201_CREATED)
def create_recurring_appointment(data: CreateRecurringAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        created = build_appointment_service(db).schedule_recurring_appointment(
            data.appointment.to_draft(),
            data.pattern,
        )
        return [to_response(appointment) for appointment in created]
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('/conflicts', response_model=ConflictCheckResponse)
def check_appointment_conflicts(data: ConflictCheckRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        result = build_appointment_service(db).find_conflicts(
            data.therapist_id,
            data.start_time,
            data.end_time,
            data.exclude_appointment_id,
        )
        return ConflictCheckResponse(
            has_conflict=result.has_conflict,
            conflicts=[to_response(appointment) for appointment in result.conflicts],
            reason=result.reason,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(appointment_id: str, data: CancelAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return to_response(build_appointment_service(db).cancel_appointment(appointment_id, data.reason))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(appointment_id: str, data: UpdateStatusRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        updated = build_appointment_service(db).update_appointment_status(appointment_id, data.status, data.reason)
        return to_response(updated)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.delete('/series/{recurrence_group_id}', response_model=SeriesDeletedResponse)
def delete_recurring_series(recurrence_group_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        deleted = build_appointment_service(db).cancel_recurring_sequence(recurrence_group_id)
        return SeriesDeletedResponse(recurrence_group_id=recurrence_group_id, deleted=deleted)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.patch('/{appointment_id}/series', response_model=list[AppointmentResponse])
def update_recurring_appointment(appointment_id: str, data: UpdateSeriesRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        updated = build_appointment_service(db).update_recurring_appointment(
            appointment_id,
            data.changes(),
            data.update_all,
        )
        return [to_response(appointment) for appointment in updated]
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('/{appointment_id}/resize', response_model=AppointmentResponse)
def resize_appointment(appointment_id: str, data: ResizeRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        resized = build_appointment_service(db).resize_appointment(
            appointment_id,
            data.direction,
            data.duration_minutes,
        )
        return to_response(resized)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/{appointment_id}/resize-options', response_model=ResizeOptionsResponse)
def get_resize_options(appointment_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = build_appointment_service(db).get_appointment(appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    constraints = get_resize_constraints(appointment)
    durations = get_suggested_durations(appointment)
    return ResizeOptionsResponse(
        can_resize=can_resize(appointment),
        min_duration=constraints.min_duration,
        max_duration=constraints.max_duration,
        snap_interval=constraints.snap_interval,
        suggested_durations=durations,
        suggested_labels=[format_duration(duration) for duration in durations],
    )


@router.get('/providers/{therapist_id}/schedule', response_model=list[AppointmentResponse])
def get_therapist_schedule(
    therapist_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
):
    start, end = validate_range(start, end)
    ensure_database_ready()

    try:
        schedule = build_appointment_service(db).get_therapist_schedule(therapist_id, start, end)
        return [to_response(appointment) for appointment in schedule]
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/clients/{client_id}', response_model=list[AppointmentResponse])
def get_client_appointments(
    client_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
):
    start, end = validate_range(start, end)
    ensure_database_ready()

    try:
        appointments = build_appointment_service(db).get_client_appointments(client_id, start, end)
        return [to_response(appointment) for appointment in appointments]
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc
