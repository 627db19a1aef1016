"""Appointment validation and scheduling on top of the repository contracts."""

import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from pydantic import ValidationError

from healthcrm.core import config
from healthcrm.scheduling.conflicts import (
    ConflictResult,
    check_conflicts,
    check_working_hours,
    get_available_time_slots,
    suggest_alternative_slots,
)
from healthcrm.scheduling.errors import (
    AppointmentNotFoundError,
    AppointmentValidationError,
    ResizeConstraintError,
    SchedulingConflictError,
)
from healthcrm.scheduling.recurrence import SERIES_TIME_FIELDS, apply_series_update, generate_recurring_appointments
from healthcrm.scheduling.repository import AppointmentRepository, ProviderRepository
from healthcrm.scheduling.resize import can_resize, get_resize_constraints, validate_resize
from healthcrm.scheduling.types import (
    Appointment,
    AppointmentDraft,
    AppointmentStatus,
    Provider,
    RecurrencePattern,
    ResizeDirection,
)

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = 'The selected time slot conflicts with another appointment'

# UI-only state that is never written to storage.
TRANSIENT_FIELDS = frozenset({'is_dragging', 'is_resizing'})


class AppointmentService:
    def __init__(
        self,
        appointment_repository: AppointmentRepository,
        provider_repository: Optional[ProviderRepository] = None,
    ):
        self.appointment_repository = appointment_repository
        self.provider_repository = provider_repository

    def _get_provider(self, therapist_id: str) -> Optional[Provider]:
        if self.provider_repository is None:
            return None
        return self.provider_repository.find_by_id(therapist_id)

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.appointment_repository.find_by_id(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError()
        return appointment

    def _field_errors(self, appointment: AppointmentDraft) -> list[str]:
        errors: list[str] = []

        if not appointment.therapist_id:
            errors.append('Therapist ID is required')

        if not appointment.client_id:
            errors.append('Client ID is required')

        if not appointment.service_id:
            errors.append('Service ID is required')

        if not appointment.start_time or not appointment.end_time:
            errors.append('Start and end times are required')
        elif appointment.start_time >= appointment.end_time:
            errors.append('End time must be after start time')

        return errors

    def _slot_errors(
        self,
        therapist_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> list[str]:
        errors: list[str] = []

        if self.provider_repository is not None:
            provider = self.provider_repository.find_by_id(therapist_id)
            if provider is None:
                errors.append('Therapist not found')
            elif start_time < end_time:
                hours_check = check_working_hours(start_time, end_time, provider)
                if hours_check.has_conflict:
                    errors.append(hours_check.reason)

        if self.appointment_repository.check_conflicts(therapist_id, start_time, end_time, exclude_appointment_id):
            errors.append(CONFLICT_MESSAGE)

        return errors

    def validate_appointment(self, appointment: AppointmentDraft) -> list[str]:
        """Collect every problem with ``appointment`` instead of stopping at the first."""
        errors = self._field_errors(appointment)

        if appointment.therapist_id and appointment.start_time and appointment.end_time:
            errors.extend(
                self._slot_errors(
                    appointment.therapist_id,
                    appointment.start_time,
                    appointment.end_time,
                    appointment.id,
                )
            )

        return errors

    def _build_appointment(self, draft: AppointmentDraft) -> Appointment:
        data = draft.model_dump(exclude={'id'})
        return Appointment(id=draft.id or str(uuid.uuid4()), **data)

    def schedule_appointment(self, draft: AppointmentDraft) -> Appointment:
        errors = self.validate_appointment(draft)
        if errors:
            raise AppointmentValidationError(errors)

        created = self.appointment_repository.create(self._build_appointment(draft))
        logger.info(
            'Scheduled appointment %s for therapist %s at %s',
            created.id,
            created.therapist_id,
            created.start_time,
        )
        return created

    def schedule_recurring_appointment(self, draft: AppointmentDraft, pattern: RecurrencePattern) -> list[Appointment]:
        """Expand ``pattern`` from ``draft`` and store the series if every occurrence is free."""
        errors = self._field_errors(draft)
        if errors:
            raise AppointmentValidationError(errors)

        instances = generate_recurring_appointments(self._build_appointment(draft), pattern)
        if not instances:
            raise AppointmentValidationError(['Recurrence pattern does not produce any occurrences'])

        accepted: list[Appointment] = []
        for instance in instances:
            label = instance.start_time.strftime('%Y-%m-%d %H:%M')
            for error in self._slot_errors(instance.therapist_id, instance.start_time, instance.end_time):
                errors.append(f'{label}: {error}')
            if check_conflicts(instance.therapist_id, instance.start_time, instance.end_time, accepted).has_conflict:
                errors.append(f'{label}: overlaps an earlier occurrence of the same series')
            accepted.append(instance)

        if errors:
            raise AppointmentValidationError(errors)

        created = self.appointment_repository.create_recurring(instances)
        logger.info(
            'Scheduled recurring series %s with %d occurrences',
            instances[0].recurrence_group_id,
            len(created),
        )
        return created

    def find_conflicts(
        self,
        therapist_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> ConflictResult:
        existing = self.appointment_repository.find_overlapping(therapist_id, start_time, end_time)
        return check_conflicts(therapist_id, start_time, end_time, existing, exclude_appointment_id)

    def suggest_alternatives(self, appointment: Appointment, requested_time: datetime) -> list[datetime]:
        provider = self._get_provider(appointment.therapist_id)
        if provider is None:
            return []

        day_start = datetime.combine(requested_time.date(), time.min)
        existing = self.appointment_repository.find_overlapping(
            appointment.therapist_id,
            day_start,
            day_start + timedelta(days=1),
        )
        return suggest_alternative_slots(appointment, requested_time, provider, existing)

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> Appointment:
        current = self.get_appointment(appointment_id)
        if current.is_cancelled and status != 'cancelled':
            # The slot may have been rebooked while this appointment was cancelled.
            conflict_result = self.find_conflicts(
                current.therapist_id,
                current.start_time,
                current.end_time,
                exclude_appointment_id=current.id,
            )
            if conflict_result.has_conflict:
                raise SchedulingConflictError(conflict_result.conflicts, conflict_result.reason)

        updated = self.appointment_repository.update(
            appointment_id,
            {
                'status': status,
                'cancellation_reason': reason if status == 'cancelled' else None,
            },
        )
        if updated is None:
            raise AppointmentNotFoundError()
        return updated

    def cancel_appointment(self, appointment_id: str, reason: str) -> Appointment:
        cancelled = self.update_appointment_status(appointment_id, 'cancelled', reason)
        logger.info('Cancelled appointment %s', appointment_id)
        return cancelled

    def cancel_recurring_sequence(self, recurrence_group_id: str) -> int:
        deleted = self.appointment_repository.delete_recurring_sequence(recurrence_group_id)
        if deleted == 0:
            raise AppointmentNotFoundError('Recurring series not found.')

        logger.info('Deleted %d appointment(s) from series %s', deleted, recurrence_group_id)
        return deleted

    def get_therapist_schedule(self, therapist_id: str, start_date: datetime, end_date: datetime) -> list[Appointment]:
        return self.appointment_repository.find_by_therapist(therapist_id, start_date, end_date)

    def get_client_appointments(self, client_id: str, start_date: datetime, end_date: datetime) -> list[Appointment]:
        return self.appointment_repository.find_by_client(client_id, start_date, end_date)

    def update_recurring_appointment(
        self,
        appointment_id: str,
        updates: dict[str, Any],
        update_all: bool,
    ) -> list[Appointment]:
        """Edit one occurrence (marking it as an exception) or every occurrence of its series."""
        appointment = self.get_appointment(appointment_id)
        series = []
        if update_all and appointment.recurrence_group_id:
            series = self.appointment_repository.find_recurring(appointment.recurrence_group_id)

        updated_instances = apply_series_update(appointment, series, updates, update_all)

        if not update_all:
            try:
                instance = Appointment.model_validate(updated_instances[0].model_dump())
            except ValidationError as exc:
                raise AppointmentValidationError(['End time must be after start time']) from exc
            updated_instances = [instance]

            if SERIES_TIME_FIELDS & updates.keys():
                provider = self._get_provider(instance.therapist_id)
                if provider is not None:
                    hours_check = check_working_hours(instance.start_time, instance.end_time, provider)
                    if hours_check.has_conflict:
                        raise SchedulingConflictError([], hours_check.reason)

            conflict_result = self.find_conflicts(
                instance.therapist_id,
                instance.start_time,
                instance.end_time,
                exclude_appointment_id=instance.id,
            )
            if conflict_result.has_conflict:
                raise SchedulingConflictError(conflict_result.conflicts, conflict_result.reason)

        changed_fields = (set(updates) | {'is_exception'}) - TRANSIENT_FIELDS - {'id'}
        persisted = []
        for instance in updated_instances:
            stored = self.appointment_repository.update(instance.id, instance.model_dump(include=changed_fields))
            if stored is not None:
                persisted.append(stored)
        return persisted

    def resize_appointment(
        self,
        appointment_id: str,
        direction: ResizeDirection,
        new_duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)

        if not can_resize(appointment, now):
            raise AppointmentValidationError(['This appointment can no longer be resized'])

        window = timedelta(hours=config.SCHEDULE_LOOKAROUND_HOURS)
        existing = self.appointment_repository.find_overlapping(
            appointment.therapist_id,
            appointment.start_time - window,
            appointment.end_time + window,
        )
        provider = self._get_provider(appointment.therapist_id)

        result = validate_resize(appointment, direction, new_duration_minutes, existing, provider)
        if result.failure == 'constraint':
            constraints = get_resize_constraints(appointment)
            raise ResizeConstraintError(result.error, constraints.min_duration, constraints.max_duration)
        if not result.success:
            raise SchedulingConflictError(result.conflicts, result.error)

        resized = result.updated_appointment
        changes = {'start_time': resized.start_time, 'end_time': resized.end_time}
        if appointment.recurrence_group_id:
            changes['is_exception'] = True

        return self.appointment_repository.update(appointment.id, changes)

    def find_available_slots(self, provider_id: str, day: date, duration: Optional[int] = None) -> list[datetime]:
        provider = self._get_provider(provider_id)
        if provider is None:
            raise AppointmentNotFoundError('Provider not found.')

        day_start = datetime.combine(day, time.min)
        existing = self.appointment_repository.find_overlapping(provider_id, day_start, day_start + timedelta(days=1))
        return get_available_time_slots(day, provider, existing, duration)
