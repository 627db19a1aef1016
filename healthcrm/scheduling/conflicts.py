"""Overlap and availability checks for a provider's schedule."""

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, Field

from healthcrm.core import config
from healthcrm.scheduling.types import Appointment, BreakPeriod, Provider, weekday_name

logger = logging.getLogger(__name__)

OVERLAP_REASON = 'Appointment overlaps with existing bookings'


class ConflictResult(BaseModel):
    has_conflict: bool
    conflicts: list[Appointment] = Field(default_factory=list)
    reason: str | None = None


def times_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Half-open ranges overlap when each starts before the other ends."""
    return start1 < end2 and start2 < end1


def _format_clock(value: time) -> str:
    return value.strftime('%H:%M')


def find_overlapping_appointments(
    provider_id: str,
    start_time: datetime,
    end_time: datetime,
    existing_appointments: Iterable[Appointment],
    exclude_appointment_id: str | None = None,
) -> list[Appointment]:
    overlapping = []
    for appointment in existing_appointments:
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        if appointment.therapist_id != provider_id:
            continue
        # A cancelled booking no longer holds the provider's time.
        if appointment.is_cancelled:
            continue
        if times_overlap(start_time, end_time, appointment.start_time, appointment.end_time):
            overlapping.append(appointment)
    return overlapping


def check_conflicts(
    provider_id: str,
    start_time: datetime,
    end_time: datetime,
    existing_appointments: Iterable[Appointment],
    exclude_appointment_id: str | None = None,
) -> ConflictResult:
    overlapping = find_overlapping_appointments(
        provider_id,
        start_time,
        end_time,
        existing_appointments,
        exclude_appointment_id,
    )

    if overlapping:
        logger.debug(
            'Provider %s has %d overlapping appointment(s) for %s - %s',
            provider_id,
            len(overlapping),
            start_time,
            end_time,
        )
        return ConflictResult(has_conflict=True, conflicts=overlapping, reason=OVERLAP_REASON)

    return ConflictResult(has_conflict=False)


def check_break_conflicts(start_time: datetime, end_time: datetime, breaks: Iterable[BreakPeriod]) -> ConflictResult:
    for break_period in breaks:
        break_start = datetime.combine(start_time.date(), break_period.start)
        break_end = datetime.combine(start_time.date(), break_period.end)

        if times_overlap(start_time, end_time, break_start, break_end):
            return ConflictResult(
                has_conflict=True,
                reason=(
                    f'Appointment conflicts with {break_period.title} '
                    f'({_format_clock(break_period.start)} - {_format_clock(break_period.end)})'
                ),
            )

    return ConflictResult(has_conflict=False)


def check_working_hours(start_time: datetime, end_time: datetime, provider: Provider) -> ConflictResult:
    if provider.working_hours is None:
        return ConflictResult(has_conflict=False)

    day_name = weekday_name(start_time)
    working_day = provider.working_hours.get(day_name)

    if working_day is None:
        return ConflictResult(has_conflict=True, reason=f'{provider.name} is not available on {day_name}')

    day_start = datetime.combine(start_time.date(), working_day.start)
    day_end = datetime.combine(start_time.date(), working_day.end)

    if start_time < day_start or end_time > day_end:
        return ConflictResult(
            has_conflict=True,
            reason=(
                f'Appointment is outside working hours '
                f'({_format_clock(working_day.start)} - {_format_clock(working_day.end)})'
            ),
        )

    return check_break_conflicts(start_time, end_time, working_day.breaks)


def check_appointment_conflicts(
    appointment: Appointment,
    new_start_time: datetime,
    new_duration: int | None = None,
    existing_appointments: Iterable[Appointment] = (),
    provider: Provider | None = None,
) -> ConflictResult:
    """Check whether ``appointment`` can occupy ``new_start_time`` for ``new_duration`` minutes.

    Working hours are checked first when a provider is supplied, then overlaps
    with the provider's other bookings, then the appointment's own duration
    limits.
    """
    duration = new_duration or appointment.duration_minutes
    new_end_time = new_start_time + timedelta(minutes=duration)

    if provider is not None:
        working_hours_check = check_working_hours(new_start_time, new_end_time, provider)
        if working_hours_check.has_conflict:
            return working_hours_check

    overlap_check = check_conflicts(
        appointment.therapist_id,
        new_start_time,
        new_end_time,
        existing_appointments,
        exclude_appointment_id=appointment.id,
    )
    if overlap_check.has_conflict:
        return overlap_check

    if appointment.min_duration and duration < appointment.min_duration:
        return ConflictResult(
            has_conflict=True,
            reason=f'Appointment duration must be at least {appointment.min_duration} minutes',
        )

    if appointment.max_duration and duration > appointment.max_duration:
        return ConflictResult(
            has_conflict=True,
            reason=f'Appointment duration cannot exceed {appointment.max_duration} minutes',
        )

    return ConflictResult(has_conflict=False)


def is_time_slot_available(
    start_time: datetime,
    duration: int,
    provider_id: str,
    existing_appointments: Iterable[Appointment],
    provider: Provider | None = None,
) -> bool:
    end_time = start_time + timedelta(minutes=duration)

    if provider is not None and check_working_hours(start_time, end_time, provider).has_conflict:
        return False

    return not find_overlapping_appointments(provider_id, start_time, end_time, existing_appointments)


def get_available_time_slots(
    day: date,
    provider: Provider,
    existing_appointments: Iterable[Appointment],
    slot_duration: int | None = None,
    step_minutes: int | None = None,
) -> list[datetime]:
    """List the starts on ``day`` where ``provider`` is free for ``slot_duration`` minutes."""
    if provider.working_hours is None:
        return []

    working_day = provider.working_hours.get(weekday_name(day))
    if working_day is None:
        return []

    slot_duration = slot_duration or config.DEFAULT_SLOT_MINUTES
    step = timedelta(minutes=step_minutes or config.SNAP_INTERVAL_MINUTES)
    existing = list(existing_appointments)

    day_start = datetime.combine(day, working_day.start)
    day_end = datetime.combine(day, working_day.end)
    slot_length = timedelta(minutes=slot_duration)

    available_slots = []
    current = day_start
    while current + slot_length <= day_end:
        if is_time_slot_available(current, slot_duration, provider.id, existing, provider):
            available_slots.append(current)
        current += step

    return available_slots


def suggest_alternative_slots(
    appointment: Appointment,
    requested_time: datetime,
    provider: Provider,
    existing_appointments: Iterable[Appointment],
    max_suggestions: int | None = None,
) -> list[datetime]:
    """Free starts on the requested day, nearest to ``requested_time`` first."""
    existing = [item for item in existing_appointments if item.id != appointment.id]
    available_slots = get_available_time_slots(
        requested_time.date(),
        provider,
        existing,
        slot_duration=appointment.duration_minutes,
    )
    available_slots.sort(key=lambda slot: abs((slot - requested_time).total_seconds()))
    return available_slots[: max_suggestions or config.MAX_SLOT_SUGGESTIONS]
