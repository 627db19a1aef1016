"""Drag-resize handling for calendar appointments."""

import math
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, Field

from healthcrm.core import config
from healthcrm.scheduling.conflicts import check_appointment_conflicts
from healthcrm.scheduling.types import Appointment, Provider, ResizeDirection

COMMON_DURATIONS = (15, 30, 45, 60, 90, 120, 180, 240)
LOCKED_STATUSES = frozenset({'completed', 'cancelled'})


class ResizeResult(BaseModel):
    success: bool
    failure: Literal['constraint', 'conflict'] | None = None
    updated_appointment: Appointment | None = None
    conflicts: list[Appointment] = Field(default_factory=list)
    error: str | None = None


class ResizeConstraints(BaseModel):
    min_duration: int
    max_duration: int
    snap_interval: int


class ResizeFeedback(BaseModel):
    is_valid: bool
    message: str
    delta_minutes: int


def snap_to_interval(duration: float, interval: int | None = None) -> int:
    interval = interval or config.SNAP_INTERVAL_MINUTES
    # Halves round up so a drag exactly between two grid lines lands on the later one.
    return math.floor(duration / interval + 0.5) * interval


def get_resize_constraints(appointment: Appointment) -> ResizeConstraints:
    return ResizeConstraints(
        min_duration=appointment.min_duration or config.MIN_APPOINTMENT_MINUTES,
        max_duration=appointment.max_duration or config.MAX_APPOINTMENT_MINUTES,
        snap_interval=config.SNAP_INTERVAL_MINUTES,
    )


def calculate_resized_appointment(
    appointment: Appointment,
    direction: ResizeDirection,
    new_duration_minutes: float,
) -> Appointment:
    """Return a copy of ``appointment`` stretched from the dragged edge.

    Dragging the bottom edge keeps the start; dragging the top edge keeps the
    end. The duration is snapped to the grid and never drops below one grid
    step.
    """
    snap_interval = config.SNAP_INTERVAL_MINUTES
    new_duration = timedelta(minutes=max(snap_to_interval(new_duration_minutes, snap_interval), snap_interval))

    if direction == 'bottom':
        return appointment.model_copy(update={'end_time': appointment.start_time + new_duration})

    return appointment.model_copy(update={'start_time': appointment.end_time - new_duration})


def _duration_error(constraints: ResizeConstraints) -> str:
    return f'Duration must be between {constraints.min_duration} and {constraints.max_duration} minutes'


def validate_resize(
    appointment: Appointment,
    direction: ResizeDirection,
    new_duration_minutes: float,
    existing_appointments: Iterable[Appointment] = (),
    provider: Provider | None = None,
) -> ResizeResult:
    """Check a resize gesture and return the resized appointment if it is allowed.

    Durations outside the appointment's limits are rejected rather than
    clamped. A rejected duration is reported on its own; only a resize that
    passes the duration check is tested for overlaps.
    """
    constraints = get_resize_constraints(appointment)

    if not constraints.min_duration <= new_duration_minutes <= constraints.max_duration:
        return ResizeResult(success=False, failure='constraint', error=_duration_error(constraints))

    snapped_duration = snap_to_interval(new_duration_minutes, constraints.snap_interval)
    if not constraints.min_duration <= snapped_duration <= constraints.max_duration:
        return ResizeResult(success=False, failure='constraint', error=_duration_error(constraints))

    resized_appointment = calculate_resized_appointment(appointment, direction, snapped_duration)

    conflict_result = check_appointment_conflicts(
        resized_appointment,
        resized_appointment.start_time,
        snapped_duration,
        existing_appointments,
        provider,
    )

    if conflict_result.has_conflict:
        return ResizeResult(
            success=False,
            failure='conflict',
            conflicts=conflict_result.conflicts,
            error=conflict_result.reason,
        )

    return ResizeResult(success=True, updated_appointment=resized_appointment)


def get_resize_feedback(
    appointment: Appointment,
    direction: ResizeDirection,
    current_duration: int,
    target_duration: int,
) -> ResizeFeedback:
    delta_minutes = target_duration - current_duration
    constraints = get_resize_constraints(appointment)

    if target_duration < constraints.min_duration:
        return ResizeFeedback(
            is_valid=False,
            message=f'Minimum duration: {constraints.min_duration} minutes',
            delta_minutes=delta_minutes,
        )

    if target_duration > constraints.max_duration:
        return ResizeFeedback(
            is_valid=False,
            message=f'Maximum duration: {constraints.max_duration} minutes',
            delta_minutes=delta_minutes,
        )

    action = 'Extending' if delta_minutes > 0 else 'Shortening'
    edge = 'start' if direction == 'top' else 'end'
    return ResizeFeedback(
        is_valid=True,
        message=f'{action} from {edge}: {abs(delta_minutes)} minutes',
        delta_minutes=delta_minutes,
    )


def get_suggested_durations(appointment: Appointment) -> list[int]:
    constraints = get_resize_constraints(appointment)
    suggestions = {
        duration
        for duration in COMMON_DURATIONS
        if constraints.min_duration <= duration <= constraints.max_duration
    }
    suggestions.add(appointment.duration_minutes)
    return sorted(suggestions)


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f'{minutes}m'

    hours, remaining_minutes = divmod(minutes, 60)
    if remaining_minutes == 0:
        return f'{hours}h'
    return f'{hours}h {remaining_minutes}m'


def can_resize(appointment: Appointment, now: datetime | None = None) -> bool:
    if appointment.is_resizable is False:
        return False

    if appointment.status in LOCKED_STATUSES:
        return False

    now = now or datetime.now()
    if appointment.end_time < now:
        return False

    # Only upcoming appointments are locked; one already in progress may still be resized.
    minutes_until_start = (appointment.start_time - now).total_seconds() / 60
    if 0 < minutes_until_start < config.RESIZE_LOCKOUT_MINUTES:
        return False

    return True
