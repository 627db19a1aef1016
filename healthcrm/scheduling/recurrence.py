"""Expansion of recurrence patterns into concrete appointment instances."""

import logging
from datetime import datetime, timedelta
from typing import Any

from dateutil.relativedelta import relativedelta

from healthcrm.core import config
from healthcrm.scheduling.errors import AppointmentValidationError, NotRecurringError
from healthcrm.scheduling.types import Appointment, RecurrencePattern, weekday_index

logger = logging.getLogger(__name__)

SERIES_PROTECTED_FIELDS = frozenset({'id', 'recurrence_group_id'})
SERIES_TIME_FIELDS = frozenset({'start_time', 'end_time'})


def _next_listed_weekday(current: datetime, days_of_week: list[int]) -> datetime:
    next_date = current + timedelta(days=1)
    while weekday_index(next_date) not in days_of_week:
        next_date += timedelta(days=1)
    return next_date


def align_first_occurrence(start: datetime, pattern: RecurrencePattern) -> datetime:
    """Move ``start`` forward onto the first date the pattern allows."""
    if pattern.frequency == 'weekly' and pattern.days_of_week:
        if weekday_index(start) in pattern.days_of_week:
            return start
        return _next_listed_weekday(start, pattern.days_of_week)

    if pattern.frequency == 'monthly' and pattern.day_of_month:
        candidate = start + relativedelta(day=pattern.day_of_month)
        if candidate < start:
            candidate = start + relativedelta(months=1, day=pattern.day_of_month)
        return candidate

    return start


def next_occurrence(current: datetime, anchor: datetime, pattern: RecurrencePattern, step: int) -> datetime:
    """Return the start of occurrence number ``step`` (counted from ``anchor``).

    Daily and weekly patterns advance from ``current``. A weekly pattern with an
    explicit weekday list moves to the next listed weekday and does not apply
    ``interval``. Monthly patterns are computed from ``anchor`` so short months
    clamp the day once instead of dragging every later occurrence back.
    """
    if pattern.frequency == 'daily':
        return current + timedelta(days=pattern.interval)

    if pattern.frequency == 'weekly':
        if pattern.days_of_week:
            return _next_listed_weekday(current, pattern.days_of_week)
        return current + timedelta(weeks=pattern.interval)

    return anchor + relativedelta(months=pattern.interval * step, day=pattern.day_of_month)


def generate_recurring_appointments(
    base: Appointment,
    pattern: RecurrencePattern,
    max_occurrences: int | None = None,
) -> list[Appointment]:
    """Materialize every instance of ``pattern`` starting at ``base``.

    Each instance keeps the base duration, gets the id ``{base.id}-{n}`` and
    is linked to the series through ``recurrence_group_id = base.id``. The
    expansion stops at ``pattern.end_date`` (inclusive), after
    ``pattern.occurrences`` instances, or at the configured safety cap,
    whichever comes first.
    """
    cap = max_occurrences or config.MAX_RECURRENCE_OCCURRENCES
    limit = min(cap, pattern.occurrences) if pattern.occurrences else cap
    duration = base.end_time - base.start_time
    skip_dates = set(pattern.skip_dates)

    anchor = align_first_occurrence(base.start_time, pattern)
    current = anchor
    step = 0
    appointments: list[Appointment] = []

    # Skipped dates do not consume occurrences, so bound the walk separately.
    while len(appointments) < limit and step < limit + len(skip_dates):
        if pattern.end_date is not None and current.date() > pattern.end_date:
            break

        if current.date() not in skip_dates:
            appointments.append(
                base.model_copy(
                    update={
                        'id': f'{base.id}-{len(appointments)}',
                        'start_time': current,
                        'end_time': current + duration,
                        'is_recurring': True,
                        'recurrence_group_id': base.id,
                        'is_exception': False,
                    }
                )
            )

        step += 1
        current = next_occurrence(current, anchor, pattern, step)

    stopped_at_cap = len(appointments) == cap and (pattern.occurrences is None or pattern.occurrences > cap)
    # ``current`` is the next candidate; past ``end_date`` means the pattern ended on its own.
    if stopped_at_cap and (pattern.end_date is None or current.date() <= pattern.end_date):
        logger.warning(
            'Recurrence for appointment %s truncated at %d occurrences', base.id, cap
        )

    return appointments


def apply_series_update(
    appointment: Appointment,
    series: list[Appointment],
    updates: dict[str, Any],
    update_all: bool,
) -> list[Appointment]:
    """Apply ``updates`` to one occurrence or to the whole series.

    A single-occurrence edit marks the instance as an exception to its series.
    Series-wide edits keep each instance's own id and times.
    """
    if not appointment.recurrence_group_id:
        raise NotRecurringError(appointment.id)

    changes = {key: value for key, value in updates.items() if key not in SERIES_PROTECTED_FIELDS}

    if not update_all:
        return [appointment.model_copy(update={**changes, 'is_exception': True})]

    if SERIES_TIME_FIELDS & changes.keys():
        raise AppointmentValidationError(['Series-wide updates cannot change start or end times'])

    return [
        instance.model_copy(update={**changes, 'recurrence_group_id': appointment.recurrence_group_id})
        for instance in series
    ]
