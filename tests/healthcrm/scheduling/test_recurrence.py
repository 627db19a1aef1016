import logging
from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError

from conftest import make_appointment
from healthcrm.scheduling.errors import AppointmentValidationError, NotRecurringError
from healthcrm.scheduling.recurrence import apply_series_update, generate_recurring_appointments
from healthcrm.scheduling.types import RecurrencePattern, weekday_index


def test_daily_pattern_yields_requested_number_of_instances() -> None:
    base = make_appointment(id='base')
    pattern = RecurrencePattern(frequency='daily', interval=1, occurrences=5)

    instances = generate_recurring_appointments(base, pattern)

    assert len(instances) == 5
    assert [instance.id for instance in instances] == ['base-0', 'base-1', 'base-2', 'base-3', 'base-4']
    for previous, current in zip(instances, instances[1:]):
        assert current.start_time - previous.start_time == timedelta(hours=24)
    for instance in instances:
        assert instance.end_time - instance.start_time == timedelta(hours=1)
        assert instance.is_recurring is True
        assert instance.recurrence_group_id == 'base'


def test_daily_pattern_honours_interval() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='daily', interval=3, occurrences=3)

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time for instance in instances] == [
        datetime(2024, 1, 1, 9, 0),
        datetime(2024, 1, 4, 9, 0),
        datetime(2024, 1, 7, 9, 0),
    ]


def test_end_date_is_inclusive() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='daily', end_date=date(2024, 1, 3))

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.date() for instance in instances] == [
        date(2024, 1, 1),
        date(2024, 1, 2),
        date(2024, 1, 3),
    ]


def test_first_reached_end_condition_wins() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='daily', end_date=date(2024, 1, 10), occurrences=2)

    assert len(generate_recurring_appointments(base, pattern)) == 2


def test_weekly_pattern_with_weekdays_only_yields_listed_days() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='weekly', days_of_week=[1, 3, 5], end_date=date(2024, 1, 14))

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.day for instance in instances] == [1, 3, 5, 8, 10, 12]
    assert {weekday_index(instance.start_time) for instance in instances} <= {1, 3, 5}


def test_weekly_pattern_with_weekdays_ignores_interval() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='weekly', interval=2, days_of_week=[1], occurrences=3)

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.date() for instance in instances] == [
        date(2024, 1, 1),
        date(2024, 1, 8),
        date(2024, 1, 15),
    ]


def test_weekly_pattern_with_weekdays_moves_base_onto_first_listed_day() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='weekly', days_of_week=[4], occurrences=2)

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time for instance in instances] == [
        datetime(2024, 1, 4, 9, 0),
        datetime(2024, 1, 11, 9, 0),
    ]


def test_weekly_pattern_without_weekdays_steps_by_interval() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='weekly', interval=2, occurrences=3)

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.date() for instance in instances] == [
        date(2024, 1, 1),
        date(2024, 1, 15),
        date(2024, 1, 29),
    ]


def test_monthly_pattern_with_day_of_month() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='monthly', day_of_month=15, occurrences=3)

    instances = generate_recurring_appointments(base, pattern)

    assert [(instance.start_time, instance.end_time) for instance in instances] == [
        (datetime(2024, 1, 15, 9, 0), datetime(2024, 1, 15, 10, 0)),
        (datetime(2024, 2, 15, 9, 0), datetime(2024, 2, 15, 10, 0)),
        (datetime(2024, 3, 15, 9, 0), datetime(2024, 3, 15, 10, 0)),
    ]


def test_monthly_pattern_clamps_day_of_month_to_short_months() -> None:
    base = make_appointment(start_time=datetime(2024, 1, 31, 9, 0), end_time=datetime(2024, 1, 31, 10, 0))
    pattern = RecurrencePattern(frequency='monthly', day_of_month=31, occurrences=3)

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.date() for instance in instances] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]


def test_monthly_pattern_without_day_keeps_base_day() -> None:
    base = make_appointment(start_time=datetime(2024, 1, 31, 9, 0), end_time=datetime(2024, 1, 31, 10, 0))
    pattern = RecurrencePattern(frequency='monthly', interval=1, occurrences=3)

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.date() for instance in instances] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]


def test_skip_dates_do_not_consume_occurrences() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='daily', occurrences=3, skip_dates=[date(2024, 1, 2)])

    instances = generate_recurring_appointments(base, pattern)

    assert [instance.start_time.date() for instance in instances] == [
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 4),
    ]
    assert [instance.id for instance in instances] == ['apt-1-0', 'apt-1-1', 'apt-1-2']


def test_expansion_is_capped() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='daily', end_date=date(2030, 1, 1))

    assert len(generate_recurring_appointments(base, pattern, max_occurrences=10)) == 10


def test_expansion_is_repeatable() -> None:
    base = make_appointment()
    pattern = RecurrencePattern(frequency='weekly', days_of_week=[2, 4], occurrences=4)

    assert generate_recurring_appointments(base, pattern) == generate_recurring_appointments(base, pattern)


def test_pattern_requires_an_end_condition() -> None:
    with pytest.raises(ValidationError):
        RecurrencePattern(frequency='daily')


@pytest.mark.parametrize(
    'overrides',
    [
        {'interval': 0},
        {'days_of_week': [7]},
        {'day_of_month': 32},
        {'occurrences': 0},
    ],
)
def test_pattern_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        RecurrencePattern(**{'frequency': 'weekly', 'occurrences': 2, **overrides})


def test_series_update_requires_recurring_appointment() -> None:
    with pytest.raises(NotRecurringError):
        apply_series_update(make_appointment(), [], {'notes': 'x'}, update_all=False)


def test_single_occurrence_update_marks_exception() -> None:
    instance = make_appointment(id='base-1', is_recurring=True, recurrence_group_id='base')

    [updated] = apply_series_update(instance, [], {'notes': 'Bring referral', 'id': 'other'}, update_all=False)

    assert updated.id == 'base-1'
    assert updated.notes == 'Bring referral'
    assert updated.is_exception is True


def test_series_update_keeps_instance_ids() -> None:
    series = generate_recurring_appointments(make_appointment(id='base'), RecurrencePattern(frequency='daily', occurrences=3))

    updated = apply_series_update(series[1], series, {'color': 'teal', 'recurrence_group_id': 'other'}, update_all=True)

    assert [instance.id for instance in updated] == ['base-0', 'base-1', 'base-2']
    assert {instance.color for instance in updated} == {'teal'}
    assert {instance.recurrence_group_id for instance in updated} == {'base'}


def test_series_update_rejects_time_changes() -> None:
    series = generate_recurring_appointments(make_appointment(id='base'), RecurrencePattern(frequency='daily', occurrences=2))

    with pytest.raises(AppointmentValidationError):
        apply_series_update(series[0], series, {'start_time': datetime(2024, 2, 1, 9, 0)}, update_all=True)


def test_truncation_is_logged_when_cap_cuts_the_series(caplog) -> None:
    pattern = RecurrencePattern(frequency='daily', end_date=date(2024, 1, 10))

    with caplog.at_level(logging.WARNING, logger='healthcrm.scheduling.recurrence'):
        generate_recurring_appointments(make_appointment(), pattern, max_occurrences=3)

    assert 'truncated at 3 occurrences' in caplog.text


def test_series_ending_exactly_at_cap_is_not_reported_as_truncated(caplog) -> None:
    pattern = RecurrencePattern(frequency='daily', end_date=date(2024, 1, 3))

    with caplog.at_level(logging.WARNING, logger='healthcrm.scheduling.recurrence'):
        instances = generate_recurring_appointments(make_appointment(), pattern, max_occurrences=3)

    assert len(instances) == 3
    assert 'truncated' not in caplog.text
