from datetime import datetime, time

import pytest

from conftest import make_appointment, make_provider
from healthcrm.repositories.sqlalchemy_repository import (
    SqlAlchemyAppointmentRepository,
    SqlAlchemyProviderRepository,
)


@pytest.fixture
def repository(appointment_db):
    return SqlAlchemyAppointmentRepository(appointment_db)


def test_create_and_find_by_id(repository) -> None:
    repository.create(make_appointment(id='apt-1', notes='Bring insurance card'))

    stored = repository.find_by_id('apt-1')

    assert stored.notes == 'Bring insurance card'
    assert stored.start_time == datetime(2024, 1, 1, 9, 0)
    assert stored.is_resizable is True
    assert repository.find_by_id('missing') is None


def test_transient_flags_are_not_persisted(repository) -> None:
    repository.create(make_appointment(is_dragging=True, is_resizing=True))

    stored = repository.find_by_id('apt-1')

    assert stored.is_dragging is False
    assert stored.is_resizing is False


def test_find_overlapping_uses_half_open_ranges(repository) -> None:
    repository.create(make_appointment(id='morning'))
    repository.create(
        make_appointment(
            id='late-morning',
            start_time=datetime(2024, 1, 1, 10, 0),
            end_time=datetime(2024, 1, 1, 11, 0),
        )
    )

    overlapping = repository.find_overlapping('therapist-1', datetime(2024, 1, 1, 9, 30), datetime(2024, 1, 1, 10, 0))

    assert [appointment.id for appointment in overlapping] == ['morning']


def test_check_conflicts_ignores_cancelled_and_excluded(repository) -> None:
    repository.create(make_appointment(id='active'))
    repository.create(make_appointment(id='cancelled', status='cancelled'))
    start, end = datetime(2024, 1, 1, 9, 15), datetime(2024, 1, 1, 9, 45)

    assert repository.check_conflicts('therapist-1', start, end) is True
    assert repository.check_conflicts('therapist-1', start, end, exclude_appointment_id='active') is False
    assert repository.check_conflicts('therapist-2', start, end) is False


def test_find_by_therapist_and_client_filter_on_start(repository) -> None:
    repository.create(
        make_appointment(
            id='second',
            start_time=datetime(2024, 1, 2, 9, 0),
            end_time=datetime(2024, 1, 2, 10, 0),
        )
    )
    repository.create(make_appointment(id='first'))
    repository.create(
        make_appointment(
            id='other-client',
            client_id='client-2',
            start_time=datetime(2024, 1, 1, 13, 0),
            end_time=datetime(2024, 1, 1, 14, 0),
        )
    )

    by_therapist = repository.find_by_therapist('therapist-1', datetime(2024, 1, 1), datetime(2024, 1, 2, 23, 59))
    by_client = repository.find_by_client('client-1', datetime(2024, 1, 1, 12, 0), datetime(2024, 1, 3))

    assert [appointment.id for appointment in by_therapist] == ['first', 'other-client', 'second']
    assert [appointment.id for appointment in by_client] == ['second']


def test_update_and_delete(repository) -> None:
    repository.create(make_appointment())

    updated = repository.update('apt-1', {'status': 'checked-in', 'id': 'ignored', 'is_dragging': True})

    assert updated.id == 'apt-1'
    assert updated.status == 'checked-in'
    assert repository.update('missing', {'status': 'completed'}) is None
    assert repository.delete('apt-1') is True
    assert repository.delete('apt-1') is False


def test_recurring_series_roundtrip(repository) -> None:
    series = [
        make_appointment(
            id=f'series-{index}',
            start_time=datetime(2024, 1, 1 + index, 9, 0),
            end_time=datetime(2024, 1, 1 + index, 10, 0),
            is_recurring=True,
            recurrence_group_id='series',
        )
        for index in range(3)
    ]

    created = repository.create_recurring(series)

    assert [appointment.id for appointment in created] == ['series-0', 'series-1', 'series-2']
    assert [appointment.id for appointment in repository.find_recurring('series')] == ['series-0', 'series-1', 'series-2']
    assert repository.delete_recurring_sequence('series') == 3
    assert repository.find_recurring('series') == []


def test_provider_roundtrip_keeps_hours_and_breaks(appointment_db) -> None:
    providers = SqlAlchemyProviderRepository(appointment_db)

    created = providers.create(make_provider())

    assert created.name == 'Dr. Rivera'
    assert set(created.working_hours) == {'monday', 'tuesday', 'wednesday', 'thursday', 'friday'}
    monday = created.working_hours['monday']
    assert (monday.start, monday.end) == (time(9, 0), time(17, 0))
    assert [(item.title, item.start, item.end) for item in monday.breaks] == [('Lunch', time(12, 0), time(13, 0))]
    assert providers.find_by_id('missing') is None


def test_provider_without_hours(appointment_db) -> None:
    providers = SqlAlchemyProviderRepository(appointment_db)

    created = providers.create(make_provider(id='on-call', working_hours=None))

    assert created.working_hours is None
