from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conftest import make_appointment
from healthcrm.scheduling.types import AppointmentDraft, to_naive_utc


def test_offset_aware_times_are_stored_as_naive_utc() -> None:
    offset = timezone(timedelta(hours=-5))

    appointment = make_appointment(
        start_time=datetime(2024, 1, 1, 4, 0, tzinfo=offset),
        end_time=datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
    )

    assert appointment.start_time == datetime(2024, 1, 1, 9, 0)
    assert appointment.end_time == datetime(2024, 1, 1, 10, 0)
    assert appointment.start_time.tzinfo is None


def test_naive_times_are_left_alone() -> None:
    value = datetime(2024, 1, 1, 9, 0)

    assert to_naive_utc(value) is value
    assert to_naive_utc(None) is None


def test_appointment_rejects_inverted_duration_bounds() -> None:
    with pytest.raises(ValidationError):
        make_appointment(min_duration=90, max_duration=60)


def test_draft_rejects_inverted_duration_bounds() -> None:
    with pytest.raises(ValidationError):
        AppointmentDraft(min_duration=90, max_duration=60)


def test_equal_duration_bounds_are_allowed() -> None:
    appointment = make_appointment(min_duration=60, max_duration=60)

    assert (appointment.min_duration, appointment.max_duration) == (60, 60)
