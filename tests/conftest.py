import os
from datetime import datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from healthcrm.database import Base  # noqa: E402
from healthcrm.models.appointment import Appointment as AppointmentRecord  # noqa: E402
from healthcrm.models.provider import Provider as ProviderRecord  # noqa: E402
from healthcrm.models.provider import ProviderBreak, WorkingHours  # noqa: E402
from healthcrm.scheduling.types import Appointment, BreakPeriod, Provider, WorkingDay  # noqa: E402

TABLES = [
    ProviderRecord.__table__,
    WorkingHours.__table__,
    ProviderBreak.__table__,
    AppointmentRecord.__table__,
]


def make_appointment(**overrides) -> Appointment:
    values = {
        'id': 'apt-1',
        'therapist_id': 'therapist-1',
        'client_id': 'client-1',
        'client_name': 'Jordan Lee',
        'service_id': 'service-1',
        'service_name': 'Physical therapy',
        'start_time': datetime(2024, 1, 1, 9, 0),
        'end_time': datetime(2024, 1, 1, 10, 0),
    }
    values.update(overrides)
    return Appointment(**values)


def make_provider(**overrides) -> Provider:
    weekday = WorkingDay(
        start=time(9, 0),
        end=time(17, 0),
        breaks=[BreakPeriod(start=time(12, 0), end=time(13, 0), title='Lunch')],
    )
    values = {
        'id': 'therapist-1',
        'name': 'Dr. Rivera',
        'specialty': 'Physiotherapy',
        'working_hours': {
            day_name: weekday
            for day_name in ('monday', 'tuesday', 'wednesday', 'thursday', 'friday')
        },
    }
    values.update(overrides)
    return Provider(**values)


@pytest.fixture
def appointment_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
