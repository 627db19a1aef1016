"""SQLAlchemy implementations of the scheduling repositories."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from healthcrm.models.appointment import Appointment as AppointmentRecord
from healthcrm.models.provider import Provider as ProviderRecord
from healthcrm.models.provider import ProviderBreak, WorkingHours
from healthcrm.scheduling.repository import AppointmentRepository, ProviderRepository
from healthcrm.scheduling.types import Appointment, BreakPeriod, Provider, WorkingDay

logger = logging.getLogger(__name__)

APPOINTMENT_COLUMNS = frozenset(column.name for column in AppointmentRecord.__table__.columns)


def _to_domain(record: AppointmentRecord) -> Appointment:
    return Appointment.model_validate(record)


def _to_record(appointment: Appointment) -> AppointmentRecord:
    return AppointmentRecord(**appointment.model_dump(include=APPOINTMENT_COLUMNS))


class SqlAlchemyAppointmentRepository(AppointmentRepository):
    """Appointment repository backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self._db = db

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        record = self._db.get(AppointmentRecord, appointment_id)
        return _to_domain(record) if record else None

    def find_by_therapist(self, therapist_id: str, start_date: datetime, end_date: datetime) -> list[Appointment]:
        records = self._db.query(AppointmentRecord).filter(
            AppointmentRecord.therapist_id == therapist_id,
            AppointmentRecord.start_time >= start_date,
            AppointmentRecord.start_time <= end_date,
        ).order_by(AppointmentRecord.start_time.asc()).all()
        return [_to_domain(record) for record in records]

    def find_by_client(self, client_id: str, start_date: datetime, end_date: datetime) -> list[Appointment]:
        records = self._db.query(AppointmentRecord).filter(
            AppointmentRecord.client_id == client_id,
            AppointmentRecord.start_time >= start_date,
            AppointmentRecord.start_time <= end_date,
        ).order_by(AppointmentRecord.start_time.asc()).all()
        return [_to_domain(record) for record in records]

    def find_overlapping(self, therapist_id: str, start_time: datetime, end_time: datetime) -> list[Appointment]:
        records = self._db.query(AppointmentRecord).filter(
            AppointmentRecord.therapist_id == therapist_id,
            AppointmentRecord.start_time < end_time,
            AppointmentRecord.end_time > start_time,
        ).order_by(AppointmentRecord.start_time.asc()).all()
        return [_to_domain(record) for record in records]

    def find_recurring(self, recurrence_group_id: str) -> list[Appointment]:
        records = self._db.query(AppointmentRecord).filter(
            AppointmentRecord.recurrence_group_id == recurrence_group_id,
        ).order_by(AppointmentRecord.start_time.asc()).all()
        return [_to_domain(record) for record in records]

    def create(self, appointment: Appointment) -> Appointment:
        record = _to_record(appointment)
        self._db.add(record)
        self._db.commit()
        self._db.refresh(record)
        logger.debug('Stored appointment %s', record.id)
        return _to_domain(record)

    def create_recurring(self, appointments: list[Appointment]) -> list[Appointment]:
        records = [_to_record(appointment) for appointment in appointments]
        self._db.add_all(records)
        self._db.commit()
        for record in records:
            self._db.refresh(record)
        logger.debug('Stored %d recurring appointment(s)', len(records))
        return [_to_domain(record) for record in records]

    def update(self, appointment_id: str, changes: dict[str, Any]) -> Optional[Appointment]:
        record = self._db.get(AppointmentRecord, appointment_id)
        if record is None:
            return None

        for field_name, value in changes.items():
            if field_name in APPOINTMENT_COLUMNS and field_name != 'id':
                setattr(record, field_name, value)

        self._db.commit()
        self._db.refresh(record)
        return _to_domain(record)

    def delete(self, appointment_id: str) -> bool:
        record = self._db.get(AppointmentRecord, appointment_id)
        if record is None:
            return False

        self._db.delete(record)
        self._db.commit()
        return True

    def delete_recurring_sequence(self, recurrence_group_id: str) -> int:
        deleted = self._db.query(AppointmentRecord).filter(
            AppointmentRecord.recurrence_group_id == recurrence_group_id,
        ).delete(synchronize_session=False)
        self._db.commit()
        return deleted

    def check_conflicts(
        self,
        therapist_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> bool:
        query = self._db.query(AppointmentRecord.id).filter(
            AppointmentRecord.therapist_id == therapist_id,
            AppointmentRecord.status != 'cancelled',
            AppointmentRecord.start_time < end_time,
            AppointmentRecord.end_time > start_time,
        )
        if exclude_appointment_id is not None:
            query = query.filter(AppointmentRecord.id != exclude_appointment_id)

        return query.first() is not None


class SqlAlchemyProviderRepository(ProviderRepository):
    """Provider repository backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self._db = db

    def find_by_id(self, provider_id: str) -> Optional[Provider]:
        record = self._db.get(ProviderRecord, provider_id)
        if record is None:
            return None

        working_hours = None
        if record.working_hours:
            working_hours = {
                day.day_of_week: WorkingDay(
                    start=day.start_time,
                    end=day.end_time,
                    breaks=[
                        BreakPeriod(start=item.start_time, end=item.end_time, title=item.title)
                        for item in day.breaks
                    ],
                )
                for day in record.working_hours
            }

        return Provider(
            id=record.id,
            name=record.name,
            specialty=record.specialty,
            working_hours=working_hours,
        )

    def create(self, provider: Provider) -> Provider:
        record = ProviderRecord(id=provider.id, name=provider.name, specialty=provider.specialty)

        for day_name, working_day in (provider.working_hours or {}).items():
            record.working_hours.append(
                WorkingHours(
                    day_of_week=day_name,
                    start_time=working_day.start,
                    end_time=working_day.end,
                    breaks=[
                        ProviderBreak(start_time=item.start, end_time=item.end, title=item.title)
                        for item in working_day.breaks
                    ],
                )
            )

        self._db.add(record)
        self._db.commit()
        logger.debug('Stored provider %s', provider.id)
        return self.find_by_id(provider.id)
