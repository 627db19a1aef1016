from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthcrm.core import config
from healthcrm.repositories.sqlalchemy_repository import SqlAlchemyProviderRepository
from healthcrm.routes.common import (
    build_appointment_service,
    database_unavailable,
    ensure_database_ready,
    get_db,
    to_http_exception,
)
from healthcrm.scheduling.errors import SchedulingError
from healthcrm.scheduling.types import Provider, WorkingDay

router = APIRouter(tags=['providers'])


class CreateProviderRequest(BaseModel):
    id: str
    name: str
    specialty: str | None = None
    working_hours: dict[str, WorkingDay] | None = None

    @field_validator('id', 'name')
    @classmethod
    def require_value(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Provider id and name are required.')
        return normalized


class ProviderResponse(BaseModel):
    id: str
    name: str
    specialty: str | None = None
    working_hours: dict[str, WorkingDay] | None = None


class AvailableSlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_minutes: int


@router.post('', response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
def create_provider(data: CreateProviderRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = Provider(**data.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        repository = SqlAlchemyProviderRepository(db)
        if repository.find_by_id(provider.id) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='A provider with this id already exists.',
            )

        return ProviderResponse(**repository.create(provider).model_dump())
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/{provider_id}', response_model=ProviderResponse)
def get_provider(provider_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = SqlAlchemyProviderRepository(db).find_by_id(provider_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    if provider is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Provider not found.')

    return ProviderResponse(**provider.model_dump())


@router.get('/{provider_id}/slots', response_model=list[AvailableSlotResponse])
def list_available_slots(
    provider_id: str,
    day: date = Query(...),
    duration_minutes: int = Query(default=config.DEFAULT_SLOT_MINUTES, ge=5, le=config.MAX_APPOINTMENT_MINUTES),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = build_appointment_service(db).find_available_slots(provider_id, day, duration_minutes)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc

    now = datetime.now()
    length = timedelta(minutes=duration_minutes)
    return [
        AvailableSlotResponse(start_time=slot, end_time=slot + length, duration_minutes=duration_minutes)
        for slot in slots
        if slot > now
    ]
