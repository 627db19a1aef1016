import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from healthcrm.database import SessionLocal, ensure_appointment_schema
from healthcrm.repositories.sqlalchemy_repository import (
    SqlAlchemyAppointmentRepository,
    SqlAlchemyProviderRepository,
)
from healthcrm.scheduling.errors import (
    AppointmentNotFoundError,
    AppointmentValidationError,
    ResizeConstraintError,
    SchedulingConflictError,
    SchedulingError,
)
from healthcrm.scheduling.service import AppointmentService

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Appointment schema check failed.')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable(db: Session | None, exc: SQLAlchemyError) -> HTTPException:
    if db is not None:
        db.rollback()
    logger.exception('Database operation failed.', exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def build_appointment_service(db: Session) -> AppointmentService:
    return AppointmentService(
        SqlAlchemyAppointmentRepository(db),
        SqlAlchemyProviderRepository(db),
    )


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, AppointmentNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    if isinstance(exc, SchedulingConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                'message': exc.reason,
                'conflicts': [conflict.model_dump(mode='json') for conflict in exc.conflicts],
            },
        )

    if isinstance(exc, ResizeConstraintError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                'message': str(exc),
                'min_duration': exc.min_duration,
                'max_duration': exc.max_duration,
            },
        )

    if isinstance(exc, AppointmentValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'message': str(exc), 'errors': exc.errors},
        )

    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
