"""Appointment model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from healthcrm.database import Base


class Appointment(Base):
    """Represents a booked appointment, or one occurrence of a recurring series."""
    __tablename__ = "appointments"

    id = Column(String, primary_key=True)
    therapist_id = Column(String, ForeignKey("providers.id"), index=True, nullable=False)
    client_id = Column(String, index=True, nullable=False)
    client_name = Column(String, nullable=False, default="")
    service_id = Column(String, nullable=False)
    service_name = Column(String)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="scheduled")
    notes = Column(String)
    color = Column(String)
    cancellation_reason = Column(String)
    is_recurring = Column(Boolean, default=False)
    is_blocked = Column(Boolean, default=False)
    is_draggable = Column(Boolean, default=True)
    is_resizable = Column(Boolean, default=True)
    recurrence_group_id = Column(String, index=True)
    is_exception = Column(Boolean, default=False)
    min_duration = Column(Integer)  # minutes
    max_duration = Column(Integer)  # minutes
