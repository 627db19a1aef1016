"""Provider model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship
from healthcrm.database import Base


class Provider(Base):
    """Represents a therapist or other bookable care provider."""
    __tablename__ = "providers"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    specialty = Column(String)

    working_hours = relationship(
        "WorkingHours",
        back_populates="provider",
        cascade="all, delete-orphan",
    )


class WorkingHours(Base):
    """Represents the hours a provider works on one weekday."""
    __tablename__ = "working_hours"

    id = Column(Integer, primary_key=True)
    provider_id = Column(String, ForeignKey("providers.id"), index=True, nullable=False)
    day_of_week = Column(String, nullable=False)  # monday..sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    provider = relationship("Provider", back_populates="working_hours")
    breaks = relationship(
        "ProviderBreak",
        back_populates="working_hours",
        cascade="all, delete-orphan",
    )


class ProviderBreak(Base):
    """Represents a break inside a provider's working day."""
    __tablename__ = "provider_breaks"

    id = Column(Integer, primary_key=True)
    working_hours_id = Column(Integer, ForeignKey("working_hours.id"), index=True, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    title = Column(String, nullable=False, default="Break")

    working_hours = relationship("WorkingHours", back_populates="breaks")
