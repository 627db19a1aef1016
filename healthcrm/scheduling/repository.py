"""Persistence contracts consumed by the appointment service."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from healthcrm.scheduling.types import Appointment, Provider


class AppointmentRepository(ABC):
    """Contract for appointment data access."""

    @abstractmethod
    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        """Gets an appointment by ID."""

    @abstractmethod
    def find_by_therapist(self, therapist_id: str, start_date: datetime, end_date: datetime) -> list[Appointment]:
        """Gets a provider's appointments starting inside the range, earliest first."""

    @abstractmethod
    def find_by_client(self, client_id: str, start_date: datetime, end_date: datetime) -> list[Appointment]:
        """Gets a client's appointments starting inside the range, earliest first."""

    @abstractmethod
    def find_overlapping(
        self,
        therapist_id: str,
        start_time: datetime,
        end_time: datetime,
    ) -> list[Appointment]:
        """Gets a provider's appointments whose time range intersects the given one."""

    @abstractmethod
    def find_recurring(self, recurrence_group_id: str) -> list[Appointment]:
        """Gets every instance of a recurring series, earliest first."""

    @abstractmethod
    def create(self, appointment: Appointment) -> Appointment:
        """Creates a new appointment."""

    @abstractmethod
    def create_recurring(self, appointments: list[Appointment]) -> list[Appointment]:
        """Creates all instances of a recurring series together."""

    @abstractmethod
    def update(self, appointment_id: str, changes: dict[str, Any]) -> Optional[Appointment]:
        """Applies field changes; returns None when the appointment does not exist."""

    @abstractmethod
    def delete(self, appointment_id: str) -> bool:
        """Hard-deletes an appointment."""

    @abstractmethod
    def delete_recurring_sequence(self, recurrence_group_id: str) -> int:
        """Deletes every instance of a series and returns how many were removed."""

    @abstractmethod
    def check_conflicts(
        self,
        therapist_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> bool:
        """Whether a non-cancelled appointment of the provider overlaps the range."""


class ProviderRepository(ABC):
    """Contract for provider data access."""

    @abstractmethod
    def find_by_id(self, provider_id: str) -> Optional[Provider]:
        """Gets a provider, with working hours, by ID."""

    @abstractmethod
    def create(self, provider: Provider) -> Provider:
        """Creates a provider together with its working hours."""
