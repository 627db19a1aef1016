"""Errors raised by the appointment service."""

from healthcrm.scheduling.types import Appointment


class SchedulingError(Exception):
    """Base class for recoverable, per-request scheduling failures."""


class AppointmentValidationError(SchedulingError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__('Invalid appointment: ' + ', '.join(self.errors))


class SchedulingConflictError(SchedulingError):
    def __init__(self, conflicts: list[Appointment], reason: str | None = None):
        self.conflicts = list(conflicts)
        self.reason = reason or 'Appointment overlaps with existing bookings'
        super().__init__(self.reason)


class ResizeConstraintError(SchedulingError):
    def __init__(self, message: str, min_duration: int, max_duration: int):
        self.min_duration = min_duration
        self.max_duration = max_duration
        super().__init__(message)


class AppointmentNotFoundError(SchedulingError):
    def __init__(self, message: str = 'Appointment not found.'):
        super().__init__(message)


class NotRecurringError(SchedulingError):
    def __init__(self, appointment_id: str):
        self.appointment_id = appointment_id
        super().__init__('Not a recurring appointment')
