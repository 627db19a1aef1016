import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./healthcrm.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"])

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Appointment duration bounds and the grid resize gestures snap to (minutes).
MIN_APPOINTMENT_MINUTES = _get_int(os.getenv("MIN_APPOINTMENT_MINUTES"), 15)
MAX_APPOINTMENT_MINUTES = _get_int(os.getenv("MAX_APPOINTMENT_MINUTES"), 480)
SNAP_INTERVAL_MINUTES = _get_int(os.getenv("SNAP_INTERVAL_MINUTES"), 15)

# Appointments starting sooner than this can no longer be resized.
RESIZE_LOCKOUT_MINUTES = _get_int(os.getenv("RESIZE_LOCKOUT_MINUTES"), 30)

MAX_RECURRENCE_OCCURRENCES = _get_int(os.getenv("MAX_RECURRENCE_OCCURRENCES"), 366)

# Window loaded around an appointment when checking a resize against its neighbours.
SCHEDULE_LOOKAROUND_HOURS = _get_int(os.getenv("SCHEDULE_LOOKAROUND_HOURS"), 24)

DEFAULT_SLOT_MINUTES = _get_int(os.getenv("DEFAULT_SLOT_MINUTES"), 30)
MAX_SLOT_SUGGESTIONS = _get_int(os.getenv("MAX_SLOT_SUGGESTIONS"), 5)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at a server database in production.")
    if MIN_APPOINTMENT_MINUTES > MAX_APPOINTMENT_MINUTES:
        raise RuntimeError("MIN_APPOINTMENT_MINUTES cannot exceed MAX_APPOINTMENT_MINUTES.")
