import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _get_list(value: str | None, default: str) -> list[str]:
    raw = default if value is None else value
    return [item.strip() for item in raw.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hmk_backend.db")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), "http://localhost:3000")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Python weekday numbers: Monday is 0.
RESOURCE_CENTER_WEEKDAYS = [int(day) for day in _get_list(os.getenv("RESOURCE_CENTER_WEEKDAYS"), "1,3")]
RESOURCE_CENTER_SLOT_TIMES = _get_list(
    os.getenv("RESOURCE_CENTER_SLOT_TIMES"),
    "09:00,10:00,11:00,12:00,13:00,14:00,15:00,16:00",
)
RESOURCE_CENTER_SLOTS_UNDER_15 = int(os.getenv("RESOURCE_CENTER_SLOTS_UNDER_15", "6"))
RESOURCE_CENTER_SLOTS_OVER_15 = int(os.getenv("RESOURCE_CENTER_SLOTS_OVER_15", "9"))
RESOURCE_CENTER_SERVICE_FEE = int(os.getenv("RESOURCE_CENTER_SERVICE_FEE", "500"))
RESOURCE_CENTER_LABEL = os.getenv("RESOURCE_CENTER_LABEL", "Resource Center")

OUTREACH_WEEKDAYS = [int(day) for day in _get_list(os.getenv("OUTREACH_WEEKDAYS"), "0,1,2,3,4")]
OUTREACH_SLOT_TIMES = _get_list(os.getenv("OUTREACH_SLOT_TIMES"), ",".join(RESOURCE_CENTER_SLOT_TIMES))
OUTREACH_SLOT_CAPACITY = int(os.getenv("OUTREACH_SLOT_CAPACITY", "20"))

BOOKING_WINDOW_DAYS = int(os.getenv("BOOKING_WINDOW_DAYS", "90"))

SMS_PROVIDER = os.getenv("SMS_PROVIDER", "simulated")
SMS_SIGNATURE = os.getenv("SMS_SIGNATURE", "HMK")

ADMIN_ROLES = frozenset({"SUPER_ADMIN", "ADMIN", "MODERATOR", "SUPPORT"})


@dataclass(frozen=True)
class SchedulingPolicy:
    """Calendar and capacity rules used by the scheduling services."""

    resource_center_weekdays: tuple[int, ...]
    resource_center_slot_times: tuple[str, ...]
    resource_center_slots_under_15: int
    resource_center_slots_over_15: int
    resource_center_service_fee: int
    resource_center_label: str
    outreach_weekdays: tuple[int, ...]
    outreach_slot_times: tuple[str, ...]
    outreach_slot_capacity: int
    booking_window_days: int


def load_scheduling_policy() -> SchedulingPolicy:
    return SchedulingPolicy(
        resource_center_weekdays=tuple(RESOURCE_CENTER_WEEKDAYS),
        resource_center_slot_times=tuple(RESOURCE_CENTER_SLOT_TIMES),
        resource_center_slots_under_15=RESOURCE_CENTER_SLOTS_UNDER_15,
        resource_center_slots_over_15=RESOURCE_CENTER_SLOTS_OVER_15,
        resource_center_service_fee=RESOURCE_CENTER_SERVICE_FEE,
        resource_center_label=RESOURCE_CENTER_LABEL,
        outreach_weekdays=tuple(OUTREACH_WEEKDAYS),
        outreach_slot_times=tuple(OUTREACH_SLOT_TIMES),
        outreach_slot_capacity=OUTREACH_SLOT_CAPACITY,
        booking_window_days=BOOKING_WINDOW_DAYS,
    )


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
