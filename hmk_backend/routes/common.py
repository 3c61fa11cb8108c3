from datetime import datetime
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from hmk_backend.core.config import SchedulingPolicy, load_scheduling_policy
from hmk_backend.database import ensure_appointment_schema, ensure_outreach_schema
from hmk_backend.scheduling.errors import BookingError

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_scheduling_policy = load_scheduling_policy()


def get_clock():
    return datetime.now


def get_scheduling_policy() -> SchedulingPolicy:
    return _scheduling_policy


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
        ensure_outreach_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def database_unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)


def booking_error_response(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def decimal_to_float(value):
    if isinstance(value, Decimal):
        return float(value)
    return value
