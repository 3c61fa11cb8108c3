from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hmk_backend.auth.dependencies import get_current_user, is_admin
from hmk_backend.core.config import SchedulingPolicy
from hmk_backend.database import get_db
from hmk_backend.models.appointment import Appointment, AppointmentStatus
from hmk_backend.models.user import User
from hmk_backend.notifications import BOOKED_EVENT, send_appointment_notification
from hmk_backend.routes.common import (
    booking_error_response,
    database_unavailable,
    decimal_to_float,
    ensure_database_ready,
    get_clock,
    get_scheduling_policy,
)
from hmk_backend.scheduling.availability import get_availability
from hmk_backend.scheduling.booking import book_appointment
from hmk_backend.scheduling.capacity import age_group_for_user
from hmk_backend.scheduling.errors import BookingError
from hmk_backend.scheduling.reschedule import reschedule_appointment
from hmk_backend.scheduling.slot_rules import parse_slot_time
from hmk_backend.scheduling.status_lifecycle import change_appointment_status, parse_status

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600
MAX_PURPOSE_LENGTH = 500
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def _validate_slot_label(value: str) -> str:
    normalized = value.strip()
    try:
        parse_slot_time(normalized)
    except ValueError as exc:
        raise ValueError('Invalid time format. Use HH:MM.') from exc
    return normalized


class TimeSlotResponse(BaseModel):
    time: str
    available: bool
    slot_count: int
    available_for_age_group: str | None = None

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    date: date
    location_type: str
    date_available: bool
    slots: list[TimeSlotResponse]
    message: str | None = None


class CreateAppointmentRequest(BaseModel):
    appointment_date: date
    appointment_time: str
    location_type: str
    outreach_location_id: int | None = None
    purpose: str = ''
    notes: str | None = None

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _validate_slot_label(value)

    @field_validator('purpose')
    @classmethod
    def validate_purpose(cls, value: str) -> str:
        if len(value.strip()) > MAX_PURPOSE_LENGTH:
            raise ValueError(f'Purpose must be {MAX_PURPOSE_LENGTH} characters or fewer.')
        return value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class RescheduleAppointmentRequest(BaseModel):
    appointment_date: date
    appointment_time: str

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: str) -> str:
        return _validate_slot_label(value)


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    appointment_date: date
    appointment_time: str
    location_type: str
    location: str | None = None
    outreach_location_id: int | None = None
    purpose: str
    notes: str | None = None
    status: str
    service_fee: float | None = None
    age_group: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator('service_fee', mode='before')
    @classmethod
    def validate_service_fee(cls, value):
        return decimal_to_float(value)

    class Config:
        from_attributes = True


class PaginationResponse(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentResponse]
    pagination: PaginationResponse


def _load_owned_appointment(db: Session, appointment_id: int, current_user: User, action: str) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.')

    if appointment.user_id != current_user.id and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Unauthorized to {action} this appointment.',
        )
    return appointment


@router.get('/availability', response_model=AvailabilityResponse)
def get_appointment_availability(
    appointment_date: date = Query(..., alias='date'),
    location_type: str = Query(...),
    outreach_location_id: int | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
):
    ensure_database_ready()

    try:
        now = clock()
        availability = get_availability(
            db,
            appointment_date,
            location_type,
            now,
            policy,
            outreach_location_id=outreach_location_id,
            age_group=age_group_for_user(current_user, now.date()),
        )
    except BookingError as exc:
        raise booking_error_response(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailabilityResponse(
        date=availability.date,
        location_type=availability.location_type.value,
        date_available=availability.date_available,
        slots=[TimeSlotResponse.model_validate(slot) for slot in availability.slots],
        message=availability.reason,
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
):
    ensure_database_ready()

    try:
        now = clock()
        appointment = book_appointment(
            db,
            current_user,
            data.appointment_date,
            data.appointment_time,
            data.location_type,
            data.purpose,
            now,
            policy,
            outreach_location_id=data.outreach_location_id,
            notes=data.notes,
        )
    except BookingError as exc:
        db.rollback()
        raise booking_error_response(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    response = AppointmentResponse.model_validate(appointment)
    send_appointment_notification(db, appointment, BOOKED_EVENT, now)
    return response


@router.put('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_existing_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
):
    ensure_database_ready()

    try:
        _load_owned_appointment(db, appointment_id, current_user, 'reschedule')
        now = clock()
        appointment = reschedule_appointment(
            db,
            appointment_id,
            data.appointment_date,
            data.appointment_time,
            now,
            policy,
        )
    except BookingError as exc:
        db.rollback()
        raise booking_error_response(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    response = AppointmentResponse.model_validate(appointment)
    send_appointment_notification(db, appointment, AppointmentStatus.RESCHEDULED.value, now)
    return response


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    ensure_database_ready()

    try:
        _load_owned_appointment(db, appointment_id, current_user, 'cancel')
        now = clock()
        appointment = change_appointment_status(db, appointment_id, AppointmentStatus.CANCELLED, now)
    except BookingError as exc:
        db.rollback()
        raise booking_error_response(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    response = AppointmentResponse.model_validate(appointment)
    send_appointment_notification(db, appointment, AppointmentStatus.CANCELLED.value, now)
    return response


@router.get('/mine', response_model=AppointmentListResponse)
def list_my_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    query = db.query(Appointment).filter(Appointment.user_id == current_user.id)

    if status_filter:
        parsed_status = parse_status(status_filter)
        if parsed_status is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid appointment status.')
        query = query.filter(Appointment.status == parsed_status.value)
    if start_date is not None:
        query = query.filter(Appointment.appointment_date >= start_date)
    if end_date is not None:
        query = query.filter(Appointment.appointment_date <= end_date)

    try:
        total = query.count()
        appointments = query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.desc(),
        ).offset(offset).limit(limit).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        pagination=PaginationResponse(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + limit < total,
        ),
    )
