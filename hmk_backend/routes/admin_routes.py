from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hmk_backend.auth.dependencies import require_admin
from hmk_backend.database import get_db
from hmk_backend.models.appointment import Appointment, LocationType
from hmk_backend.models.appointment_day_config import AppointmentDayConfig
from hmk_backend.models.outreach_location import OutreachLocation
from hmk_backend.models.user import User
from hmk_backend.notifications import send_appointment_notification
from hmk_backend.routes.appointment_routes import AppointmentResponse
from hmk_backend.routes.common import (
    booking_error_response,
    database_unavailable,
    ensure_database_ready,
    get_clock,
)
from hmk_backend.scheduling.errors import BookingError
from hmk_backend.scheduling.status_lifecycle import change_appointment_status, parse_status

router = APIRouter(tags=['admin'])


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        parsed = parse_status(value)
        if parsed is None:
            raise ValueError('Invalid appointment status.')
        return parsed.value


class DayConfigRequest(BaseModel):
    date: date
    location_type: str
    outreach_location_id: int | None = None
    is_available: bool = True
    slots_under_15: int | None = None
    slots_over_15: int | None = None
    slot_capacity: int | None = None
    reason: str | None = None

    @field_validator('location_type')
    @classmethod
    def validate_location_type(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {location_type.value for location_type in LocationType}:
            raise ValueError('Location type must be RESOURCE_CENTER or OUTREACH.')
        return normalized

    @field_validator('slots_under_15', 'slots_over_15', 'slot_capacity')
    @classmethod
    def validate_capacity(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError('Capacities cannot be negative.')
        return value

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode='after')
    def validate_scope(self):
        # Outreach configs without a location apply to every outreach location.
        if self.location_type == LocationType.RESOURCE_CENTER.value:
            self.outreach_location_id = None
        return self


class DayConfigResponse(BaseModel):
    id: int
    date: date
    location_type: str
    outreach_location_id: int | None = None
    is_available: bool
    slots_under_15: int | None = None
    slots_over_15: int | None = None
    slot_capacity: int | None = None
    reason: str | None = None

    class Config:
        from_attributes = True


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    query = db.query(Appointment)
    if status_filter:
        parsed_status = parse_status(status_filter)
        if parsed_status is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid appointment status.')
        query = query.filter(Appointment.status == parsed_status.value)

    try:
        appointments = query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]


@router.post('/appointments/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    ensure_database_ready()

    try:
        now = clock()
        appointment = change_appointment_status(db, appointment_id, data.status, now)
    except BookingError as exc:
        db.rollback()
        raise booking_error_response(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    response = AppointmentResponse.model_validate(appointment)
    send_appointment_notification(db, appointment, appointment.status, now)
    return response


@router.get('/day-configs', response_model=list[DayConfigResponse])
def list_day_configs(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    query = db.query(AppointmentDayConfig)
    if start_date is not None:
        query = query.filter(AppointmentDayConfig.date >= start_date)
    if end_date is not None:
        query = query.filter(AppointmentDayConfig.date <= end_date)

    try:
        return query.order_by(AppointmentDayConfig.date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/day-configs', response_model=DayConfigResponse, status_code=status.HTTP_201_CREATED)
def upsert_day_config(
    data: DayConfigRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if data.outreach_location_id is not None and db.get(OutreachLocation, data.outreach_location_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Outreach location not found.')

        day_config = db.query(AppointmentDayConfig).filter(
            AppointmentDayConfig.date == data.date,
            AppointmentDayConfig.location_type == data.location_type,
            AppointmentDayConfig.outreach_location_id == data.outreach_location_id,
        ).first()

        if day_config is None:
            day_config = AppointmentDayConfig(
                date=data.date,
                location_type=data.location_type,
                outreach_location_id=data.outreach_location_id,
            )
            db.add(day_config)

        day_config.is_available = data.is_available
        day_config.slots_under_15 = data.slots_under_15
        day_config.slots_over_15 = data.slots_over_15
        day_config.slot_capacity = data.slot_capacity
        day_config.reason = data.reason

        db.commit()
        db.refresh(day_config)

        return day_config
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/day-configs/{config_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_day_config(
    config_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        day_config = db.get(AppointmentDayConfig, config_id)

        if not day_config:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Day config not found.',
            )

        db.delete(day_config)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
