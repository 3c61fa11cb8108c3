"""Appointment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text

from hmk_backend.database import Base


class LocationType(str, enum.Enum):
    RESOURCE_CENTER = 'RESOURCE_CENTER'
    OUTREACH = 'OUTREACH'


class AppointmentStatus(str, enum.Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    RESCHEDULED = 'RESCHEDULED'
    CHECKED_IN = 'CHECKED_IN'
    CHECKED_OUT = 'CHECKED_OUT'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    NO_SHOW = 'NO_SHOW'


ACTIVE_APPOINTMENT_CLAUSE = text("status != 'CANCELLED'")


class Appointment(Base):
    """Represents a booked appointment at the Resource Center or an outreach location."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_slot', 'appointment_date', 'location_type', 'appointment_time'),
        # At most one active appointment per numbered seat of a slot's capacity pool.
        Index(
            'uq_appointments_active_seat',
            'appointment_date',
            'appointment_time',
            'location_type',
            'capacity_pool',
            'seat_number',
            unique=True,
            sqlite_where=ACTIVE_APPOINTMENT_CLAUSE,
            postgresql_where=ACTIVE_APPOINTMENT_CLAUSE,
        ),
        Index(
            'uq_appointments_active_user_slot',
            'user_id',
            'appointment_date',
            'appointment_time',
            unique=True,
            sqlite_where=ACTIVE_APPOINTMENT_CLAUSE,
            postgresql_where=ACTIVE_APPOINTMENT_CLAUSE,
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(5), nullable=False)
    location_type = Column(String, nullable=False)
    location = Column(String)
    outreach_location_id = Column(Integer, ForeignKey("outreach_locations.id"))
    purpose = Column(Text, nullable=False)
    notes = Column(Text)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    service_fee = Column(Numeric(10, 2))
    age_group = Column(String)
    capacity_pool = Column(String, nullable=False)
    seat_number = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now)
