"""Appointment booking.

Validation runs in a fixed order and the first failure wins:

1. the location type is recognised;
2. an outreach booking names an active outreach location;
3. the date is not in the past;
4. the purpose is not blank;
5. the requested time is an open slot right now.

The insert is guarded by the seat index on ``appointments``: two requests
racing for the last seat both pass step 5, but only one commit succeeds. The
loser is rolled back and the whole booking is attempted once more, which
normally ends in ``SlotUnavailable``.
"""

import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hmk_backend.core.config import SchedulingPolicy
from hmk_backend.models.appointment import Appointment, AppointmentStatus, LocationType
from hmk_backend.models.user import User
from hmk_backend.scheduling.availability import get_availability, resolve_outreach_location
from hmk_backend.scheduling.capacity import (
    age_group_for_user,
    allocate_seat,
    candidate_pools,
    find_day_config,
    pool_capacities,
)
from hmk_backend.scheduling.errors import (
    ConcurrencyConflict,
    DuplicateBooking,
    EmptyPurpose,
    InvalidDate,
    InvalidLocation,
    SlotUnavailable,
)
from hmk_backend.scheduling.slot_rules import normalize_location_type
from hmk_backend.scheduling.status_lifecycle import INITIAL_STATUS

logger = logging.getLogger(__name__)


def find_user_conflict(
    db: Session,
    user_id: int,
    slot_date: date,
    slot_time: str,
    exclude_appointment_id: int | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.user_id == user_id,
        Appointment.appointment_date == slot_date,
        Appointment.appointment_time == slot_time,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.first()


def commit_or_conflict(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflict() from exc


def retry_once_on_conflict(operation, *args, **kwargs):
    try:
        return operation(*args, **kwargs)
    except ConcurrencyConflict:
        logger.warning('Slot conflict during %s; retrying once.', operation.__name__)
        return operation(*args, **kwargs)


def service_fee_for(location_type: LocationType, policy: SchedulingPolicy) -> int | None:
    if location_type == LocationType.RESOURCE_CENTER:
        return policy.resource_center_service_fee
    return None


def _book_once(
    db: Session,
    user: User,
    appointment_date: date,
    appointment_time: str,
    location_type: str | LocationType,
    purpose: str | None,
    now: datetime,
    policy: SchedulingPolicy,
    outreach_location_id: int | None = None,
    notes: str | None = None,
) -> Appointment:
    location_type = normalize_location_type(location_type)

    outreach_location = resolve_outreach_location(db, location_type, outreach_location_id)
    if location_type == LocationType.OUTREACH:
        if not outreach_location.is_active:
            raise InvalidLocation('Invalid or inactive outreach location.')
        location_label = outreach_location.name
    else:
        outreach_location_id = None
        location_label = policy.resource_center_label

    if appointment_date < now.date():
        raise InvalidDate()

    purpose = (purpose or '').strip()
    if not purpose:
        raise EmptyPurpose()

    age_group = age_group_for_user(user, now.date())
    availability = get_availability(
        db,
        appointment_date,
        location_type,
        now,
        policy,
        outreach_location_id=outreach_location_id,
        age_group=age_group,
    )
    if not availability.date_available:
        raise SlotUnavailable(availability.reason)

    slot = availability.find_slot(appointment_time)
    if slot is None or not slot.available:
        raise SlotUnavailable()

    if find_user_conflict(db, user.id, appointment_date, appointment_time):
        raise DuplicateBooking()

    day_config = find_day_config(db, appointment_date, location_type, outreach_location_id)
    seat = allocate_seat(
        db,
        appointment_date,
        appointment_time,
        location_type,
        candidate_pools(location_type, age_group, outreach_location_id),
        pool_capacities(location_type, policy, outreach_location, day_config),
    )
    if seat is None:
        raise SlotUnavailable()
    capacity_pool, seat_number = seat

    appointment = Appointment(
        user_id=user.id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        location_type=location_type.value,
        location=location_label,
        outreach_location_id=outreach_location_id,
        purpose=purpose,
        notes=(notes or '').strip() or None,
        status=INITIAL_STATUS.value,
        service_fee=service_fee_for(location_type, policy),
        age_group=age_group if location_type == LocationType.RESOURCE_CENTER else None,
        capacity_pool=capacity_pool,
        seat_number=seat_number,
        created_at=now,
        updated_at=now,
    )
    db.add(appointment)
    commit_or_conflict(db)
    db.refresh(appointment)

    logger.info(
        'Booked appointment %s for user %s on %s at %s (%s).',
        appointment.id,
        user.id,
        appointment_date.isoformat(),
        appointment_time,
        location_label,
    )
    return appointment


def book_appointment(
    db: Session,
    user: User,
    appointment_date: date,
    appointment_time: str,
    location_type: str | LocationType,
    purpose: str | None,
    now: datetime,
    policy: SchedulingPolicy,
    outreach_location_id: int | None = None,
    notes: str | None = None,
) -> Appointment:
    return retry_once_on_conflict(
        _book_once,
        db,
        user,
        appointment_date,
        appointment_time,
        location_type,
        purpose,
        now,
        policy,
        outreach_location_id=outreach_location_id,
        notes=notes,
    )
