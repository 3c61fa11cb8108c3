import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from hmk_backend.core.config import SchedulingPolicy
from hmk_backend.models.appointment import Appointment, AppointmentStatus
from hmk_backend.models.outreach_location import OutreachLocation
from hmk_backend.scheduling.availability import get_availability
from hmk_backend.scheduling.booking import commit_or_conflict, find_user_conflict, retry_once_on_conflict
from hmk_backend.scheduling.capacity import allocate_seat, candidate_pools, find_day_config, pool_capacities
from hmk_backend.scheduling.errors import DuplicateBooking, InvalidDate, NotFound, NotReschedulable, SlotUnavailable
from hmk_backend.scheduling.slot_rules import normalize_location_type
from hmk_backend.scheduling.status_lifecycle import can_reschedule, transition

logger = logging.getLogger(__name__)


def _reschedule_once(
    db: Session,
    appointment_id: int,
    new_date: date,
    new_time: str,
    now: datetime,
    policy: SchedulingPolicy,
) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound()

    if not can_reschedule(appointment.status):
        raise NotReschedulable(f'Cannot reschedule a {appointment.status.lower().replace("_", " ")} appointment.')

    if new_date < now.date():
        raise InvalidDate()

    location_type = normalize_location_type(appointment.location_type)
    outreach_location_id = appointment.outreach_location_id

    # The appointment's own seat does not count against the new slot.
    availability = get_availability(
        db,
        new_date,
        location_type,
        now,
        policy,
        outreach_location_id=outreach_location_id,
        age_group=appointment.age_group,
        exclude_appointment_id=appointment.id,
    )
    if not availability.date_available:
        raise SlotUnavailable(availability.reason)

    slot = availability.find_slot(new_time)
    if slot is None or not slot.available:
        raise SlotUnavailable()

    if find_user_conflict(db, appointment.user_id, new_date, new_time, exclude_appointment_id=appointment.id):
        raise DuplicateBooking()

    outreach_location = None
    if outreach_location_id is not None:
        outreach_location = db.get(OutreachLocation, outreach_location_id)
    day_config = find_day_config(db, new_date, location_type, outreach_location_id)
    seat = allocate_seat(
        db,
        new_date,
        new_time,
        location_type,
        candidate_pools(location_type, appointment.age_group, outreach_location_id),
        pool_capacities(location_type, policy, outreach_location, day_config),
        exclude_appointment_id=appointment.id,
    )
    if seat is None:
        raise SlotUnavailable()

    previous_date, previous_time = appointment.appointment_date, appointment.appointment_time
    transition(appointment, AppointmentStatus.RESCHEDULED, now)
    appointment.appointment_date = new_date
    appointment.appointment_time = new_time
    appointment.capacity_pool, appointment.seat_number = seat
    commit_or_conflict(db)
    db.refresh(appointment)

    logger.info(
        'Rescheduled appointment %s from %s %s to %s %s.',
        appointment.id,
        previous_date.isoformat(),
        previous_time,
        new_date.isoformat(),
        new_time,
    )
    return appointment


def reschedule_appointment(
    db: Session,
    appointment_id: int,
    new_date: date,
    new_time: str,
    now: datetime,
    policy: SchedulingPolicy,
) -> Appointment:
    """Move an appointment to another date/time at the same location.

    Location, purpose and service fee are kept; the status becomes
    ``RESCHEDULED``. Nothing is written unless every check passes.
    """
    return retry_once_on_conflict(_reschedule_once, db, appointment_id, new_date, new_time, now, policy)
