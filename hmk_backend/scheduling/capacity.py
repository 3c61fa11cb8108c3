from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from hmk_backend.core.config import SchedulingPolicy
from hmk_backend.models.appointment import Appointment, AppointmentStatus, LocationType
from hmk_backend.models.appointment_day_config import AppointmentDayConfig
from hmk_backend.models.outreach_location import OutreachLocation
from hmk_backend.models.user import User

AGE_GROUP_UNDER_15 = '<15'
AGE_GROUP_15_PLUS = '15+'
AGE_GROUPS = (AGE_GROUP_UNDER_15, AGE_GROUP_15_PLUS)


def get_age_group(age: int | None) -> str | None:
    if age is None:
        return None
    return AGE_GROUP_UNDER_15 if age < 15 else AGE_GROUP_15_PLUS


def calculate_age(date_of_birth: date, today: date) -> int:
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def age_group_for_user(user: User, today: date) -> str | None:
    if user.date_of_birth is not None:
        return get_age_group(calculate_age(user.date_of_birth, today))
    return get_age_group(user.age)


def outreach_pool(outreach_location_id: int) -> str:
    return f'outreach:{outreach_location_id}'


def find_day_config(
    db: Session,
    slot_date: date,
    location_type: LocationType,
    outreach_location_id: int | None = None,
) -> AppointmentDayConfig | None:
    """Per-date override for a location.

    An outreach config without a location covers every outreach location and
    is only used when the location has no config of its own for that date.
    """
    query = db.query(AppointmentDayConfig).filter(
        AppointmentDayConfig.date == slot_date,
        AppointmentDayConfig.location_type == location_type.value,
    )
    if location_type != LocationType.OUTREACH:
        return query.first()

    if outreach_location_id is not None:
        location_config = query.filter(AppointmentDayConfig.outreach_location_id == outreach_location_id).first()
        if location_config is not None:
            return location_config
    return query.filter(AppointmentDayConfig.outreach_location_id.is_(None)).first()


def pool_capacities(
    location_type: LocationType,
    policy: SchedulingPolicy,
    outreach_location: OutreachLocation | None = None,
    day_config: AppointmentDayConfig | None = None,
) -> dict[str, int]:
    """Per-slot capacity of every pool at a location, after date overrides."""
    if location_type == LocationType.RESOURCE_CENTER:
        under_15 = policy.resource_center_slots_under_15
        over_15 = policy.resource_center_slots_over_15
        if day_config is not None:
            if day_config.slots_under_15 is not None:
                under_15 = day_config.slots_under_15
            if day_config.slots_over_15 is not None:
                over_15 = day_config.slots_over_15
        return {AGE_GROUP_UNDER_15: under_15, AGE_GROUP_15_PLUS: over_15}

    capacity = policy.outreach_slot_capacity
    if outreach_location.slot_capacity is not None:
        capacity = outreach_location.slot_capacity
    if day_config is not None and day_config.slot_capacity is not None:
        capacity = day_config.slot_capacity
    return {outreach_pool(outreach_location.id): capacity}


def candidate_pools(
    location_type: LocationType,
    age_group: str | None,
    outreach_location_id: int | None = None,
) -> list[str]:
    """Pools a booking may draw from, in order of preference."""
    if location_type == LocationType.OUTREACH:
        return [outreach_pool(outreach_location_id)]
    if age_group in AGE_GROUPS:
        return [age_group]
    return [AGE_GROUP_15_PLUS, AGE_GROUP_UNDER_15]


def _active_slot_query(
    query,
    slot_date: date,
    location_type: LocationType,
    outreach_location_id: int | None,
    exclude_appointment_id: int | None,
):
    query = query.filter(
        Appointment.appointment_date == slot_date,
        Appointment.location_type == location_type.value,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    )
    if location_type == LocationType.OUTREACH:
        query = query.filter(Appointment.outreach_location_id == outreach_location_id)
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query


def booked_counts(
    db: Session,
    slot_date: date,
    location_type: LocationType,
    outreach_location_id: int | None = None,
    exclude_appointment_id: int | None = None,
) -> dict[tuple[str, str], int]:
    """Active appointment counts for a whole day keyed by ``(time, pool)``."""
    query = _active_slot_query(
        db.query(Appointment.appointment_time, Appointment.capacity_pool, func.count(Appointment.id)),
        slot_date,
        location_type,
        outreach_location_id,
        exclude_appointment_id,
    ).group_by(Appointment.appointment_time, Appointment.capacity_pool)

    return {(slot_time, pool): count for slot_time, pool, count in query.all()}


def remaining_for_pools(
    capacities: dict[str, int],
    counts: dict[tuple[str, str], int],
    slot_time: str,
    pools: list[str],
) -> int:
    return sum(max(0, capacities.get(pool, 0) - counts.get((slot_time, pool), 0)) for pool in pools)


def remaining_capacity(
    db: Session,
    slot_date: date,
    slot_time: str,
    location_type: LocationType,
    policy: SchedulingPolicy,
    outreach_location_id: int | None = None,
    age_group: str | None = None,
    exclude_appointment_id: int | None = None,
) -> int:
    """Seats left in a single slot; zero when the slot is full, never negative."""
    outreach_location = None
    if location_type == LocationType.OUTREACH:
        outreach_location = db.get(OutreachLocation, outreach_location_id)
        if outreach_location is None:
            return 0

    day_config = find_day_config(db, slot_date, location_type, outreach_location_id)
    capacities = pool_capacities(location_type, policy, outreach_location, day_config)
    counts = booked_counts(db, slot_date, location_type, outreach_location_id, exclude_appointment_id)
    pools = candidate_pools(location_type, age_group, outreach_location_id)

    return remaining_for_pools(capacities, counts, slot_time, pools)


def allocate_seat(
    db: Session,
    slot_date: date,
    slot_time: str,
    location_type: LocationType,
    pools: list[str],
    capacities: dict[str, int],
    exclude_appointment_id: int | None = None,
) -> tuple[str, int] | None:
    """Pick the lowest free seat number in the first pool that still has one."""
    for pool in pools:
        taken_query = db.query(Appointment.seat_number).filter(
            Appointment.appointment_date == slot_date,
            Appointment.appointment_time == slot_time,
            Appointment.location_type == location_type.value,
            Appointment.capacity_pool == pool,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
        if exclude_appointment_id is not None:
            taken_query = taken_query.filter(Appointment.id != exclude_appointment_id)

        taken = {seat for (seat,) in taken_query.all()}
        for seat_number in range(1, capacities.get(pool, 0) + 1):
            if seat_number not in taken:
                return pool, seat_number

    return None
