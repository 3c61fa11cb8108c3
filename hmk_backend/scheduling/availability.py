from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.orm import Session

from hmk_backend.core.config import SchedulingPolicy
from hmk_backend.models.appointment import LocationType
from hmk_backend.models.outreach_location import OutreachLocation
from hmk_backend.scheduling.capacity import (
    booked_counts,
    candidate_pools,
    find_day_config,
    pool_capacities,
    remaining_for_pools,
)
from hmk_backend.scheduling.errors import InvalidLocation
from hmk_backend.scheduling.slot_rules import eligible_slots, normalize_location_type


@dataclass(frozen=True)
class TimeSlot:
    time: str
    available: bool
    slot_count: int
    available_for_age_group: str | None = None


@dataclass(frozen=True)
class DayAvailability:
    date: date
    location_type: LocationType
    date_available: bool
    slots: list[TimeSlot] = field(default_factory=list)
    reason: str | None = None

    def find_slot(self, slot_time: str) -> TimeSlot | None:
        for slot in self.slots:
            if slot.time == slot_time:
                return slot
        return None


def resolve_outreach_location(
    db: Session,
    location_type: LocationType,
    outreach_location_id: int | None,
) -> OutreachLocation | None:
    if location_type != LocationType.OUTREACH:
        return None
    if outreach_location_id is None:
        raise InvalidLocation('Outreach location is required for outreach appointments.')

    location = db.get(OutreachLocation, outreach_location_id)
    if location is None:
        raise InvalidLocation('Outreach location not found.')
    return location


def get_availability(
    db: Session,
    slot_date: date,
    location_type: str | LocationType,
    now: datetime,
    policy: SchedulingPolicy,
    outreach_location_id: int | None = None,
    age_group: str | None = None,
    exclude_appointment_id: int | None = None,
) -> DayAvailability:
    """Open slots for one date at one location, in chronological order.

    Resource Center counts are per age group when ``age_group`` is known and
    the sum of both groups otherwise. ``exclude_appointment_id`` leaves one
    appointment out of the counts so it can be moved within its own slot.
    """
    location_type = normalize_location_type(location_type)
    outreach_location = resolve_outreach_location(db, location_type, outreach_location_id)
    if location_type == LocationType.RESOURCE_CENTER:
        outreach_location_id = None

    day_config = find_day_config(db, slot_date, location_type, outreach_location_id)
    eligibility = eligible_slots(slot_date, location_type, now, policy, outreach_location, day_config)

    if not eligibility.date_available:
        return DayAvailability(
            date=slot_date,
            location_type=location_type,
            date_available=False,
            slots=[],
            reason=eligibility.reason,
        )

    capacities = pool_capacities(location_type, policy, outreach_location, day_config)
    counts = booked_counts(db, slot_date, location_type, outreach_location_id, exclude_appointment_id)
    pools = candidate_pools(location_type, age_group, outreach_location_id)
    slot_age_group = age_group if location_type == LocationType.RESOURCE_CENTER and len(pools) == 1 else None

    slots = []
    for slot_time in eligibility.nominal_slots:
        slot_count = remaining_for_pools(capacities, counts, slot_time, pools)
        slots.append(
            TimeSlot(
                time=slot_time,
                available=slot_count > 0,
                slot_count=slot_count,
                available_for_age_group=slot_age_group,
            )
        )

    return DayAvailability(
        date=slot_date,
        location_type=location_type,
        date_available=True,
        slots=slots,
    )
