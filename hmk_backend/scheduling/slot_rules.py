"""Calendar rules deciding which dates and slot times can be booked at all.

Nothing in here touches the database: callers load the outreach location and
any per-date override first and pass them in, together with the current time.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from hmk_backend.core.config import SchedulingPolicy
from hmk_backend.models.appointment import LocationType
from hmk_backend.models.appointment_day_config import AppointmentDayConfig
from hmk_backend.models.outreach_location import OutreachLocation
from hmk_backend.scheduling.errors import InvalidLocation

WEEKDAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


@dataclass(frozen=True)
class EligibleSlots:
    date_available: bool
    nominal_slots: tuple[str, ...] = ()
    reason: str | None = None


def normalize_location_type(value: str | LocationType | None) -> LocationType:
    if isinstance(value, LocationType):
        return value
    try:
        return LocationType((value or '').strip().upper())
    except ValueError as exc:
        raise InvalidLocation('Location type must be RESOURCE_CENTER or OUTREACH.') from exc


def parse_slot_time(label: str) -> time:
    """Parse an ``HH:MM`` slot label."""
    if len(label) != 5 or label[2] != ':':
        raise ValueError(f'Invalid slot time: {label!r}')
    return time.fromisoformat(label)


def slot_start(slot_date: date, label: str) -> datetime:
    return datetime.combine(slot_date, parse_slot_time(label))


def format_weekdays(weekdays) -> str:
    names = [WEEKDAY_NAMES[day] for day in sorted(set(weekdays))]
    if not names:
        return 'no days'
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def _closed(reason: str) -> EligibleSlots:
    return EligibleSlots(date_available=False, nominal_slots=(), reason=reason)


def _outreach_schedule(
    location: OutreachLocation,
    policy: SchedulingPolicy,
) -> tuple[tuple[int, ...], tuple[str, ...]]:
    weekdays = policy.outreach_weekdays if location.operating_weekdays is None else location.operating_weekdays
    times = policy.outreach_slot_times if location.slot_times is None else location.slot_times
    return tuple(int(day) for day in weekdays), tuple(times)


def eligible_slots(
    target_date: date,
    location_type: str | LocationType,
    now: datetime,
    policy: SchedulingPolicy,
    outreach_location: OutreachLocation | None = None,
    day_config: AppointmentDayConfig | None = None,
) -> EligibleSlots:
    """Return whether ``target_date`` is bookable and its nominal slot times.

    Today stays bookable only while at least one of its slots starts after
    ``now``; slots that have already started are left out.
    """
    location_type = normalize_location_type(location_type)
    today = now.date()

    if target_date < today:
        return _closed('Appointments cannot be booked for past dates.')

    if target_date > today + timedelta(days=policy.booking_window_days):
        return _closed(f'Appointments can only be booked up to {policy.booking_window_days} days ahead.')

    if location_type == LocationType.RESOURCE_CENTER:
        if target_date.weekday() not in policy.resource_center_weekdays:
            return _closed(
                f'The {policy.resource_center_label} only accepts appointments on '
                f'{format_weekdays(policy.resource_center_weekdays)}.'
            )
        times = policy.resource_center_slot_times
    else:
        if outreach_location is None:
            raise InvalidLocation('Outreach location is required for outreach appointments.')
        if not outreach_location.is_active:
            return _closed(f'{outreach_location.name} is not currently accepting appointments.')

        weekdays, times = _outreach_schedule(outreach_location, policy)
        if target_date.weekday() not in weekdays or not times:
            return _closed(
                f'No outreach sessions are scheduled at {outreach_location.name} '
                f'on {target_date:%A, %d %B %Y}.'
            )

    if day_config is not None and not day_config.is_available:
        return _closed(day_config.reason or f'Appointments are not available on {target_date:%A, %d %B %Y}.')

    ordered = sorted(set(times), key=parse_slot_time)

    if target_date == today:
        ordered = [label for label in ordered if slot_start(target_date, label) > now]
        if not ordered:
            return _closed('All appointment times for today have passed.')

    return EligibleSlots(date_available=True, nominal_slots=tuple(ordered))
