from dataclasses import replace

import pytest

from hmk_test_support import LAST_FRIDAY, NOW, TUESDAY, WEDNESDAY, create_user
from hmk_backend.models.appointment import Appointment
from hmk_backend.scheduling import booking
from hmk_backend.scheduling.booking import book_appointment
from hmk_backend.scheduling.errors import (
    ConcurrencyConflict,
    DuplicateBooking,
    EmptyPurpose,
    InvalidDate,
    InvalidLocation,
    SlotUnavailable,
)


@pytest.fixture
def single_seat_policy(policy):
    return replace(policy, resource_center_slots_under_15=0, resource_center_slots_over_15=1)


def test_resource_center_booking_charges_the_fee_and_fills_a_single_seat(
    appointment_db,
    adult_user,
    single_seat_policy,
) -> None:
    appointment = book_appointment(
        appointment_db,
        adult_user,
        TUESDAY,
        '10:00',
        'RESOURCE_CENTER',
        'Wheelchair fitting',
        NOW,
        single_seat_policy,
    )

    assert appointment.id is not None
    assert appointment.status == 'PENDING'
    assert appointment.service_fee == 500
    assert appointment.location == 'Resource Center'
    assert appointment.outreach_location_id is None
    assert appointment.age_group == '15+'
    assert (appointment.capacity_pool, appointment.seat_number) == ('15+', 1)

    second_user = create_user(appointment_db, 'second@example.com', age=45)
    with pytest.raises(SlotUnavailable) as exception_info:
        book_appointment(
            appointment_db,
            second_user,
            TUESDAY,
            '10:00',
            'RESOURCE_CENTER',
            'Wheelchair fitting',
            NOW,
            single_seat_policy,
        )

    assert exception_info.value.message == 'This time slot is no longer available. Please select another time.'
    assert appointment_db.query(Appointment).count() == 1


@pytest.mark.parametrize('capacity', [1, 2, 4])
def test_bookings_succeed_up_to_capacity_and_then_fail(appointment_db, policy, capacity: int) -> None:
    capped_policy = replace(policy, resource_center_slots_under_15=0, resource_center_slots_over_15=capacity)

    for index in range(capacity):
        user = create_user(appointment_db, f'user{index}@example.com', age=25)
        book_appointment(appointment_db, user, TUESDAY, '14:00', 'RESOURCE_CENTER', 'Assessment', NOW, capped_policy)

    extra_user = create_user(appointment_db, 'extra@example.com', age=25)
    with pytest.raises(SlotUnavailable):
        book_appointment(appointment_db, extra_user, TUESDAY, '14:00', 'RESOURCE_CENTER', 'Assessment', NOW, capped_policy)

    assert appointment_db.query(Appointment).count() == capacity


def test_child_bookings_draw_from_the_under_fifteen_pool(appointment_db, child_user, policy) -> None:
    appointment = book_appointment(
        appointment_db,
        child_user,
        TUESDAY,
        '09:00',
        'RESOURCE_CENTER',
        'Crutches',
        NOW,
        policy,
    )

    assert appointment.age_group == '<15'
    assert appointment.capacity_pool == '<15'


def test_unknown_age_fills_adult_pool_before_children_pool(appointment_db, policy) -> None:
    tight_policy = replace(policy, resource_center_slots_under_15=1, resource_center_slots_over_15=1)
    pools = []
    for index in range(2):
        user = create_user(appointment_db, f'unknown{index}@example.com')
        appointment = book_appointment(appointment_db, user, TUESDAY, '09:00', 'RESOURCE_CENTER', 'Visit', NOW, tight_policy)
        pools.append((appointment.capacity_pool, appointment.age_group))

    assert pools == [('15+', None), ('<15', None)]

    with pytest.raises(SlotUnavailable):
        book_appointment(
            appointment_db,
            create_user(appointment_db, 'unknown2@example.com'),
            TUESDAY,
            '09:00',
            'RESOURCE_CENTER',
            'Visit',
            NOW,
            tight_policy,
        )


def test_outreach_booking_has_no_fee_and_uses_the_location_name(appointment_db, adult_user, policy, outreach_location) -> None:
    appointment = book_appointment(
        appointment_db,
        adult_user,
        WEDNESDAY,
        '11:00',
        'OUTREACH',
        '  Mobility device repair  ',
        NOW,
        policy,
        outreach_location_id=outreach_location.id,
        notes='   ',
    )

    assert appointment.service_fee is None
    assert appointment.location == 'Nairobi Community Center'
    assert appointment.outreach_location_id == outreach_location.id
    assert appointment.capacity_pool == f'outreach:{outreach_location.id}'
    assert appointment.age_group is None
    assert appointment.purpose == 'Mobility device repair'
    assert appointment.notes is None


def test_unknown_location_type_wins_over_other_errors(appointment_db, adult_user, policy) -> None:
    with pytest.raises(InvalidLocation):
        book_appointment(appointment_db, adult_user, LAST_FRIDAY, '10:00', 'HOME', '', NOW, policy)


def test_outreach_booking_requires_a_location(appointment_db, adult_user, policy) -> None:
    with pytest.raises(InvalidLocation):
        book_appointment(appointment_db, adult_user, LAST_FRIDAY, '10:00', 'OUTREACH', '', NOW, policy)


def test_inactive_outreach_location_is_rejected_before_date_checks(
    appointment_db,
    adult_user,
    policy,
    outreach_location,
) -> None:
    outreach_location.is_active = False
    appointment_db.commit()

    with pytest.raises(InvalidLocation) as exception_info:
        book_appointment(
            appointment_db,
            adult_user,
            LAST_FRIDAY,
            '10:00',
            'OUTREACH',
            'Visit',
            NOW,
            policy,
            outreach_location_id=outreach_location.id,
        )

    assert exception_info.value.message == 'Invalid or inactive outreach location.'


def test_past_date_is_reported_before_missing_purpose(appointment_db, adult_user, policy) -> None:
    with pytest.raises(InvalidDate):
        book_appointment(appointment_db, adult_user, LAST_FRIDAY, '10:00', 'RESOURCE_CENTER', '   ', NOW, policy)


def test_blank_purpose_is_reported_before_slot_availability(appointment_db, adult_user, policy) -> None:
    with pytest.raises(EmptyPurpose):
        book_appointment(appointment_db, adult_user, WEDNESDAY, '10:00', 'RESOURCE_CENTER', '  ', NOW, policy)


def test_ineligible_weekday_is_slot_unavailable_with_reason(appointment_db, adult_user, policy) -> None:
    with pytest.raises(SlotUnavailable) as exception_info:
        book_appointment(appointment_db, adult_user, WEDNESDAY, '10:00', 'RESOURCE_CENTER', 'Visit', NOW, policy)

    assert exception_info.value.message == 'The Resource Center only accepts appointments on Tuesday and Thursday.'


def test_time_outside_the_schedule_is_slot_unavailable(appointment_db, adult_user, policy) -> None:
    with pytest.raises(SlotUnavailable):
        book_appointment(appointment_db, adult_user, TUESDAY, '10:30', 'RESOURCE_CENTER', 'Visit', NOW, policy)


def test_same_user_cannot_hold_two_appointments_at_once(appointment_db, adult_user, policy, outreach_location) -> None:
    book_appointment(appointment_db, adult_user, TUESDAY, '10:00', 'RESOURCE_CENTER', 'Visit', NOW, policy)

    with pytest.raises(DuplicateBooking):
        book_appointment(
            appointment_db,
            adult_user,
            TUESDAY,
            '10:00',
            'OUTREACH',
            'Visit',
            NOW,
            policy,
            outreach_location_id=outreach_location.id,
        )


def test_lost_race_is_retried_once(appointment_db, adult_user, policy, monkeypatch: pytest.MonkeyPatch) -> None:
    rival = create_user(appointment_db, 'rival@example.com', age=50)
    book_appointment(appointment_db, rival, TUESDAY, '10:00', 'RESOURCE_CENTER', 'Visit', NOW, policy)

    real_allocate_seat = booking.allocate_seat
    calls = []

    def stale_then_real(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return '15+', 1
        return real_allocate_seat(*args, **kwargs)

    monkeypatch.setattr(booking, 'allocate_seat', stale_then_real)

    appointment = book_appointment(appointment_db, adult_user, TUESDAY, '10:00', 'RESOURCE_CENTER', 'Visit', NOW, policy)

    assert len(calls) == 2
    assert (appointment.capacity_pool, appointment.seat_number) == ('15+', 2)
    assert appointment_db.query(Appointment).count() == 2


def test_repeated_race_loss_surfaces_a_conflict(appointment_db, adult_user, policy, monkeypatch: pytest.MonkeyPatch) -> None:
    rival = create_user(appointment_db, 'rival@example.com', age=50)
    book_appointment(appointment_db, rival, TUESDAY, '10:00', 'RESOURCE_CENTER', 'Visit', NOW, policy)
    monkeypatch.setattr(booking, 'allocate_seat', lambda *args, **kwargs: ('15+', 1))

    with pytest.raises(ConcurrencyConflict):
        book_appointment(appointment_db, adult_user, TUESDAY, '10:00', 'RESOURCE_CENTER', 'Visit', NOW, policy)

    assert appointment_db.query(Appointment).count() == 1
