"""Domain errors raised by the booking, rescheduling and status services.

Each error carries the HTTP status the API layer should answer with and a
message that can be shown to the user as-is.
"""

from fastapi import status


class BookingError(Exception):
    """Base exception for appointment workflow failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'booking_error'
    default_message = 'The appointment request could not be processed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidLocation(BookingError):
    code = 'invalid_location'
    default_message = 'Invalid or inactive appointment location.'


class InvalidDate(BookingError):
    code = 'invalid_date'
    default_message = 'Appointments cannot be booked for past dates.'


class EmptyPurpose(BookingError):
    code = 'empty_purpose'
    default_message = 'Purpose of visit is required.'


class SlotUnavailable(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = 'slot_unavailable'
    default_message = 'This time slot is no longer available. Please select another time.'


class DuplicateBooking(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = 'duplicate_booking'
    default_message = 'You already have an appointment at this time.'


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'
    default_message = 'Appointment not found.'


class NotReschedulable(BookingError):
    code = 'not_reschedulable'
    default_message = 'This appointment can no longer be rescheduled.'


class InvalidTransition(BookingError):
    code = 'invalid_transition'
    default_message = 'This status change is not allowed.'


class ConcurrencyConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = 'concurrency_conflict'
    default_message = 'This time slot was just taken by another booking. Please select another time.'
