"""Appointment SMS notifications.

Messages are recorded in ``sms_logs`` with the configured provider name; the
default ``simulated`` provider only records and logs them. Sending is best
effort: a failure here is logged and never undoes the appointment change that
triggered it.
"""

import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hmk_backend.core import config
from hmk_backend.models.appointment import Appointment
from hmk_backend.models.sms_log import SmsLog
from hmk_backend.models.user import User

logger = logging.getLogger(__name__)

BOOKED_EVENT = 'BOOKED'


def _display_name(user: User) -> str:
    if user.first_name and user.last_name:
        return f'{user.first_name} {user.last_name}'
    return 'User'


def _format_date(value: date) -> str:
    return f'{value:%A, %B} {value.day}, {value.year}'


def build_appointment_message(appointment: Appointment, user: User, event: str) -> str:
    name = _display_name(user)
    when = _format_date(appointment.appointment_date)
    time_label = appointment.appointment_time
    location = appointment.location or config.RESOURCE_CENTER_LABEL
    signature = config.SMS_SIGNATURE

    if event == BOOKED_EVENT:
        fee = f'Service fee: KES {int(appointment.service_fee)}. ' if appointment.service_fee else ''
        return (
            f'Dear {name}, your appointment has been booked successfully. '
            f'Date: {when}, Time: {time_label}, Location: {location}. {fee}Thank you! - {signature}'
        )

    messages = {
        'CONFIRMED': (
            f'Dear {name}, your appointment has been confirmed. '
            f'Date: {when}, Time: {time_label}, Location: {location}. Thank you! - {signature}'
        ),
        'RESCHEDULED': (
            f'Dear {name}, your appointment has been rescheduled. '
            f'New Date: {when}, Time: {time_label}, Location: {location}. Thank you! - {signature}'
        ),
        'CHECKED_IN': f'Dear {name}, you have been checked in for your appointment on {when} at {time_label}. - {signature}',
        'CHECKED_OUT': f'Dear {name}, you have been checked out. Thank you for visiting {signature}! - {signature}',
        'COMPLETED': f'Dear {name}, your appointment on {when} has been marked as completed. Thank you! - {signature}',
        'CANCELLED': (
            f'Dear {name}, your appointment on {when} has been cancelled. '
            f'Please contact us if you have any questions. - {signature}'
        ),
        'NO_SHOW': (
            f'Dear {name}, we noticed you missed your appointment on {when}. '
            f'Please contact us to book a new appointment. - {signature}'
        ),
    }
    return messages.get(
        event,
        f'Dear {name}, your appointment status has been updated to {event}. '
        f'Date: {when}, Time: {time_label}. - {signature}',
    )


def send_appointment_notification(
    db: Session,
    appointment: Appointment,
    event: str,
    now: datetime | None = None,
) -> SmsLog | None:
    appointment_id = appointment.id
    try:
        user = db.get(User, appointment.user_id)
        if user is None or not user.phone_number:
            logger.warning('No phone number on file for appointment %s; skipping SMS.', appointment_id)
            return None

        sms_log = SmsLog(
            user_id=user.id,
            phone_number=user.phone_number,
            message=build_appointment_message(appointment, user, event),
            purpose='appointment_confirmation' if event == BOOKED_EVENT else 'appointment_status_update',
            status='sent',
            provider=config.SMS_PROVIDER,
            created_at=now or datetime.now(),
        )
        db.add(sms_log)
        db.commit()
        logger.info('[SMS Notification] To %s: %s', sms_log.phone_number, sms_log.message)
        return sms_log
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to send %s notification for appointment %s.', event, appointment_id)
        return None
