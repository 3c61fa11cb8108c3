import logging
from datetime import datetime

from sqlalchemy.orm import Session

from hmk_backend.models.appointment import Appointment, AppointmentStatus
from hmk_backend.scheduling.errors import InvalidTransition, NotFound

logger = logging.getLogger(__name__)

INITIAL_STATUS = AppointmentStatus.PENDING

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    # A rescheduled appointment behaves like a confirmed one.
    AppointmentStatus.RESCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CHECKED_IN: frozenset({
        AppointmentStatus.CHECKED_OUT,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CHECKED_OUT: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def parse_status(value: str | AppointmentStatus) -> AppointmentStatus | None:
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus((value or '').strip().upper())
    except ValueError:
        return None


def allowed_transitions(current: str | AppointmentStatus) -> frozenset[AppointmentStatus]:
    status = parse_status(current)
    if status is None:
        return frozenset()
    return ALLOWED_TRANSITIONS[status]


def is_terminal(current: str | AppointmentStatus) -> bool:
    return parse_status(current) in TERMINAL_STATUSES


def can_reschedule(current: str | AppointmentStatus) -> bool:
    return AppointmentStatus.RESCHEDULED in allowed_transitions(current)


def can_transition(current: str | AppointmentStatus, new_status: str | AppointmentStatus) -> bool:
    target = parse_status(new_status)
    return target is not None and target in allowed_transitions(current)


def transition(
    appointment: Appointment,
    new_status: str | AppointmentStatus,
    now: datetime | None = None,
) -> Appointment:
    """Move ``appointment`` to ``new_status`` if the lifecycle allows it.

    Only mutates the instance; committing is left to the caller.
    """
    target = parse_status(new_status)
    if target is None:
        raise InvalidTransition(f'Unknown appointment status: {new_status}.')

    if not can_transition(appointment.status, target):
        raise InvalidTransition(
            f'Cannot change appointment status from {appointment.status} to {target.value}.'
        )

    appointment.status = target.value
    appointment.updated_at = now or datetime.now()
    return appointment


def change_appointment_status(
    db: Session,
    appointment_id: int,
    new_status: str | AppointmentStatus,
    now: datetime | None = None,
) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound()

    previous_status = appointment.status
    transition(appointment, new_status, now)
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s status changed from %s to %s.', appointment.id, previous_status, appointment.status)
    return appointment
