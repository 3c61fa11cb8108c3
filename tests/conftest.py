import os
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')

from hmk_backend.core.config import SchedulingPolicy  # noqa: E402
from hmk_backend.database import Base  # noqa: E402
from hmk_backend.models.appointment import Appointment  # noqa: E402
from hmk_backend.models.appointment_day_config import AppointmentDayConfig  # noqa: E402
from hmk_backend.models.outreach_location import OutreachLocation  # noqa: E402
from hmk_backend.models.sms_log import SmsLog  # noqa: E402
from hmk_backend.models.user import User  # noqa: E402
from hmk_test_support import NOW, create_user  # noqa: E402

TABLES = [
    User.__table__,
    OutreachLocation.__table__,
    Appointment.__table__,
    AppointmentDayConfig.__table__,
    SmsLog.__table__,
]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def policy() -> SchedulingPolicy:
    return SchedulingPolicy(
        resource_center_weekdays=(1, 3),
        resource_center_slot_times=('09:00', '10:00', '11:00', '12:00', '13:00', '14:00', '15:00', '16:00'),
        resource_center_slots_under_15=6,
        resource_center_slots_over_15=9,
        resource_center_service_fee=500,
        resource_center_label='Resource Center',
        outreach_weekdays=(0, 1, 2, 3, 4),
        outreach_slot_times=('09:00', '10:00', '11:00', '12:00', '13:00', '14:00', '15:00', '16:00'),
        outreach_slot_capacity=20,
        booking_window_days=90,
    )


@pytest.fixture
def appointment_db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def adult_user(appointment_db) -> User:
    return create_user(appointment_db, 'adult@example.com', age=30)


@pytest.fixture
def child_user(appointment_db) -> User:
    return create_user(appointment_db, 'child@example.com', date_of_birth=date(2015, 6, 1))


@pytest.fixture
def admin_user(appointment_db) -> User:
    return create_user(appointment_db, 'admin@example.com', age=40, role='ADMIN')


@pytest.fixture
def outreach_location(appointment_db) -> OutreachLocation:
    location = OutreachLocation(
        name='Nairobi Community Center',
        county='Nairobi',
        sub_county='Westlands',
        is_active=True,
    )
    appointment_db.add(location)
    appointment_db.commit()
    appointment_db.refresh(location)
    return location
