from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from hmk_backend.core import config


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False
_outreach_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('age_group', 'ALTER TABLE appointments ADD COLUMN age_group VARCHAR'),
            ('service_fee', 'ALTER TABLE appointments ADD COLUMN service_fee NUMERIC(10, 2)'),
            ('capacity_pool', "ALTER TABLE appointments ADD COLUMN capacity_pool VARCHAR NOT NULL DEFAULT '15+'"),
            ('seat_number', 'ALTER TABLE appointments ADD COLUMN seat_number INTEGER NOT NULL DEFAULT 1'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_slot '
                    'ON appointments(appointment_date, location_type, appointment_time)'
                )
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_seat '
                    'ON appointments(appointment_date, appointment_time, location_type, capacity_pool, seat_number) '
                    "WHERE status != 'CANCELLED'"
                )
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_user_slot '
                    'ON appointments(user_id, appointment_date, appointment_time) '
                    "WHERE status != 'CANCELLED'"
                )
            )

        _appointment_schema_checked = True


def ensure_outreach_schema() -> None:
    global _outreach_schema_checked

    if _outreach_schema_checked:
        return

    with _schema_lock:
        if _outreach_schema_checked:
            return

        inspector = inspect(engine)

        if 'outreach_locations' not in inspector.get_table_names():
            _outreach_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('outreach_locations')}
        migration_steps = [
            ('operating_weekdays', 'ALTER TABLE outreach_locations ADD COLUMN operating_weekdays JSON'),
            ('slot_times', 'ALTER TABLE outreach_locations ADD COLUMN slot_times JSON'),
            ('slot_capacity', 'ALTER TABLE outreach_locations ADD COLUMN slot_capacity INTEGER'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_outreach_locations_county ON outreach_locations(county, name)')
            )

        _outreach_schema_checked = True
