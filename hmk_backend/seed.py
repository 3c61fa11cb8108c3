"""Create the tables and seed the default outreach locations.

Usage:
    python -m hmk_backend.seed
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from hmk_backend.database import Base, SessionLocal, engine
from hmk_backend.models import appointment, appointment_day_config, sms_log, user  # noqa: F401
from hmk_backend.models.outreach_location import OutreachLocation

logger = logging.getLogger(__name__)

OUTREACH_LOCATIONS = [
    {
        'name': 'Nairobi Community Center',
        'county': 'Nairobi',
        'sub_county': 'Westlands',
        'ward': 'Kangemi',
        'description': 'Main outreach center in Nairobi',
        'address': 'Waiyaki Way, Kangemi',
        'contact_name': 'Peter Omondi',
        'contact_phone': '+254700123456',
    },
    {
        'name': 'Kisumu Regional Office',
        'county': 'Kisumu',
        'sub_county': 'Kisumu Central',
        'description': 'Regional office serving Nyanza region',
        'address': 'Oginga Odinga Street',
        'contact_name': 'Grace Atieno',
        'contact_phone': '+254700234567',
    },
    {
        'name': 'Mombasa Service Point',
        'county': 'Mombasa',
        'sub_county': 'Mvita',
        'description': 'Coastal region service point',
        'address': 'Moi Avenue',
        'contact_name': 'Hassan Mohammed',
        'contact_phone': '+254700345678',
    },
]


def seed_outreach_locations(db) -> int:
    existing_names = {name for (name,) in db.query(OutreachLocation.name).all()}
    created = 0
    for location in OUTREACH_LOCATIONS:
        if location['name'] in existing_names:
            continue
        db.add(OutreachLocation(is_active=True, **location))
        created += 1
    db.commit()
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    try:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            created = seed_outreach_locations(db)
        finally:
            db.close()
    except SQLAlchemyError:
        logger.exception('Seeding failed. Check DATABASE_URL and database credentials.')
        sys.exit(1)
    logger.info('Created %s outreach locations.', created)


if __name__ == '__main__':
    main()
