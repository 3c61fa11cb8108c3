from datetime import date, datetime

from hmk_backend.models.user import User

# Monday 5 January 2026, 08:00.
NOW = datetime(2026, 1, 5, 8, 0)
MONDAY = date(2026, 1, 5)
TUESDAY = date(2026, 1, 6)
WEDNESDAY = date(2026, 1, 7)
THURSDAY = date(2026, 1, 8)
NEXT_TUESDAY = date(2026, 1, 13)
LAST_FRIDAY = date(2026, 1, 2)


def create_user(db, email: str, age: int | None = None, date_of_birth: date | None = None, role: str = 'USER') -> User:
    user = User(
        email=email,
        role=role,
        first_name='Amina',
        last_name='Wanjiku',
        phone_number='+254700000001',
        age=age,
        date_of_birth=date_of_birth,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
