"""User model definitions."""

from sqlalchemy import Column, Date, Integer, String
from hmk_backend.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String, default="USER")  # USER or one of config.ADMIN_ROLES
    first_name = Column(String)
    last_name = Column(String)
    phone_number = Column(String)
    date_of_birth = Column(Date)
    age = Column(Integer)
