"""Outreach location model definitions."""

from sqlalchemy import JSON, Boolean, Column, Integer, String, Text

from hmk_backend.database import Base


class OutreachLocation(Base):
    """A satellite site with its own weekly session schedule."""
    __tablename__ = "outreach_locations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    county = Column(String, nullable=False, index=True)
    sub_county = Column(String)
    ward = Column(String)
    address = Column(String)
    description = Column(Text)
    contact_name = Column(String)
    contact_phone = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    operating_weekdays = Column(JSON)  # Monday is 0; null means the configured outreach weekdays
    slot_times = Column(JSON)  # "HH:MM" labels; null means the configured outreach times
    slot_capacity = Column(Integer)
