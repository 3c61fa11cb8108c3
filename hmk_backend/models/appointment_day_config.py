"""Per-date booking overrides."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, UniqueConstraint

from hmk_backend.database import Base


class AppointmentDayConfig(Base):
    """Closes a date or overrides slot capacities for one location on one date."""
    __tablename__ = "appointment_day_configs"
    __table_args__ = (
        UniqueConstraint('date', 'location_type', 'outreach_location_id', name='uq_day_config_scope'),
    )

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    location_type = Column(String, nullable=False)
    outreach_location_id = Column(Integer, ForeignKey("outreach_locations.id"))
    is_available = Column(Boolean, default=True, nullable=False)
    slots_under_15 = Column(Integer)
    slots_over_15 = Column(Integer)
    slot_capacity = Column(Integer)
    reason = Column(String)
