"""SMS log model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from hmk_backend.database import Base


class SmsLog(Base):
    """A recorded outbound SMS message."""
    __tablename__ = "sms_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    phone_number = Column(String)
    message = Column(Text, nullable=False)
    purpose = Column(String, nullable=False)
    status = Column(String, default="sent")
    provider = Column(String)
    created_at = Column(DateTime, default=datetime.now)
