from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Text, ForeignKey

from core.database import Base
from models.types import UTCDateTime, utcnow


class VisitStatus(str, PyEnum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class Visit(Base):
    """In-person visit; the patient gets a reminder the day before and on the day."""

    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    scheduled_date = Column(UTCDateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=VisitStatus.scheduled.value)
    notes = Column(Text, nullable=True)

    day_before_reminder_sent_at = Column(UTCDateTime, nullable=True)
    same_day_reminder_sent_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Visit(id={self.id}, patient_id={self.patient_id}, scheduled_date={self.scheduled_date})>"
