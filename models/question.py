"""
Question templates sent to patients at a given day and slot of a period.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Integer,
    Text,
    Boolean,
    ForeignKey,
    JSON,
    UniqueConstraint,
    Enum as SQLEnum,
)

from core.database import Base
from models.types import UTCDateTime, utcnow


class TimeSlot(str, PyEnum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"


# Chronological order of the slots within a day
SLOT_RANK = {
    TimeSlot.MORNING: 0,
    TimeSlot.AFTERNOON: 1,
    TimeSlot.EVENING: 2,
}


class ResponseType(str, PyEnum):
    TEXT = "TEXT"
    PHOTO = "PHOTO"
    VOICE = "VOICE"
    OPTION = "OPTION"


class QuestionTemplate(Base):
    __tablename__ = "question_templates"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    time_slot = Column(SQLEnum(TimeSlot, name="time_slot"), nullable=False)
    order = Column(Integer, nullable=False, default=0)

    question_text = Column(Text, nullable=False)
    response_type = Column(SQLEnum(ResponseType, name="response_type"), nullable=False, default=ResponseType.TEXT)
    options = Column(JSON, nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)
    ai_prompt = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("period_id", "day_number", "time_slot", "order", name="uq_question_slot_order"),
    )

    @property
    def slot_rank(self) -> int:
        return SLOT_RANK[TimeSlot(self.time_slot)]

    def __repr__(self):
        return (
            f"<QuestionTemplate(id={self.id}, period_id={self.period_id}, "
            f"day={self.day_number}, slot='{self.time_slot}', order={self.order})>"
        )
