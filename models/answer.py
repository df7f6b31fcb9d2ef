"""
Patient answers to question templates.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    ForeignKey,
    JSON,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from core.database import Base
from models.question import TimeSlot
from models.types import UTCDateTime, utcnow


class RiskLevel(str, PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    period_id = Column(Integer, ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True)
    question_template_id = Column(Integer, ForeignKey("question_templates.id"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    time_slot = Column(SQLEnum(TimeSlot, name="time_slot"), nullable=False)

    text_content = Column(Text, nullable=True)
    photo_url = Column(String(1024), nullable=True)
    voice_url = Column(String(1024), nullable=True)
    voice_transcription = Column(Text, nullable=True)

    is_processed = Column(Boolean, nullable=False, default=False)
    risk_level = Column(SQLEnum(RiskLevel, name="risk_level"), nullable=False, default=RiskLevel.LOW)
    ai_analysis = Column(JSON, nullable=True)
    analysis_attempts = Column(Integer, nullable=False, default=0)

    # Provider message id; NULLs do not collide
    message_id = Column(String(128), nullable=True, unique=True, index=True)
    received_at = Column(UTCDateTime, nullable=False, default=utcnow)
    # Original send time of the WhatsApp message
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    question = relationship("QuestionTemplate")

    __table_args__ = (
        UniqueConstraint("period_id", "question_template_id", name="uq_answer_period_question"),
    )

    def __repr__(self):
        return (
            f"<Answer(id={self.id}, patient_id={self.patient_id}, "
            f"question_id={self.question_template_id}, risk='{self.risk_level}')>"
        )
