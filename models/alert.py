"""
Alerts raised on patients, and the transitions they may go through.
"""

from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, JSON, Enum as SQLEnum

from core.database import Base
from models.answer import RiskLevel
from models.types import UTCDateTime, utcnow


class AlertType(str, PyEnum):
    MISSED_RESPONSE = "MISSED_RESPONSE"
    NO_PHOTO = "NO_PHOTO"
    BAD_CONDITION = "BAD_CONDITION"
    DELIVERY_FAILED = "DELIVERY_FAILED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    CUSTOM = "CUSTOM"


class AlertStatus(str, PyEnum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"


ALERT_TRANSITIONS = {
    AlertStatus.NEW: {AlertStatus.IN_PROGRESS, AlertStatus.ESCALATED, AlertStatus.RESOLVED},
    AlertStatus.IN_PROGRESS: {AlertStatus.ESCALATED, AlertStatus.RESOLVED},
    AlertStatus.ESCALATED: {AlertStatus.RESOLVED},
    AlertStatus.RESOLVED: set(),
}


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    answer_id = Column(Integer, ForeignKey("answers.id"), nullable=True)

    type = Column(SQLEnum(AlertType, name="alert_type"), nullable=False)
    risk_level = Column(SQLEnum(RiskLevel, name="risk_level"), nullable=False, default=RiskLevel.MEDIUM)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(AlertStatus, name="alert_status"), nullable=False, default=AlertStatus.NEW, index=True)

    triggered_by = Column(String(64), nullable=True)
    escalated_to_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(UTCDateTime, nullable=True)

    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Alert(id={self.id}, patient_id={self.patient_id}, type='{self.type}', status='{self.status}')>"
