"""
Patient model.
"""

import re
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Column, Integer, String, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from core.database import Base
from models.types import UTCDateTime, utcnow


class PatientStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


def canonical_phone(raw: Optional[str]) -> Optional[str]:
    """Canonical E.164-style form: '+' followed by digits only.

    WhatsApp senders arrive as 'whatsapp:+7 999 ...' or '79991234567@c.us';
    both map to '+79991234567'.
    """
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw.split("@", 1)[0])
    if not digits:
        return None
    return f"+{digits}"


class Patient(Base):
    """Patient followed through check-in periods."""

    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    # Canonical form, see canonical_phone()
    phone = Column(String(20), unique=True, index=True, nullable=False)
    status = Column(SQLEnum(PatientStatus, name="patient_status"), nullable=False, default=PatientStatus.ACTIVE)
    timezone = Column(String(64), nullable=True)

    tracker_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    tracker = relationship("User", foreign_keys=[tracker_id])
    doctor = relationship("User", foreign_keys=[doctor_id])

    # Pointer to the ACTIVE period; kept without a FK to avoid a cycle with periods.patient_id
    current_period_id = Column(Integer, nullable=True)
    crm_lead_id = Column(String(64), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Patient(id={self.id}, phone='{self.phone}', status='{self.status}')>"
