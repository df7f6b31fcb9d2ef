"""
Follow-up period and its per-day log.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    Boolean,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
    CheckConstraint,
    Enum as SQLEnum,
    text,
)
from sqlalchemy.orm import relationship

from core.database import Base
from models.types import UTCDateTime, utcnow


class PeriodStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DayStatus(str, PyEnum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"


MAX_PERIOD_DAYS = 365


class Period(Base):
    """A bounded course of daily check-ins for one patient."""

    __tablename__ = "periods"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    duration_days = Column(Integer, nullable=False)
    end_date = Column(UTCDateTime, nullable=True)
    status = Column(SQLEnum(PeriodStatus, name="period_status"), nullable=False, default=PeriodStatus.ACTIVE)
    settings = Column(JSON, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    patient = relationship("Patient")
    day_logs = relationship(
        "DayLog",
        back_populates="period",
        cascade="all, delete-orphan",
        order_by="DayLog.day_number",
    )

    __table_args__ = (
        CheckConstraint(f"duration_days BETWEEN 1 AND {MAX_PERIOD_DAYS}", name="ck_period_duration"),
        # At most one ACTIVE period per patient
        Index(
            "uq_period_active_patient",
            "patient_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    def __repr__(self):
        return f"<Period(id={self.id}, patient_id={self.patient_id}, status='{self.status}')>"


class DayLog(Base):
    """Completion state of one day of a period."""

    __tablename__ = "day_logs"

    id = Column(Integer, primary_key=True, index=True)
    period_id = Column(Integer, ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)

    morning_completed = Column(Boolean, nullable=False, default=False)
    afternoon_completed = Column(Boolean, nullable=False, default=False)
    evening_completed = Column(Boolean, nullable=False, default=False)
    status = Column(SQLEnum(DayStatus, name="day_status"), nullable=False, default=DayStatus.PENDING)

    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    period = relationship("Period", back_populates="day_logs")

    __table_args__ = (
        UniqueConstraint("period_id", "day_number", name="uq_day_log_period_day"),
    )

    def __repr__(self):
        return f"<DayLog(period_id={self.period_id}, day={self.day_number}, status='{self.status}')>"
