"""
Work items assigned to staff, usually spawned by an alert.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    JSON,
    CheckConstraint,
    Enum as SQLEnum,
)

from core.database import Base
from models.types import UTCDateTime, utcnow


class TaskType(str, PyEnum):
    CALL = "CALL"
    CHECK_PHOTO = "CHECK_PHOTO"
    ESCALATE = "ESCALATE"
    CUSTOM = "CUSTOM"


class TaskStatus(str, PyEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TASK_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    alert_id = Column(Integer, ForeignKey("alerts.id"), nullable=True, index=True)

    type = Column(SQLEnum(TaskType, name="task_type"), nullable=False, default=TaskType.CUSTOM)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=5)
    status = Column(SQLEnum(TaskStatus, name="task_status"), nullable=False, default=TaskStatus.PENDING, index=True)
    due_date = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("priority BETWEEN 0 AND 10", name="ck_task_priority"),
    )

    def __repr__(self):
        return f"<Task(id={self.id}, assigned_to_id={self.assigned_to_id}, status='{self.status}')>"
