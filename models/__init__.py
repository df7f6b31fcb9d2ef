"""
SQLAlchemy ORM models for the follow-up tracker.

Importing this package registers every table on ``Base.metadata``.
"""

from .user import User, UserRole
from .patient import Patient, PatientStatus
from .period import Period, PeriodStatus, DayLog, DayStatus
from .question import QuestionTemplate, TimeSlot, ResponseType, SLOT_RANK
from .answer import Answer, RiskLevel
from .alert import Alert, AlertType, AlertStatus
from .task import Task, TaskType, TaskStatus
from .visit import Visit, VisitStatus

__all__ = [
    "User",
    "UserRole",
    "Patient",
    "PatientStatus",
    "Period",
    "PeriodStatus",
    "DayLog",
    "DayStatus",
    "QuestionTemplate",
    "TimeSlot",
    "ResponseType",
    "SLOT_RANK",
    "Answer",
    "RiskLevel",
    "Alert",
    "AlertType",
    "AlertStatus",
    "Task",
    "TaskType",
    "TaskStatus",
    "Visit",
    "VisitStatus",
]
