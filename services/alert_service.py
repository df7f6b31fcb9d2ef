"""
Alert lifecycle and the tasks it drives.

Every multi-row change (alert plus tracker task, resolve plus task completion,
escalation cancel plus doctor task) is committed as one transaction.
Notifications and domain events go out only after the commit.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.events import AlertCreated, EventBus
from core.exceptions import AppError
from core.logging import get_logger
from models.alert import ALERT_TRANSITIONS, Alert, AlertStatus, AlertType
from models.answer import RiskLevel
from models.task import Task, TaskStatus, TaskType
from models.types import utcnow
from repositories.alert import AlertRepository
from repositories.patient import PatientRepository
from repositories.task import TaskRepository
from repositories.user import UserRepository
from schemas.alert import AlertStats
from services import providers

logger = get_logger(__name__)

ALERT_TASK_TYPES = {
    AlertType.MISSED_RESPONSE: TaskType.CALL,
    AlertType.NO_PHOTO: TaskType.CHECK_PHOTO,
    AlertType.BAD_CONDITION: TaskType.ESCALATE,
}

ESCALATION_PRIORITY = 10


def task_priority(risk_level: RiskLevel) -> int:
    return 10 if RiskLevel(risk_level) == RiskLevel.CRITICAL else 5


class AlertService:
    def __init__(self, db: AsyncSession, notifier=None, events: Optional[EventBus] = None):
        self.db = db
        self.alerts = AlertRepository(db)
        self.tasks = TaskRepository(db)
        self.patients = PatientRepository(db)
        self.users = UserRepository(db)
        self.notifier = notifier or providers.get_notifier()
        self.events = events or providers.get_event_bus()

    async def create_alert(
        self,
        patient_id: int,
        type: AlertType,
        risk_level: RiskLevel,
        title: str,
        description: Optional[str] = None,
        triggered_by: str = "system",
        answer_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Alert:
        """Create a NEW alert and, when the patient has a tracker, the tracker's task."""
        now = now or utcnow()
        patient = await self.patients.get(patient_id)
        if patient is None:
            raise AppError.not_found("Patient not found", patient_id=patient_id)

        tracker = await self.users.get_active(patient.tracker_id)
        try:
            alert = await self.alerts.add(
                Alert(
                    patient_id=patient_id,
                    answer_id=answer_id,
                    type=type,
                    risk_level=risk_level,
                    title=title,
                    description=description,
                    status=AlertStatus.NEW,
                    triggered_by=triggered_by,
                    meta=metadata,
                    created_at=now,
                    updated_at=now,
                )
            )
            if tracker is not None:
                await self.tasks.add(
                    Task(
                        patient_id=patient_id,
                        assigned_to_id=tracker.id,
                        alert_id=alert.id,
                        type=ALERT_TASK_TYPES.get(AlertType(type), TaskType.CUSTOM),
                        title=f"Handle alert: {title}",
                        description=description,
                        priority=task_priority(risk_level),
                        status=TaskStatus.PENDING,
                        due_date=now + timedelta(hours=settings.TASK_DUE_HOURS),
                    )
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Alert created",
            alert_id=alert.id,
            patient_id=patient_id,
            type=AlertType(type).value,
            risk_level=RiskLevel(risk_level).value,
            tracker_id=tracker.id if tracker else None,
        )

        if tracker is not None:
            await self.notifier.alert_created(alert, patient, tracker)
        self.events.emit(
            AlertCreated(
                alert_id=alert.id,
                patient_id=patient_id,
                type=AlertType(type).value,
                risk_level=RiskLevel(risk_level).value,
            )
        )
        return alert

    async def get(self, alert_id: int) -> Alert:
        alert = await self.alerts.get(alert_id)
        if alert is None:
            raise AppError.not_found("Alert not found", alert_id=alert_id)
        return alert

    async def list(self, filters: Optional[Dict[str, Any]] = None, page: int = 1, limit: int = 20) -> Tuple[List[Alert], int]:
        page = max(page, 1)
        return await self.alerts.list_filtered(filters or {}, skip=(page - 1) * limit, limit=limit)

    async def get_active_for_patient(self, patient_id: int) -> List[Alert]:
        return await self.alerts.active_for_patient(patient_id)

    @staticmethod
    def _check_transition(alert: Alert, target: AlertStatus) -> None:
        current = AlertStatus(alert.status)
        if target not in ALERT_TRANSITIONS[current]:
            raise AppError.conflict(
                f"Alert cannot move from {current.value} to {target.value}",
                code="INVALID_TRANSITION",
                alert_id=alert.id,
                current=current.value,
                target=target.value,
            )

    async def update_status(
        self,
        alert_id: int,
        status: AlertStatus,
        resolved_by: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Alert:
        """Move an alert forward; RESOLVED also completes every task of the alert not yet COMPLETED."""
        status = AlertStatus(status)
        if status == AlertStatus.ESCALATED:
            return await self.escalate(alert_id, now=now)

        now = now or utcnow()
        try:
            alert = await self.alerts.get_for_update(alert_id)
            if alert is None:
                raise AppError.not_found("Alert not found", alert_id=alert_id)
            self._check_transition(alert, status)

            alert.status = status
            alert.updated_at = now
            if metadata:
                alert.meta = {**(alert.meta or {}), **metadata}

            completed = 0
            if status == AlertStatus.RESOLVED:
                alert.resolved_by = resolved_by
                alert.resolved_at = now
                completed = await self.tasks.complete_all_for_alert(alert.id, now)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Alert status updated", alert_id=alert_id, status=status.value, completed_tasks=completed)
        return alert

    async def escalate(self, alert_id: int, escalated_to: Optional[int] = None, now: Optional[datetime] = None) -> Alert:
        """Hand the alert to a doctor: cancel pending tasks, then create the doctor's task."""
        now = now or utcnow()
        try:
            alert = await self.alerts.get_for_update(alert_id)
            if alert is None:
                raise AppError.not_found("Alert not found", alert_id=alert_id)
            self._check_transition(alert, AlertStatus.ESCALATED)

            patient = await self.patients.get(alert.patient_id)
            doctor_id = escalated_to or (patient.doctor_id if patient else None)
            doctor = await self.users.get_active(doctor_id)
            if doctor is None:
                raise AppError.bad_request(
                    "No doctor to escalate to",
                    code="NO_ESCALATION_TARGET",
                    alert_id=alert_id,
                )

            cancelled = await self.tasks.cancel_pending_for_alert(alert.id)
            await self.db.flush()

            alert.status = AlertStatus.ESCALATED
            alert.escalated_to_id = doctor.id
            alert.updated_at = now

            await self.tasks.add(
                Task(
                    patient_id=alert.patient_id,
                    assigned_to_id=doctor.id,
                    alert_id=alert.id,
                    type=TaskType.ESCALATE,
                    title=f"ESCALATED: {alert.title}",
                    description=alert.description,
                    priority=ESCALATION_PRIORITY,
                    status=TaskStatus.PENDING,
                    due_date=now + timedelta(hours=settings.TASK_DUE_HOURS),
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Alert escalated", alert_id=alert_id, doctor_id=doctor.id, cancelled_tasks=cancelled)
        await self.notifier.alert_escalated(alert, patient, doctor)
        return alert

    async def get_stats_by_tracker(self, tracker_id: int) -> AlertStats:
        alerts = await self.alerts.for_tracker(tracker_id)

        by_status = {status.value: 0 for status in AlertStatus}
        open_by_risk = {level.value: 0 for level in RiskLevel}
        reaction_minutes = []
        for alert in alerts:
            status = AlertStatus(alert.status)
            by_status[status.value] += 1
            if status != AlertStatus.RESOLVED:
                open_by_risk[RiskLevel(alert.risk_level).value] += 1
            if status != AlertStatus.NEW and alert.updated_at and alert.created_at:
                reaction_minutes.append((alert.updated_at - alert.created_at).total_seconds() / 60)

        avg = round(sum(reaction_minutes) / len(reaction_minutes), 1) if reaction_minutes else None
        return AlertStats(by_status=by_status, open_by_risk=open_by_risk, avg_reaction_minutes=avg)
