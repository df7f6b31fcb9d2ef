"""
Best-effort WhatsApp notifications to staff and patients.

Callers dispatch only after their transaction has committed. A failed send is
logged and never rolls back or fails the state change that triggered it.
"""

from typing import Optional

from core.logging import get_logger
from models.alert import Alert
from models.patient import Patient
from models.task import Task
from models.user import User

logger = get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, transport):
        self.transport = transport

    async def send(self, phone: Optional[str], text: str, **context) -> Optional[str]:
        if not phone:
            logger.warning("Notification skipped, recipient has no phone", **context)
            return None
        try:
            sid = await self.transport.send(phone, text)
        except Exception as e:
            logger.error("Notification failed", error=str(e), **context)
            return None
        if sid is None:
            logger.warning("Notification not accepted by transport", **context)
        return sid

    async def alert_created(self, alert: Alert, patient: Patient, tracker: Optional[User]) -> Optional[str]:
        if tracker is None:
            logger.warning("No tracker assigned to patient, skipping notification", alert_id=alert.id)
            return None
        text = (
            "⚠️ *Alert created*\n"
            f"Patient: {patient.full_name}\n"
            f"Title: {alert.title}\n"
            f"Risk: {alert.risk_level.value}\n"
            f"Type: {alert.type.value}"
        )
        return await self.send(tracker.phone, text, alert_id=alert.id, user_id=tracker.id)

    async def alert_escalated(self, alert: Alert, patient: Patient, doctor: User) -> Optional[str]:
        text = (
            "🚨 *ESCALATION REQUIRED*\n"
            f"Patient: {patient.full_name}\n"
            f"Issue: {alert.title}\n"
            f"Risk: {alert.risk_level.value}\n\n"
            "Please check the dashboard."
        )
        return await self.send(doctor.phone, text, alert_id=alert.id, user_id=doctor.id)

    async def task_assigned(self, task: Task, patient: Optional[Patient], assignee: Optional[User]) -> Optional[str]:
        if assignee is None:
            return None
        patient_name = patient.full_name if patient else f"#{task.patient_id}"
        due = task.due_date.strftime("%Y-%m-%d %H:%M UTC") if task.due_date else "-"
        text = (
            "📋 *New task*\n"
            f"{task.title}\n"
            f"Patient: {patient_name}\n"
            f"Priority: {task.priority}\n"
            f"Due: {due}"
        )
        return await self.send(assignee.phone, text, task_id=task.id, user_id=assignee.id)
