from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import DeliveryFailedError
from core.logging import get_logger
from models.alert import AlertType
from models.answer import RiskLevel
from models.patient import PatientStatus
from models.period import PeriodStatus
from repositories.answer import AnswerRepository
from repositories.patient import PatientRepository
from repositories.period import PeriodRepository
from repositories.question import QuestionRepository, sort_by_slot
from schemas.delivery import DeliveryJob
from services import providers
from services.alert_service import AlertService
from services.helpers import construct_question_message

logger = get_logger(__name__)


class DeliveryService:
    """Sends one queued slot message when its ETA is reached."""

    def __init__(self, db: AsyncSession, transport=None, alert_service: Optional[AlertService] = None):
        self.db = db
        self.patients = PatientRepository(db)
        self.periods = PeriodRepository(db)
        self.questions = QuestionRepository(db)
        self.answers = AnswerRepository(db)
        self.transport = transport or providers.get_transport()
        self._alert_service = alert_service

    @property
    def alert_service(self) -> AlertService:
        if self._alert_service is None:
            self._alert_service = AlertService(self.db)
        return self._alert_service

    async def deliver(self, job: DeliveryJob) -> Optional[str]:
        """
        Send the slot's questions to the patient.

        Returns the provider message id, or None when the job no longer applies
        (period closed, patient paused, everything already answered).
        Raises DeliveryFailedError when the transport refuses the message.
        """
        period = await self.periods.get(job.period_id)
        if period is None or period.status != PeriodStatus.ACTIVE:
            logger.info("Delivery skipped, period not active", key=job.key)
            return None

        patient = await self.patients.get(job.patient_id)
        if patient is None or patient.status != PatientStatus.ACTIVE or not patient.phone:
            logger.info("Delivery skipped, patient not reachable", key=job.key)
            return None

        questions = sort_by_slot(await self.questions.get_by_ids(job.question_ids))
        answered = await self.answers.answered_question_ids(job.period_id, job.question_ids)
        pending = [q for q in questions if q.id not in answered]
        if not pending:
            logger.info("Delivery skipped, slot already answered", key=job.key)
            return None

        first_name = (patient.full_name or "").split(" ")[0]
        text = construct_question_message(first_name, pending)
        sid = await self.transport.send(patient.phone, text)
        if sid is None:
            raise DeliveryFailedError(f"Transport refused message for {job.key}")

        logger.info(
            "Scheduled message sent",
            key=job.key,
            patient_id=patient.id,
            questions=len(pending),
            message_sid=sid,
        )
        return sid

    async def record_failure(self, job: DeliveryJob, error: str) -> None:
        """Called once retries are exhausted."""
        logger.error("Scheduled message abandoned", key=job.key, error=error)
        if not settings.ALERT_ON_DELIVERY_FAILURE:
            return
        await self.alert_service.create_alert(
            patient_id=job.patient_id,
            type=AlertType.DELIVERY_FAILED,
            risk_level=RiskLevel.MEDIUM,
            title="Message not delivered",
            description=f"Questions for day {job.day_number}, {job.time_slot.value} could not be sent: {error}",
            triggered_by="system",
            metadata={
                "period_id": job.period_id,
                "day_number": job.day_number,
                "time_slot": job.time_slot.value,
                "question_ids": job.question_ids,
            },
        )
