"""
Matches inbound WhatsApp replies to the question they answer.

Every failed precondition is logged and ends ingestion quietly: the webhook
must acknowledge the provider whatever happens here.
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from models.answer import Answer, RiskLevel
from models.period import DayLog, DayStatus, PeriodStatus
from models.question import QuestionTemplate, TimeSlot
from models.types import utcnow
from repositories.answer import AnswerRepository
from repositories.patient import PatientRepository
from repositories.period import DayLogRepository, PeriodRepository
from repositories.question import QuestionRepository
from schemas.whatsapp import InboundMessage
from services import providers
from services.helpers import compute_day_number

logger = get_logger(__name__)

_SLOT_FLAGS = {
    TimeSlot.MORNING: "morning_completed",
    TimeSlot.AFTERNOON: "afternoon_completed",
    TimeSlot.EVENING: "evening_completed",
}


def refresh_day_log(day_log: DayLog, questions: List[QuestionTemplate], answered_ids: set) -> None:
    """Recompute slot flags and day status from the day's questions and answers."""
    for slot, flag in _SLOT_FLAGS.items():
        slot_required = [q for q in questions if TimeSlot(q.time_slot) == slot and q.is_required]
        slot_answered = [q for q in questions if TimeSlot(q.time_slot) == slot and q.id in answered_ids]
        if slot_required:
            done = all(q.id in answered_ids for q in slot_required)
        else:
            done = bool(slot_answered)
        setattr(day_log, flag, done)

    if DayStatus(day_log.status) == DayStatus.COMPLETED:
        return
    required = [q for q in questions if q.is_required]
    if required and all(q.id in answered_ids for q in required):
        day_log.status = DayStatus.COMPLETED
    elif any(q.id in answered_ids for q in questions):
        day_log.status = DayStatus.PARTIAL


class AnswerService:
    def __init__(self, db: AsyncSession, analysis_queue=None):
        self.db = db
        self.patients = PatientRepository(db)
        self.periods = PeriodRepository(db)
        self.day_logs = DayLogRepository(db)
        self.questions = QuestionRepository(db)
        self.answers = AnswerRepository(db)
        self.analysis_queue = analysis_queue or providers.get_analysis_queue()

    async def ingest(self, message: InboundMessage) -> Optional[Answer]:
        if message.message_id and await self.answers.find_by_message_id(message.message_id) is not None:
            logger.warning("Duplicate inbound message ignored", message_id=message.message_id, sender=message.sender)
            return None

        patient = await self.patients.find_by_phone(message.sender)
        if patient is None:
            logger.warning("Inbound message from unknown phone", sender=message.sender)
            return None

        if patient.current_period_id is None:
            logger.warning("Patient has no current period", patient_id=patient.id)
            return None
        period = await self.periods.get(patient.current_period_id)
        if period is None or period.status != PeriodStatus.ACTIVE:
            logger.warning("Current period is not active", patient_id=patient.id, period_id=patient.current_period_id)
            return None

        day_number = compute_day_number(period.start_date, message.sent_at, patient.timezone)
        if day_number < 1 or day_number > period.duration_days:
            logger.warning("Message outside the period", patient_id=patient.id, period_id=period.id, day_number=day_number)
            return None

        questions = await self.questions.find_for_day(period.id, day_number)
        if not questions:
            logger.warning("No questions for day", period_id=period.id, day_number=day_number)
            return None

        answered = await self.answers.answered_question_ids(period.id, [q.id for q in questions])
        question = next((q for q in questions if q.id not in answered), None)
        if question is None:
            logger.info("All questions of the day already answered", period_id=period.id, day_number=day_number)
            return None

        patient_id, period_id, question_id = patient.id, period.id, question.id
        answer = Answer(
            patient_id=patient.id,
            period_id=period.id,
            question_template_id=question.id,
            day_number=day_number,
            time_slot=question.time_slot,
            text_content=message.content,
            photo_url=message.photo_url,
            voice_url=message.voice_url,
            is_processed=False,
            risk_level=RiskLevel.LOW,
            message_id=message.message_id,
            received_at=utcnow(),
            created_at=message.sent_at,
        )
        try:
            await self.answers.add(answer)
            day_log = await self.day_logs.get_day(period.id, day_number)
            if day_log is not None:
                refresh_day_log(day_log, questions, answered | {question.id})
            await self.db.commit()
        except IntegrityError as e:
            # A concurrent webhook stored this message or answered the same question first
            await self.db.rollback()
            logger.warning(
                "Answer already stored for question",
                period_id=period_id,
                question_id=question_id,
                error=str(e.orig),
            )
            return None
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Answer stored",
            answer_id=answer.id,
            patient_id=patient_id,
            period_id=period_id,
            question_id=question_id,
            day_number=day_number,
        )

        try:
            self.analysis_queue.enqueue(answer.id)
        except Exception as e:
            logger.error("Failed to queue analysis", answer_id=answer.id, error=str(e))
        return answer

    async def get(self, answer_id: int) -> Optional[Answer]:
        return await self.answers.get(answer_id)

    async def list(self, patient_id: Optional[int] = None, period_id: Optional[int] = None, page: int = 1, limit: int = 50) -> List[Answer]:
        page = max(page, 1)
        return await self.answers.list_filtered(patient_id, period_id, skip=(page - 1) * limit, limit=limit)
