from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import get_logger
from models.alert import AlertType
from models.answer import Answer, RiskLevel
from models.question import ResponseType
from repositories.answer import AnswerRepository
from repositories.patient import PatientRepository
from repositories.period import PeriodRepository
from schemas.answer import AnalysisContext, AnalysisResult, PreviousAnswer
from services import providers
from services.alert_service import AlertService

logger = get_logger(__name__)

CONTEXT_HISTORY_SIZE = 5


class AnswerProcessor:
    """Runs AI analysis on a stored answer and raises alerts from the result."""

    def __init__(
        self,
        db: AsyncSession,
        analyzer=None,
        transcriber=None,
        alert_service: Optional[AlertService] = None,
    ):
        self.db = db
        self.answers = AnswerRepository(db)
        self.patients = PatientRepository(db)
        self.periods = PeriodRepository(db)
        self.analyzer = analyzer or providers.get_analyzer()
        self.transcriber = transcriber or providers.get_transcriber()
        self.alert_service = alert_service or AlertService(db)

    async def _context(self, answer: Answer) -> AnalysisContext:
        patient = await self.patients.get(answer.patient_id)
        period = await self.periods.get(answer.period_id)
        history = await self.answers.recent_for_patient(answer.patient_id, CONTEXT_HISTORY_SIZE, exclude_id=answer.id)
        return AnalysisContext(
            patient_id=answer.patient_id,
            patient_name=patient.full_name if patient else "",
            period_name=period.name if period else None,
            day_number=answer.day_number,
            question=answer.question.question_text if answer.question else "",
            ai_prompt=answer.question.ai_prompt if answer.question else None,
            previous_answers=[
                PreviousAnswer(
                    question=prev.question.question_text if prev.question else "Unknown",
                    content=prev.text_content or prev.voice_transcription,
                    risk_level=prev.risk_level,
                )
                for prev in history
            ],
        )

    async def process_answer(self, answer_id: int) -> Optional[Answer]:
        answer = await self.answers.get_with_question(answer_id)
        if answer is None:
            logger.error("Answer not found", answer_id=answer_id)
            return None
        if answer.is_processed:
            logger.info("Answer already processed", answer_id=answer_id)
            return answer

        answer.analysis_attempts = (answer.analysis_attempts or 0) + 1
        await self.db.commit()

        question = answer.question
        if question is not None and question.response_type == ResponseType.PHOTO and not answer.photo_url:
            return await self._missing_photo(answer)

        if answer.voice_url and not answer.voice_transcription and self.transcriber.enabled:
            answer.voice_transcription = await self.transcriber.transcribe(answer.voice_url)
            await self.db.commit()
            logger.info("Voice answer transcribed", answer_id=answer_id)

        text = answer.text_content or answer.voice_transcription or ""
        context = await self._context(answer)
        try:
            result: AnalysisResult = await self.analyzer.analyze(text, answer.photo_url, context)
        except Exception as e:
            logger.error("AI analysis failed", answer_id=answer_id, attempt=answer.analysis_attempts, error=str(e))
            raise

        answer.is_processed = True
        answer.risk_level = result.risk_level
        answer.ai_analysis = result.model_dump(mode="json")
        await self.db.commit()

        if result.should_alert:
            await self.alert_service.create_alert(
                patient_id=answer.patient_id,
                type=AlertType.BAD_CONDITION,
                risk_level=result.risk_level,
                title="High risk answer detected",
                description=result.alert_reason or result.summary or "High risk detected by AI",
                triggered_by="system",
                answer_id=answer.id,
                metadata=result.model_dump(mode="json"),
            )
            logger.warning("Clinical alert created", answer_id=answer_id, patient_id=answer.patient_id, risk_level=result.risk_level.value)

        logger.info(
            "Answer processing completed",
            answer_id=answer_id,
            risk_level=result.risk_level.value,
            should_alert=result.should_alert,
        )
        return answer

    async def _missing_photo(self, answer: Answer) -> Answer:
        answer.is_processed = True
        answer.risk_level = RiskLevel.MEDIUM
        answer.ai_analysis = {"summary": "Photo was requested but not received", "should_alert": True}
        await self.db.commit()

        await self.alert_service.create_alert(
            patient_id=answer.patient_id,
            type=AlertType.NO_PHOTO,
            risk_level=RiskLevel.MEDIUM,
            title="Photo not received",
            description=f"Patient answered a photo question on day {answer.day_number} without a photo",
            triggered_by="system",
            answer_id=answer.id,
            metadata={"question_id": answer.question_template_id, "day_number": answer.day_number},
        )
        logger.warning("Photo missing in answer", answer_id=answer.id, patient_id=answer.patient_id)
        return answer

    async def record_failure(self, answer_id: int, error: str) -> None:
        """Called once retries are exhausted; the answer stays unprocessed."""
        logger.error("Answer analysis abandoned", answer_id=answer_id, error=error)
        if not settings.ALERT_ON_ANALYSIS_FAILURE:
            return
        answer = await self.answers.get(answer_id)
        if answer is None:
            return
        await self.alert_service.create_alert(
            patient_id=answer.patient_id,
            type=AlertType.ANALYSIS_FAILED,
            risk_level=RiskLevel.MEDIUM,
            title="Answer could not be analyzed",
            description=f"AI analysis failed after {answer.analysis_attempts} attempts: {error}",
            triggered_by="system",
            answer_id=answer.id,
            metadata={"error": error},
        )
