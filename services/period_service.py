"""
Period lifecycle: creation with its day logs, manual day completion,
completion and cancellation, and the calendar projection.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.events import EventBus, PeriodCompleted, PeriodStarted
from core.exceptions import AppError
from core.logging import get_logger
from models.patient import Patient
from models.period import DayStatus, Period, PeriodStatus
from models.types import utcnow
from repositories.answer import AnswerRepository
from repositories.patient import PatientRepository
from repositories.period import DayLogRepository, PeriodRepository
from repositories.question import QuestionRepository
from schemas.period import CalendarDay, PeriodCreate, PeriodProgress, PeriodSettings
from services import providers
from services.helpers import compute_day_number

logger = get_logger(__name__)


class PeriodService:
    def __init__(self, db: AsyncSession, events: Optional[EventBus] = None):
        self.db = db
        self.periods = PeriodRepository(db)
        self.day_logs = DayLogRepository(db)
        self.patients = PatientRepository(db)
        self.questions = QuestionRepository(db)
        self.answers = AnswerRepository(db)
        self.events = events or providers.get_event_bus()

    async def create(self, data: PeriodCreate) -> Period:
        """Create an ACTIVE period, its day logs and the patient pointer in one transaction."""
        patient = await self.patients.get(data.patient_id)
        if patient is None:
            raise AppError.not_found("Patient not found", patient_id=data.patient_id)

        if await self.periods.find_active_by_patient(data.patient_id) is not None:
            raise AppError.conflict(
                "Patient already has an active period",
                code="ACTIVE_PERIOD_EXISTS",
                patient_id=data.patient_id,
            )

        try:
            period = await self.periods.add(
                Period(
                    patient_id=data.patient_id,
                    name=data.name,
                    start_date=data.start_date,
                    duration_days=data.duration_days,
                    status=PeriodStatus.ACTIVE,
                    settings=data.settings.model_dump(mode="json") if data.settings else None,
                )
            )
            self.db.add_all(self.day_logs.build_days(period, data.start_date))
            patient.current_period_id = period.id
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent create for the same patient
            await self.db.rollback()
            logger.warning("Active period conflict on insert", patient_id=data.patient_id, error=str(e.orig))
            raise AppError.conflict(
                "Patient already has an active period",
                code="ACTIVE_PERIOD_EXISTS",
                patient_id=data.patient_id,
            ) from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Period created", period_id=period.id, patient_id=data.patient_id, duration_days=data.duration_days)
        self.events.emit(PeriodStarted(period_id=period.id, patient_id=data.patient_id))
        return period

    async def get(self, period_id: int) -> Period:
        period = await self.periods.get(period_id)
        if period is None:
            raise AppError.not_found("Period not found", period_id=period_id)
        return period

    async def get_with_progress(self, period_id: int, now: Optional[datetime] = None) -> Dict:
        period = await self.get(period_id)
        return {"period": period, "progress": await self.progress(period, now)}

    async def list_by_patient(self, patient_id: int) -> List[Period]:
        return await self.periods.list_by_patient(patient_id)

    async def find_active_by_patient(self, patient_id: int) -> Optional[Period]:
        return await self.periods.find_active_by_patient(patient_id)

    async def progress(self, period: Period, now: Optional[datetime] = None) -> PeriodProgress:
        logs = await self.day_logs.list_for_period(period.id)
        completed = sum(1 for log in logs if log.status == DayStatus.COMPLETED)
        missed = sum(1 for log in logs if log.status == DayStatus.MISSED)

        current_day = None
        if period.status == PeriodStatus.ACTIVE:
            patient = await self.patients.get(period.patient_id)
            day = compute_day_number(period.start_date, now or utcnow(), patient.timezone if patient else None)
            current_day = min(max(day, 1), period.duration_days)

        percent = round(completed / period.duration_days * 100, 1) if period.duration_days else 0.0
        return PeriodProgress(
            total_days=period.duration_days,
            completed_days=completed,
            missed_days=missed,
            current_day=current_day,
            percent=percent,
        )

    async def complete_day(
        self,
        period_id: int,
        day_number: int,
        user_id: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Period:
        """Mark a day COMPLETED; the last day completes the period unless auto-complete is off."""
        now = now or utcnow()
        period = await self.get(period_id)
        if period.status != PeriodStatus.ACTIVE:
            raise AppError.bad_request("Period is not active", period_id=period_id)

        day_log = await self.day_logs.get_day(period_id, day_number)
        if day_log is None:
            raise AppError.not_found("Day not found", period_id=period_id, day_number=day_number)

        completed_period = False
        try:
            day_log.status = DayStatus.COMPLETED
            day_log.completed_by = user_id
            if notes is not None:
                day_log.notes = notes

            options = PeriodSettings.from_db(period.settings)
            if day_number == period.duration_days and options.auto_complete_day:
                patient = await self.patients.get(period.patient_id)
                self._finish(period, patient, PeriodStatus.COMPLETED, now)
                completed_period = True

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Day completed", period_id=period_id, day_number=day_number, user_id=user_id)
        if completed_period:
            await self._emit_completed(period)
        return period

    async def complete(self, period_id: int, now: Optional[datetime] = None) -> Period:
        period = await self.get(period_id)
        if period.status != PeriodStatus.ACTIVE:
            raise AppError.conflict("Period is not active", code="INVALID_TRANSITION", period_id=period_id)
        try:
            patient = await self.patients.get(period.patient_id)
            self._finish(period, patient, PeriodStatus.COMPLETED, now or utcnow())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Period completed", period_id=period_id)
        await self._emit_completed(period)
        return period

    async def cancel(self, period_id: int, reason: Optional[str] = None, now: Optional[datetime] = None) -> Period:
        period = await self.get(period_id)
        if period.status != PeriodStatus.ACTIVE:
            raise AppError.conflict("Period is not active", code="INVALID_TRANSITION", period_id=period_id)
        try:
            patient = await self.patients.get(period.patient_id)
            self._finish(period, patient, PeriodStatus.CANCELLED, now or utcnow())
            if reason:
                period.settings = {**(period.settings or {}), "cancel_reason": reason}
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Period cancelled", period_id=period_id, reason=reason)
        return period

    async def calendar(self, period_id: int) -> List[CalendarDay]:
        """Per-day view of a period: status, slot flags and answered/required counts."""
        period = await self.get(period_id)
        logs = await self.day_logs.list_for_period(period.id)
        questions = await self.questions.find_by_period(period.id)
        answered_ids = await self.answers.answered_question_ids(period.id)

        required: Dict[int, int] = {}
        answered: Dict[int, int] = {}
        for question in questions:
            if question.is_required:
                required[question.day_number] = required.get(question.day_number, 0) + 1
            if question.id in answered_ids:
                answered[question.day_number] = answered.get(question.day_number, 0) + 1

        return [
            CalendarDay(
                day_number=log.day_number,
                date=log.date,
                status=log.status,
                morning_completed=log.morning_completed,
                afternoon_completed=log.afternoon_completed,
                evening_completed=log.evening_completed,
                answered=answered.get(log.day_number, 0),
                required=required.get(log.day_number, 0),
            )
            for log in logs
        ]

    @staticmethod
    def _finish(period: Period, patient: Optional[Patient], status: PeriodStatus, now: datetime) -> None:
        period.status = status
        period.end_date = now
        if patient is not None and patient.current_period_id == period.id:
            patient.current_period_id = None

    async def _emit_completed(self, period: Period) -> None:
        patient = await self.patients.get(period.patient_id)
        self.events.emit(
            PeriodCompleted(
                period_id=period.id,
                patient_id=period.patient_id,
                crm_lead_id=patient.crm_lead_id if patient else None,
            )
        )
