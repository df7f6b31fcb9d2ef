"""
Scheduling engine.

``sweep`` decides, for every active period, which slot messages are due
today and queues them; queuing is idempotent, so the sweep can run at startup
and on every beat tick without sending twice. The other entry points are the
periodic checks around it: visit reminders, missed questions, reminders for
missed reports and auto-escalation of alerts nobody picked up.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.events import EventBus
from core.logging import get_logger
from models.alert import AlertType
from models.answer import RiskLevel
from models.period import PeriodStatus
from models.question import QuestionTemplate, TimeSlot
from models.types import utcnow
from repositories.alert import AlertRepository
from repositories.answer import AnswerRepository
from repositories.patient import PatientRepository
from repositories.period import DayLogRepository, PeriodRepository
from repositories.question import QuestionRepository
from repositories.visit import VisitRepository
from schemas.delivery import DeliveryJob, SweepResult
from schemas.period import PeriodSettings
from services import providers
from services.alert_service import AlertService
from services.period_service import PeriodService
from services.helpers import (
    compute_day_number,
    construct_missed_report_reminder,
    construct_visit_reminder,
    local_date,
    local_day_bounds,
    local_slot_time,
)

logger = get_logger(__name__)


class SchedulerService:
    def __init__(
        self,
        db: AsyncSession,
        delivery_queue=None,
        notifier=None,
        events: Optional[EventBus] = None,
        alert_service: Optional[AlertService] = None,
    ):
        self.db = db
        self.periods = PeriodRepository(db)
        self.day_logs = DayLogRepository(db)
        self.patients = PatientRepository(db)
        self.questions = QuestionRepository(db)
        self.answers = AnswerRepository(db)
        self.alerts = AlertRepository(db)
        self.visits = VisitRepository(db)
        self.delivery_queue = delivery_queue or providers.get_delivery_queue()
        self.notifier = notifier or providers.get_notifier()
        self.events = events or providers.get_event_bus()
        self.alert_service = alert_service or AlertService(db, notifier=self.notifier, events=self.events)
        self.period_service = PeriodService(db, events=self.events)

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Queue today's slot messages for every active period."""
        now = now or utcnow()
        result = SweepResult()

        pairs = await self.periods.list_active_with_patients()
        period_ids = [period.id for period, _ in pairs]
        logger.info("Sweep started", periods=len(period_ids), now=now.isoformat())

        for period_id in period_ids:
            try:
                await self._sweep_period(period_id, now, result)
            except Exception as e:
                await self.db.rollback()
                result.failed_periods += 1
                logger.error("Sweep failed for period", period_id=period_id, error=str(e))

        logger.info(
            "Sweep finished",
            scheduled=result.scheduled_count,
            completed_periods=result.completed_periods,
            failed_periods=result.failed_periods,
            missed_days=result.missed_days,
        )
        return result

    async def _sweep_period(self, period_id: int, now: datetime, result: SweepResult) -> None:
        period = await self.periods.get(period_id)
        if period is None or period.status != PeriodStatus.ACTIVE:
            return
        patient = await self.patients.get(period.patient_id)
        if patient is None:
            return

        day_number = compute_day_number(period.start_date, now, patient.timezone)

        if day_number > period.duration_days:
            await self.period_service.complete(period.id, now=now)
            logger.info("Period completed by schedule", period_id=period.id, patient_id=period.patient_id)
            result.completed_periods += 1
            return

        if day_number < 1:
            logger.debug("Period not started yet", period_id=period.id, start_date=str(period.start_date))
            return

        missed = await self.day_logs.mark_missed_before(period.id, day_number)
        if missed:
            await self.db.commit()
            result.missed_days += missed
            logger.info("Days marked missed", period_id=period.id, count=missed)

        questions = await self.questions.find_for_day(period.id, day_number)
        if not questions:
            return

        options = PeriodSettings.from_db(period.settings)
        today = local_date(now, patient.timezone)

        by_slot: Dict[TimeSlot, List[QuestionTemplate]] = OrderedDict()
        for question in questions:
            by_slot.setdefault(TimeSlot(question.time_slot), []).append(question)

        for slot, slot_questions in by_slot.items():
            slot_time = options.slot_time(slot)
            if slot_time is None:
                logger.warning("No schedule for slot, questions skipped", period_id=period.id, time_slot=slot.value)
                continue
            job = DeliveryJob(
                patient_id=patient.id,
                period_id=period.id,
                day_number=day_number,
                time_slot=slot,
                question_ids=[q.id for q in slot_questions],
                scheduled_at=local_slot_time(today, slot_time.hour, slot_time.minute, patient.timezone),
            )
            if self.delivery_queue.enqueue(job, now):
                result.scheduled_count += 1

    async def check_visits(self, now: Optional[datetime] = None) -> int:
        """Send each visit its day-before and same-day reminder once."""
        now = now or utcnow()
        today = local_date(now, None)
        sent = 0

        for offset, same_day in ((1, False), (0, True)):
            start, end = local_day_bounds(today + timedelta(days=offset), None)
            column = "same_day_reminder_sent_at" if same_day else "day_before_reminder_sent_at"
            for visit in await self.visits.scheduled_between(start, end):
                if getattr(visit, column) is not None:
                    continue
                if visit.scheduled_date <= now:
                    continue
                patient = await self.patients.get(visit.patient_id)
                if patient is None:
                    continue
                text = construct_visit_reminder(patient.full_name, visit.scheduled_date, same_day)
                sid = await self.notifier.send(patient.phone, text, visit_id=visit.id, patient_id=patient.id)
                if sid is None:
                    continue
                setattr(visit, column, now)
                await self.db.commit()
                sent += 1
                logger.info("Visit reminder sent", visit_id=visit.id, patient_id=patient.id, same_day=same_day)
        return sent

    async def check_missed_questions(self, now: Optional[datetime] = None) -> int:
        """Raise a MISSED_RESPONSE alert for each required question of yesterday left unanswered."""
        now = now or utcnow()
        created = 0

        pairs = await self.periods.list_active_with_patients()
        targets = [(period.id, period.patient_id, period.start_date, patient.timezone) for period, patient in pairs]

        for period_id, patient_id, start_date, tz_name in targets:
            day_number = compute_day_number(start_date, now, tz_name)
            if day_number <= 1:
                continue
            check_day = day_number - 1
            try:
                questions = await self.questions.find_for_day(period_id, check_day)
                answered = await self.answers.answered_question_ids(period_id, [q.id for q in questions])
                for question in questions:
                    if not question.is_required or question.id in answered:
                        continue
                    if await self.alerts.missed_response_for_question(patient_id, question.id) is not None:
                        continue
                    await self.alert_service.create_alert(
                        patient_id=patient_id,
                        type=AlertType.MISSED_RESPONSE,
                        risk_level=RiskLevel.MEDIUM,
                        title="Missed report",
                        description=f"Patient missed the report for day {check_day}, {TimeSlot(question.time_slot).value}",
                        triggered_by="system",
                        metadata={"question_id": question.id, "day_number": check_day},
                        now=now,
                    )
                    created += 1
            except Exception as e:
                await self.db.rollback()
                logger.error("Missed question check failed", period_id=period_id, error=str(e))

        logger.info("Missed question check finished", alerts_created=created)
        return created

    async def send_missed_reminders(self, now: Optional[datetime] = None) -> int:
        """One reminder to the patient for MISSED_RESPONSE alerts still NEW after the reminder delay.

        The delay is the period's ``reminder_delay_minutes`` when set, otherwise
        ``MISSED_REMINDER_AFTER_HOURS``.
        """
        now = now or utcnow()
        sent = 0

        for alert in await self.alerts.new_of_type_before(AlertType.MISSED_RESPONSE, now):
            meta = dict(alert.meta or {})
            if meta.get("reminder_sent"):
                continue
            patient = await self.patients.get(alert.patient_id)
            if patient is None or not patient.phone:
                continue
            if alert.created_at > now - await self._reminder_delay(patient.current_period_id):
                continue
            sid = await self.notifier.send(
                patient.phone,
                construct_missed_report_reminder(patient.full_name),
                alert_id=alert.id,
                patient_id=patient.id,
            )
            if sid is None:
                continue
            meta["reminder_sent"] = True
            alert.meta = meta
            await self.db.commit()
            sent += 1
            logger.info("Reminder sent for missed report", alert_id=alert.id)
        return sent

    async def _reminder_delay(self, period_id: Optional[int]) -> timedelta:
        period = await self.periods.get(period_id) if period_id else None
        if period is not None:
            minutes = PeriodSettings.from_db(period.settings).reminder_delay_minutes
            if minutes is not None:
                return timedelta(minutes=minutes)
        return timedelta(hours=settings.MISSED_REMINDER_AFTER_HOURS)

    async def escalate_unhandled_alerts(self, now: Optional[datetime] = None) -> int:
        """Escalate MISSED_RESPONSE alerts still NEW after the escalation threshold."""
        now = now or utcnow()
        cutoff = now - timedelta(hours=settings.ESCALATION_THRESHOLD_HOURS)
        alert_ids = [alert.id for alert in await self.alerts.new_of_type_before(AlertType.MISSED_RESPONSE, cutoff)]
        logger.info("Checking unhandled alerts", threshold_hours=settings.ESCALATION_THRESHOLD_HOURS, count=len(alert_ids))

        escalated = 0
        for alert_id in alert_ids:
            try:
                await self.alert_service.escalate(alert_id, now=now)
                escalated += 1
            except Exception as e:
                logger.error("Auto-escalation failed", alert_id=alert_id, error=str(e))
        return escalated
