"""
One follow-up day from schedule to resolution, wired through the real services
with the broker, transport and AI model replaced by mocks.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from models.alert import Alert, AlertStatus, AlertType
from models.answer import RiskLevel
from models.question import TimeSlot
from models.task import Task, TaskStatus, TaskType
from schemas.answer import AnalysisResult
from schemas.delivery import DeliveryJob
from schemas.whatsapp import parse_twilio_form
from services.answer_processor import AnswerProcessor
from services.answer_service import AnswerService
from services.delivery_service import DeliveryService
from services.scheduler_service import SchedulerService
from tests.conftest import utc


@pytest.mark.asyncio
async def test_high_risk_reply_reaches_the_doctor_and_is_resolved(
    db, events, emitted, celery, delivery_queue, transport, notifier, analysis_queue, alert_service,
    tracker, doctor, patient, start_period, add_question,
):
    period = await start_period(patient, duration_days=3)
    question = await add_question(period, 1, TimeSlot.MORNING, question_text="Any fever?")

    scheduler = SchedulerService(
        db, delivery_queue=delivery_queue, notifier=notifier, events=events, alert_service=alert_service
    )
    result = await scheduler.sweep(now=utc(2026, 3, 1, 6))
    assert result.scheduled_count == 1

    job = DeliveryJob.model_validate(celery.send_task.call_args.kwargs["args"][0])
    sid = await DeliveryService(db, transport=transport, alert_service=alert_service).deliver(job)
    assert sid == "SM-delivery"
    assert "Any fever?" in transport.send.await_args.args[1]

    message = parse_twilio_form(
        {"From": "whatsapp:+79991234567", "Body": "39.5 since last night", "NumMedia": "0", "MessageSid": "SM-reply"},
        received_at=utc(2026, 3, 1, 9, 20),
    )
    answer = await AnswerService(db, analysis_queue=analysis_queue).ingest(message)
    assert answer.question_template_id == question.id
    analysis_queue.enqueue.assert_called_once_with(answer.id)

    analyzer = AsyncMock()
    analyzer.analyze.return_value = AnalysisResult(
        sentiment="negative",
        risk_level=RiskLevel.HIGH,
        summary="High fever on day 1",
        should_alert=True,
        alert_reason="Temperature 39.5",
    )
    transcriber = MagicMock()
    transcriber.enabled = False
    processor = AnswerProcessor(db, analyzer=analyzer, transcriber=transcriber, alert_service=alert_service)
    await processor.process_answer(answer.id)

    alert = (await db.execute(select(Alert))).scalar_one()
    alert_id = alert.id
    assert alert.type == AlertType.BAD_CONDITION
    assert alert.risk_level == RiskLevel.HIGH
    tracker_task = (await db.execute(select(Task))).scalar_one()
    assert tracker_task.assigned_to_id == tracker.id
    assert tracker_task.type == TaskType.ESCALATE
    assert [e.kind for e in emitted if e.kind == "alert.created"] == ["alert.created"]

    escalated_at = alert.created_at + timedelta(hours=1)
    await alert_service.escalate(alert_id, now=escalated_at)
    tasks = (await db.execute(select(Task).order_by(Task.id).execution_options(populate_existing=True))).scalars().all()
    assert [t.status for t in tasks] == [TaskStatus.CANCELLED, TaskStatus.PENDING]
    assert tasks[1].assigned_to_id == doctor.id
    notifier.alert_escalated.assert_awaited_once()

    resolved = await alert_service.update_status(
        alert_id, AlertStatus.RESOLVED, resolved_by=doctor.id, now=escalated_at + timedelta(minutes=30)
    )
    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.resolved_by == doctor.id
    tasks = (await db.execute(select(Task).order_by(Task.id).execution_options(populate_existing=True))).scalars().all()
    assert all(t.status == TaskStatus.COMPLETED for t in tasks)
