"""
Tests for the delivery queue and the slot message sender.

Covers:
  - Key claim in Redis before publishing; duplicates are not published
  - ETA never earlier than now
  - Delivery skips closed periods, paused patients and answered slots
  - Transport refusal raises DeliveryFailedError
  - Exhausted retries raise a DELIVERY_FAILED alert when enabled
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from core.config import settings
from core.exceptions import DeliveryFailedError
from models.alert import Alert, AlertType
from models.patient import PatientStatus
from models.question import ResponseType, TimeSlot
from schemas.delivery import DeliveryJob
from services.delivery_service import DeliveryService
from services.period_service import PeriodService
from services.queues import ANALYSIS_TASK, DELIVERY_TASK, AnalysisQueue
from tests.conftest import utc

NOW = utc(2026, 3, 1, 7)


def _job(period, questions, slot=TimeSlot.MORNING, day_number=1, scheduled_at=None):
    return DeliveryJob(
        patient_id=period.patient_id,
        period_id=period.id,
        day_number=day_number,
        time_slot=slot,
        question_ids=[q.id for q in questions],
        scheduled_at=scheduled_at or utc(2026, 3, 1, 9),
    )


class TestDeliveryQueue:
    def test_publishes_once_per_key(self, delivery_queue, celery, redis_client):
        job = DeliveryJob(
            patient_id=1, period_id=2, day_number=3, time_slot=TimeSlot.EVENING, question_ids=[7], scheduled_at=utc(2026, 3, 3, 20)
        )

        assert delivery_queue.enqueue(job, NOW) is True
        assert delivery_queue.enqueue(job, NOW) is False

        assert job.key == "delivery:1:2:3:EVENING"
        assert redis_client.get(job.key) == job.scheduled_at.isoformat()
        assert 0 < redis_client.ttl(job.key) <= 3600
        celery.send_task.assert_called_once()
        args, kwargs = celery.send_task.call_args
        assert args == (DELIVERY_TASK,)
        assert kwargs["task_id"] == job.key
        assert kwargs["eta"] == job.scheduled_at
        assert kwargs["queue"] == "delivery"
        assert kwargs["args"][0]["question_ids"] == [7]

    def test_past_slot_is_sent_now(self, delivery_queue, celery):
        job = DeliveryJob(
            patient_id=1, period_id=2, day_number=1, time_slot=TimeSlot.MORNING, question_ids=[1], scheduled_at=NOW - timedelta(hours=2)
        )

        delivery_queue.enqueue(job, NOW)

        assert celery.send_task.call_args.kwargs["eta"] == NOW

    def test_other_slots_are_independent(self, delivery_queue, celery):
        base = dict(patient_id=1, period_id=2, day_number=1, question_ids=[1], scheduled_at=NOW)

        assert delivery_queue.enqueue(DeliveryJob(time_slot=TimeSlot.MORNING, **base), NOW)
        assert delivery_queue.enqueue(DeliveryJob(time_slot=TimeSlot.AFTERNOON, **base), NOW)
        assert celery.send_task.call_count == 2

    def test_analysis_queue(self, celery):
        AnalysisQueue(celery).enqueue(42)

        celery.send_task.assert_called_once_with(ANALYSIS_TASK, args=[{"answer_id": 42}], queue="analysis")


@pytest.fixture
def delivery(db, transport, alert_service):
    return DeliveryService(db, transport=transport, alert_service=alert_service)


class TestDeliver:
    @pytest.mark.asyncio
    async def test_sends_pending_questions_in_order(self, delivery, transport, start_period, add_question, patient):
        period = await start_period(patient)
        second = await add_question(period, 1, TimeSlot.MORNING, order=1, question_text="Any pain?")
        first = await add_question(
            period,
            1,
            TimeSlot.MORNING,
            order=0,
            question_text="How do you feel?",
            response_type=ResponseType.OPTION,
            options=["Good", "Bad"],
        )

        sid = await delivery.deliver(_job(period, [second, first]))

        assert sid == "SM-delivery"
        phone, text = transport.send.await_args.args
        assert phone == "+79991234567"
        assert text == "Hello, Ivan!\n\nHow do you feel?\n  1. Good\n  2. Bad\n\nAny pain?"

    @pytest.mark.asyncio
    async def test_answered_questions_are_left_out(self, delivery, transport, start_period, add_question, add_answer, patient):
        period = await start_period(patient)
        answered = await add_question(period, 1, TimeSlot.MORNING, order=0)
        pending = await add_question(period, 1, TimeSlot.MORNING, order=1, question_text="Temperature?")
        await add_answer(period, answered)

        await delivery.deliver(_job(period, [answered, pending]))

        assert "Temperature?" in transport.send.await_args.args[1]
        assert answered.question_text not in transport.send.await_args.args[1]

    @pytest.mark.asyncio
    async def test_fully_answered_slot_is_skipped(self, delivery, transport, start_period, add_question, add_answer, patient):
        period = await start_period(patient)
        question = await add_question(period, 1, TimeSlot.MORNING)
        await add_answer(period, question)

        assert await delivery.deliver(_job(period, [question])) is None
        transport.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_period_is_skipped(self, db, events, delivery, transport, start_period, add_question, patient):
        period = await start_period(patient)
        question = await add_question(period, 1, TimeSlot.MORNING)
        job = _job(period, [question])
        await PeriodService(db, events=events).cancel(period.id)

        assert await delivery.deliver(job) is None
        transport.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_paused_patient_is_skipped(self, db, delivery, transport, start_period, add_question, patient):
        period = await start_period(patient)
        question = await add_question(period, 1, TimeSlot.MORNING)
        patient.status = PatientStatus.PAUSED
        await db.commit()

        assert await delivery.deliver(_job(period, [question])) is None
        transport.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refused_message_raises(self, delivery, transport, start_period, add_question, patient):
        period = await start_period(patient)
        question = await add_question(period, 1, TimeSlot.MORNING)
        transport.send.return_value = None

        with pytest.raises(DeliveryFailedError):
            await delivery.deliver(_job(period, [question]))


class TestRecordFailure:
    @pytest.mark.asyncio
    async def test_raises_delivery_alert(self, db, delivery, start_period, add_question, patient):
        period = await start_period(patient)
        question = await add_question(period, 2, TimeSlot.EVENING)

        await delivery.record_failure(_job(period, [question], slot=TimeSlot.EVENING, day_number=2), "timeout")

        alert = (await db.execute(select(Alert))).scalar_one()
        assert alert.type == AlertType.DELIVERY_FAILED
        assert "timeout" in alert.description
        assert alert.meta == {
            "period_id": period.id,
            "day_number": 2,
            "time_slot": "EVENING",
            "question_ids": [question.id],
        }

    @pytest.mark.asyncio
    async def test_alert_can_be_disabled(self, db, delivery, start_period, add_question, patient, monkeypatch):
        monkeypatch.setattr(settings, "ALERT_ON_DELIVERY_FAILURE", False)
        period = await start_period(patient)
        question = await add_question(period, 1, TimeSlot.MORNING)

        await delivery.record_failure(_job(period, [question]), "timeout")

        assert (await db.execute(select(Alert))).scalars().all() == []
