"""
Tests for the alert and task state machines.

Covers:
  - Alert creation with the tracker task, notification and domain event
  - Task type and priority derived from the alert
  - Resolve completes every task of the alert
  - Escalation cancels open tasks before creating the doctor task
  - Escalation without a doctor changes nothing
  - Rejected transitions
  - Task service: create, status, reassign, my tasks
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from core.exceptions import AppError
from models.alert import AlertStatus, AlertType
from models.answer import RiskLevel
from models.task import Task, TaskStatus, TaskType
from models.user import User, UserRole
from schemas.task import TaskCreate
from services.task_service import TaskService
from tests.conftest import utc

NOW = utc(2026, 3, 2, 9)


async def _tasks(db):
    result = await db.execute(select(Task).order_by(Task.id).execution_options(populate_existing=True))
    return list(result.scalars().all())


async def _missed_report(alert_service, patient, risk_level=RiskLevel.MEDIUM, type=AlertType.MISSED_RESPONSE):
    return await alert_service.create_alert(
        patient_id=patient.id,
        type=type,
        risk_level=risk_level,
        title="Missed report",
        description="Day 1 morning not answered",
        now=NOW,
    )


class TestCreateAlert:
    @pytest.mark.asyncio
    async def test_creates_tracker_task_and_notifies(self, db, alert_service, notifier, emitted, tracker, patient):
        alert = await _missed_report(alert_service, patient)

        assert alert.status == AlertStatus.NEW
        assert alert.triggered_by == "system"
        tasks = await _tasks(db)
        assert len(tasks) == 1
        assert tasks[0].alert_id == alert.id
        assert tasks[0].assigned_to_id == tracker.id
        assert tasks[0].type == TaskType.CALL
        assert tasks[0].priority == 5
        assert tasks[0].status == TaskStatus.PENDING
        assert tasks[0].due_date == NOW + timedelta(hours=24)

        notifier.alert_created.assert_awaited_once()
        assert [e.kind for e in emitted] == ["alert.created"]
        assert emitted[0].alert_id == alert.id
        assert emitted[0].risk_level == "MEDIUM"

    @pytest.mark.asyncio
    async def test_critical_alert_gets_top_priority(self, db, alert_service, patient):
        await _missed_report(alert_service, patient, risk_level=RiskLevel.CRITICAL, type=AlertType.BAD_CONDITION)

        task = (await _tasks(db))[0]
        assert task.priority == 10
        assert task.type == TaskType.ESCALATE

    @pytest.mark.asyncio
    async def test_other_alert_types_get_custom_tasks(self, db, alert_service, patient):
        await _missed_report(alert_service, patient, type=AlertType.DELIVERY_FAILED)

        assert (await _tasks(db))[0].type == TaskType.CUSTOM

    @pytest.mark.asyncio
    async def test_patient_without_tracker(self, db, alert_service, notifier, patient):
        patient.tracker_id = None
        await db.commit()

        alert = await _missed_report(alert_service, patient)

        assert alert.id is not None
        assert await _tasks(db) == []
        notifier.alert_created.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_patient(self, alert_service):
        with pytest.raises(AppError) as exc:
            await alert_service.create_alert(
                patient_id=404,
                type=AlertType.CUSTOM,
                risk_level=RiskLevel.LOW,
                title="x",
            )
        assert exc.value.status_code == 404


class TestResolve:
    @pytest.mark.asyncio
    async def test_resolve_completes_all_tasks(self, db, alert_service, tracker, patient):
        alert = await _missed_report(alert_service, patient)
        db.add(Task(patient_id=patient.id, assigned_to_id=tracker.id, alert_id=alert.id, title="Follow-up call", status=TaskStatus.IN_PROGRESS))
        db.add(Task(patient_id=patient.id, assigned_to_id=tracker.id, alert_id=alert.id, title="Old", status=TaskStatus.CANCELLED))
        await db.commit()
        resolved_at = NOW + timedelta(hours=1)

        await alert_service.update_status(alert.id, AlertStatus.RESOLVED, resolved_by=tracker.id, now=resolved_at)

        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolved_by == tracker.id
        assert alert.resolved_at == resolved_at
        tasks = await _tasks(db)
        assert [t.status for t in tasks] == [TaskStatus.COMPLETED] * 3
        assert all(t.completed_at == resolved_at for t in tasks)

    @pytest.mark.asyncio
    async def test_metadata_is_merged(self, alert_service, patient):
        alert = await alert_service.create_alert(
            patient_id=patient.id,
            type=AlertType.CUSTOM,
            risk_level=RiskLevel.LOW,
            title="Check",
            metadata={"source": "dashboard"},
            now=NOW,
        )

        await alert_service.update_status(alert.id, AlertStatus.IN_PROGRESS, metadata={"note": "calling"})

        assert alert.meta == {"source": "dashboard", "note": "calling"}

    @pytest.mark.asyncio
    async def test_resolved_alert_cannot_reopen(self, db, alert_service, patient):
        alert = await _missed_report(alert_service, patient)
        alert_id = alert.id
        await alert_service.update_status(alert_id, AlertStatus.RESOLVED)

        with pytest.raises(AppError) as exc:
            await alert_service.update_status(alert_id, AlertStatus.IN_PROGRESS)

        assert exc.value.status_code == 409
        assert exc.value.code == "INVALID_TRANSITION"
        stored = await alert_service.get(alert_id)
        await db.refresh(stored)
        assert stored.status == AlertStatus.RESOLVED

    @pytest.mark.asyncio
    async def test_escalated_alert_cannot_go_back_in_progress(self, alert_service, patient, doctor):
        alert = await _missed_report(alert_service, patient)
        alert_id = alert.id
        await alert_service.escalate(alert_id)

        with pytest.raises(AppError) as exc:
            await alert_service.update_status(alert_id, AlertStatus.IN_PROGRESS)
        assert exc.value.code == "INVALID_TRANSITION"


class TestEscalate:
    @pytest.mark.asyncio
    async def test_cancels_open_tasks_then_assigns_doctor(self, db, alert_service, notifier, tracker, doctor, patient):
        alert = await _missed_report(alert_service, patient)
        done = Task(patient_id=patient.id, assigned_to_id=tracker.id, alert_id=alert.id, title="Done", status=TaskStatus.COMPLETED)
        db.add(done)
        await db.commit()

        await alert_service.escalate(alert.id, now=NOW + timedelta(hours=5))

        assert alert.status == AlertStatus.ESCALATED
        assert alert.escalated_to_id == doctor.id
        tasks = await _tasks(db)
        assert [t.status for t in tasks] == [TaskStatus.CANCELLED, TaskStatus.COMPLETED, TaskStatus.PENDING]
        doctor_task = tasks[-1]
        assert doctor_task.assigned_to_id == doctor.id
        assert doctor_task.type == TaskType.ESCALATE
        assert doctor_task.priority == 10
        assert doctor_task.title.startswith("ESCALATED:")
        notifier.alert_escalated.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_explicit_target(self, db, alert_service, patient):
        surgeon = User(full_name="Dr. Anna Volkova", email="surgeon@clinic.test", phone="+10000000003", role=UserRole.DOCTOR)
        db.add(surgeon)
        await db.commit()
        alert = await _missed_report(alert_service, patient)

        await alert_service.escalate(alert.id, escalated_to=surgeon.id)

        assert alert.escalated_to_id == surgeon.id
        assert (await _tasks(db))[-1].assigned_to_id == surgeon.id

    @pytest.mark.asyncio
    async def test_no_doctor_leaves_everything_untouched(self, db, alert_service, notifier, patient):
        patient.doctor_id = None
        await db.commit()
        alert = await _missed_report(alert_service, patient)
        alert_id = alert.id

        with pytest.raises(AppError) as exc:
            await alert_service.escalate(alert_id)

        assert exc.value.status_code == 400
        assert exc.value.code == "NO_ESCALATION_TARGET"
        stored = await alert_service.get(alert_id)
        await db.refresh(stored)
        assert stored.status == AlertStatus.NEW
        assert [t.status for t in await _tasks(db)] == [TaskStatus.PENDING]
        notifier.alert_escalated.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inactive_doctor_is_not_a_target(self, db, alert_service, doctor, patient):
        doctor.is_active = False
        await db.commit()
        alert = await _missed_report(alert_service, patient)
        alert_id = alert.id

        with pytest.raises(AppError) as exc:
            await alert_service.escalate(alert_id)
        assert exc.value.code == "NO_ESCALATION_TARGET"


class TestAlertQueries:
    @pytest.mark.asyncio
    async def test_list_orders_by_risk_then_newest(self, alert_service, patient):
        low = await _missed_report(alert_service, patient, risk_level=RiskLevel.LOW)
        critical = await _missed_report(alert_service, patient, risk_level=RiskLevel.CRITICAL)
        high = await _missed_report(alert_service, patient, risk_level=RiskLevel.HIGH)

        items, total = await alert_service.list({"patient_id": patient.id})

        assert total == 3
        assert [a.id for a in items] == [critical.id, high.id, low.id]

    @pytest.mark.asyncio
    async def test_filter_by_tracker(self, alert_service, tracker, patient):
        await _missed_report(alert_service, patient)

        _, total = await alert_service.list({"tracker_id": tracker.id})
        others, none = await alert_service.list({"tracker_id": tracker.id + 100})

        assert total == 1
        assert none == 0 and others == []

    @pytest.mark.asyncio
    async def test_stats_by_tracker(self, alert_service, tracker, patient):
        first = await _missed_report(alert_service, patient, risk_level=RiskLevel.HIGH)
        await _missed_report(alert_service, patient, risk_level=RiskLevel.LOW)
        await alert_service.update_status(first.id, AlertStatus.IN_PROGRESS, now=NOW + timedelta(minutes=30))

        stats = await alert_service.get_stats_by_tracker(tracker.id)

        assert stats.by_status["NEW"] == 1
        assert stats.by_status["IN_PROGRESS"] == 1
        assert stats.open_by_risk["HIGH"] == 1
        assert stats.open_by_risk["LOW"] == 1
        assert stats.avg_reaction_minutes == 30.0


@pytest.fixture
def task_service(db, notifier):
    return TaskService(db, notifier=notifier)


class TestTaskService:
    @pytest.mark.asyncio
    async def test_create_notifies_assignee(self, task_service, notifier, tracker, patient):
        task = await task_service.create(
            TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Call the patient", metadata={"reason": "manual"})
        )

        assert task.status == TaskStatus.PENDING
        assert task.meta == {"reason": "manual"}
        notifier.task_assigned.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_assignee(self, task_service, patient):
        with pytest.raises(AppError) as exc:
            await task_service.create(TaskCreate(patient_id=patient.id, assigned_to_id=999, title="x"))
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_complete_sets_timestamp(self, task_service, tracker, patient):
        task = await task_service.create(TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Call"))

        await task_service.update_status(task.id, TaskStatus.IN_PROGRESS)
        await task_service.update_status(task.id, TaskStatus.COMPLETED, now=NOW)

        assert task.status == TaskStatus.COMPLETED
        assert task.completed_at == NOW

    @pytest.mark.asyncio
    async def test_finished_task_cannot_change(self, db, task_service, tracker, patient):
        task = await task_service.create(TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Call"))
        task_id = task.id
        await task_service.update_status(task_id, TaskStatus.CANCELLED)

        with pytest.raises(AppError) as exc:
            await task_service.update_status(task_id, TaskStatus.IN_PROGRESS)
        assert exc.value.code == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_reassign(self, task_service, notifier, tracker, doctor, patient):
        task = await task_service.create(TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Call"))

        await task_service.reassign(task.id, doctor.id)

        assert task.assigned_to_id == doctor.id
        assert notifier.task_assigned.await_count == 2

    @pytest.mark.asyncio
    async def test_my_tasks_grouping(self, task_service, tracker, patient):
        overdue = await task_service.create(
            TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Late", due_date=NOW - timedelta(hours=2))
        )
        today = await task_service.create(
            TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Today", due_date=NOW + timedelta(hours=3))
        )
        later = await task_service.create(
            TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Later", due_date=NOW + timedelta(days=2))
        )
        done = await task_service.create(TaskCreate(patient_id=patient.id, assigned_to_id=tracker.id, title="Done"))
        await task_service.update_status(done.id, TaskStatus.COMPLETED)

        groups = await task_service.get_my_tasks(tracker.id, now=NOW)

        assert [t.id for t in groups["overdue"]] == [overdue.id]
        assert [t.id for t in groups["today"]] == [today.id]
        assert [t.id for t in groups["upcoming"]] == [later.id]
