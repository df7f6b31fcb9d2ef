from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import AppError
from core.logging import get_logger
from models.task import TASK_TRANSITIONS, Task, TaskStatus
from models.types import utcnow
from repositories.patient import PatientRepository
from repositories.task import TaskRepository
from repositories.user import UserRepository
from schemas.task import TaskCreate
from services import providers

logger = get_logger(__name__)


class TaskService:
    """Staff-facing task operations."""

    def __init__(self, db: AsyncSession, notifier=None):
        self.db = db
        self.tasks = TaskRepository(db)
        self.patients = PatientRepository(db)
        self.users = UserRepository(db)
        self.notifier = notifier or providers.get_notifier()

    async def create(self, data: TaskCreate) -> Task:
        """Create a PENDING task and notify the assignee."""
        patient = await self.patients.get(data.patient_id)
        if patient is None:
            raise AppError.not_found("Patient not found", patient_id=data.patient_id)
        assignee = await self.users.get_active(data.assigned_to_id)
        if assignee is None:
            raise AppError.not_found("Assignee not found", user_id=data.assigned_to_id)

        values = data.model_dump(exclude={"metadata"})
        task = Task(**values, meta=data.metadata, status=TaskStatus.PENDING)
        try:
            await self.tasks.add(task)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Task created", task_id=task.id, assigned_to_id=task.assigned_to_id, patient_id=task.patient_id)
        await self.notifier.task_assigned(task, patient, assignee)
        return task

    async def get(self, task_id: int) -> Task:
        task = await self.tasks.get(task_id)
        if task is None:
            raise AppError.not_found("Task not found", task_id=task_id)
        return task

    async def list(self, filters: Optional[Dict[str, Any]] = None, page: int = 1, limit: int = 20) -> Tuple[List[Task], int]:
        page = max(page, 1)
        return await self.tasks.list_filtered(filters or {}, skip=(page - 1) * limit, limit=limit)

    async def get_my_tasks(self, user_id: int, now: Optional[datetime] = None) -> Dict[str, List[Task]]:
        """Open tasks of ``user_id`` grouped into overdue, due today and upcoming."""
        now = now or utcnow()
        tz = ZoneInfo(settings.DEFAULT_TIMEZONE)
        today = now.astimezone(tz).date()

        grouped: Dict[str, List[Task]] = {"overdue": [], "today": [], "upcoming": []}
        for task in await self.tasks.open_for_user(user_id):
            if task.due_date is None:
                grouped["upcoming"].append(task)
            elif task.due_date < now:
                grouped["overdue"].append(task)
            elif task.due_date.astimezone(tz).date() == today:
                grouped["today"].append(task)
            else:
                grouped["upcoming"].append(task)
        return grouped

    async def update_status(self, task_id: int, status: TaskStatus, now: Optional[datetime] = None) -> Task:
        status = TaskStatus(status)
        now = now or utcnow()
        try:
            task = await self.tasks.get_for_update(task_id)
            if task is None:
                raise AppError.not_found("Task not found", task_id=task_id)
            current = TaskStatus(task.status)
            if status not in TASK_TRANSITIONS[current]:
                raise AppError.conflict(
                    f"Task cannot move from {current.value} to {status.value}",
                    code="INVALID_TRANSITION",
                    task_id=task_id,
                )
            task.status = status
            if status == TaskStatus.COMPLETED:
                task.completed_at = now
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Task status updated", task_id=task_id, status=status.value)
        return task

    async def reassign(self, task_id: int, assigned_to_id: int) -> Task:
        try:
            task = await self.tasks.get_for_update(task_id)
            if task is None:
                raise AppError.not_found("Task not found", task_id=task_id)
            if TaskStatus(task.status) not in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS):
                raise AppError.conflict("Only open tasks can be reassigned", code="INVALID_TRANSITION", task_id=task_id)
            assignee = await self.users.get_active(assigned_to_id)
            if assignee is None:
                raise AppError.not_found("Assignee not found", user_id=assigned_to_id)
            previous = task.assigned_to_id
            task.assigned_to_id = assignee.id
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Task reassigned", task_id=task_id, from_user_id=previous, to_user_id=assignee.id)
        patient = await self.patients.get(task.patient_id)
        await self.notifier.task_assigned(task, patient, assignee)
        return task

    async def get_overdue(self, now: Optional[datetime] = None) -> List[Task]:
        return await self.tasks.overdue(now or utcnow())
