from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.task import Task, TaskStatus
from repositories.base import BaseRepository

_OPEN = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class TaskRepository(BaseRepository[Task]):
    def __init__(self, db: AsyncSession):
        super().__init__(Task, db)

    def _filtered(self, query, filters: Dict[str, Any]):
        for field in ("status", "type", "assigned_to_id", "patient_id", "alert_id"):
            value = filters.get(field)
            if value is not None:
                query = query.where(getattr(Task, field) == value)
        return query

    async def list_filtered(self, filters: Dict[str, Any], skip: int = 0, limit: int = 20) -> Tuple[List[Task], int]:
        total = await self.db.execute(self._filtered(select(func.count(Task.id)), filters))
        query = (
            self._filtered(select(Task), filters)
            .order_by(Task.priority.desc(), Task.due_date.asc(), Task.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), int(total.scalar_one())

    async def for_alert(self, alert_id: int) -> List[Task]:
        result = await self.db.execute(select(Task).where(Task.alert_id == alert_id).order_by(Task.id))
        return list(result.scalars().all())

    async def open_for_user(self, user_id: int) -> List[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.assigned_to_id == user_id, Task.status.in_(_OPEN))
            .order_by(Task.priority.desc(), Task.due_date.asc())
        )
        return list(result.scalars().all())

    async def overdue(self, now: datetime) -> List[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.status.in_(_OPEN), Task.due_date.is_not(None), Task.due_date < now)
            .order_by(Task.due_date)
        )
        return list(result.scalars().all())

    async def cancel_pending_for_alert(self, alert_id: int) -> int:
        result = await self.db.execute(
            update(Task)
            .where(Task.alert_id == alert_id, Task.status == TaskStatus.PENDING)
            .values(status=TaskStatus.CANCELLED)
        )
        return result.rowcount or 0

    async def complete_all_for_alert(self, alert_id: int, now: datetime) -> int:
        result = await self.db.execute(
            update(Task)
            .where(Task.alert_id == alert_id, Task.status != TaskStatus.COMPLETED)
            .values(status=TaskStatus.COMPLETED, completed_at=now)
        )
        return result.rowcount or 0
