from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.task import TaskStatus, TaskType


class TaskCreate(BaseModel):
    patient_id: int
    assigned_to_id: int
    alert_id: Optional[int] = None
    type: TaskType = TaskType.CUSTOM
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    priority: int = Field(default=5, ge=0, le=10)
    due_date: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class TaskRead(BaseModel):
    id: int
    patient_id: int
    assigned_to_id: int
    alert_id: Optional[int] = None
    type: TaskType
    title: str
    description: Optional[str] = None
    priority: int
    status: TaskStatus
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="meta")
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskReassign(BaseModel):
    assigned_to_id: int


class MyTasks(BaseModel):
    overdue: List[TaskRead]
    today: List[TaskRead]
    upcoming: List[TaskRead]
