from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_task_service
from models.task import TaskStatus, TaskType
from schemas.responses import PaginatedResponse
from schemas.task import MyTasks, TaskCreate, TaskRead, TaskReassign, TaskStatusUpdate
from services.task_service import TaskService

router = APIRouter()


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED, summary="Create task")
async def create_task(request: TaskCreate, service: TaskService = Depends(get_task_service)):
    return await service.create(request)


@router.get("", response_model=PaginatedResponse, summary="List tasks")
async def list_tasks(
    status: Optional[TaskStatus] = None,
    type: Optional[TaskType] = None,
    assigned_to_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    alert_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: TaskService = Depends(get_task_service),
):
    filters = {
        "status": status,
        "type": type,
        "assigned_to_id": assigned_to_id,
        "patient_id": patient_id,
        "alert_id": alert_id,
    }
    items, total = await service.list(filters, page=page, limit=limit)
    return PaginatedResponse.create(
        items=[TaskRead.model_validate(task) for task in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/my/{user_id}", response_model=MyTasks, summary="Open tasks of a user grouped by due date")
async def get_my_tasks(user_id: int, service: TaskService = Depends(get_task_service)):
    groups = await service.get_my_tasks(user_id)
    return MyTasks(
        overdue=[TaskRead.model_validate(t) for t in groups["overdue"]],
        today=[TaskRead.model_validate(t) for t in groups["today"]],
        upcoming=[TaskRead.model_validate(t) for t in groups["upcoming"]],
    )


@router.get("/overdue", response_model=list[TaskRead], summary="Overdue tasks")
async def get_overdue_tasks(service: TaskService = Depends(get_task_service)):
    return await service.get_overdue()


@router.get("/{task_id}", response_model=TaskRead, summary="Get task")
async def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    return await service.get(task_id)


@router.patch("/{task_id}/status", response_model=TaskRead, summary="Change task status")
async def update_task_status(
    task_id: int,
    request: TaskStatusUpdate,
    service: TaskService = Depends(get_task_service),
):
    return await service.update_status(task_id, request.status)


@router.patch("/{task_id}/assign", response_model=TaskRead, summary="Reassign task")
async def reassign_task(
    task_id: int,
    request: TaskReassign,
    service: TaskService = Depends(get_task_service),
):
    return await service.reassign(task_id, request.assigned_to_id)
