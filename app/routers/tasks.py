from typing import Annotated, Literal

from fastapi import APIRouter, Path, Response, status

from app.cache.layer import CacheResult
from app.models import Priority, TaskCreate, TaskFilter, TaskResponse, TaskUpdate
from app.services.task_service import TaskServiceDep

router = APIRouter(prefix="/tasks", tags=["tasks"])

TaskId = Annotated[int, Path(gt=0, description="Positive task id")]


def _mark_cache(response: Response, result: CacheResult):
    response.headers["X-Cache"] = "HIT" if result.hit else "MISS"
    return result.value


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreate, service: TaskServiceDep, response: Response):
    """Create a new task"""
    task = await service.create_task(task_data)
    response.headers["Location"] = f"/tasks/{task.id}"
    return task


@router.get("", response_model=list[TaskResponse])
async def get_tasks(
    service: TaskServiceDep,
    response: Response,
    priority: Priority | None = None,
    complete: Literal["true", "false"] | None = None,
):
    """List tasks, optionally filtered by priority and completion"""
    filters = TaskFilter(
        priority=priority,
        complete=None if complete is None else complete == "true",
    )
    result = await service.list_tasks(filters)
    return _mark_cache(response, result)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: TaskId, service: TaskServiceDep, response: Response):
    """Get a specific task by ID"""
    result = await service.get_task(task_id)
    return _mark_cache(response, result)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: TaskId, task_data: TaskUpdate, service: TaskServiceDep):
    return await service.update_task(task_id, task_data)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: TaskId, service: TaskServiceDep):
    """Delete a task"""
    await service.delete_task(task_id)


@router.post("/{task_id}/start", response_model=TaskResponse)
async def start_task(task_id: TaskId, service: TaskServiceDep):
    """Mark a task as started (once)"""
    return await service.start_task(task_id)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def mark_task_complete(task_id: TaskId, service: TaskServiceDep):
    """Mark a started task as completed"""
    return await service.complete_task(task_id)
