from fastapi import APIRouter, Query, Response, status

from taskapi.deps import TaskServiceDep
from taskapi.models import TaskCreate, TaskStatus, TaskUpdate
from taskapi.schemas import ActivityListResponse, TaskListResponse, TaskResponse

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreate, service: TaskServiceDep):
    """Create a new task"""
    task = await service.create(task_data)
    return TaskResponse(data=task)


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    service: TaskServiceDep,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    task_status: TaskStatus | None = Query(default=None, alias="status"),
):
    result = await service.list_tasks(
        page, per_page, task_status.value if task_status else None
    )
    return TaskListResponse(
        data=result.tasks,
        total=result.total,
        page=result.page,
        per_page=result.per_page,
    )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, service: TaskServiceDep):
    """Get a specific task by ID"""
    task = await service.get_by_id(task_id)
    return TaskResponse(data=task)


@router.put("/{task_id}", response_model=TaskResponse)
@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: str, task_data: TaskUpdate, service: TaskServiceDep):
    """Update the fields present in the body, leaving the others untouched"""
    task = await service.update(task_id, task_data)
    return TaskResponse(data=task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, service: TaskServiceDep):
    """Delete a task"""
    await service.delete(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/activities", response_model=ActivityListResponse)
async def get_task_activities(
    task_id: str, service: TaskServiceDep, limit: int = Query(default=50)
):
    """Activity log of a task, most recent first"""
    activities = await service.get_activities(task_id, limit)
    return ActivityListResponse(data=activities)
