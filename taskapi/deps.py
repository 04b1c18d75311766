from fastapi import Depends, Request
from typing_extensions import Annotated

from taskapi.resources import Resources
from taskapi.services.task_service import TaskService


def get_resources(request: Request) -> Resources:
    return request.app.state.resources


def get_task_service(request: Request) -> TaskService:
    return request.app.state.resources.task_service


ResourcesDep = Annotated[Resources, Depends(get_resources)]
TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
