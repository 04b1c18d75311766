"""Response envelopes of the HTTP API."""

from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from taskapi.models import ActivityLog, TaskRead


class TaskResponse(SQLModel):
    data: TaskRead


class TaskListResponse(SQLModel):
    data: list[TaskRead]
    total: int
    page: int
    per_page: int


class ActivityListResponse(SQLModel):
    data: list[ActivityLog]


class CacheFlushResponse(SQLModel):
    deleted: int


class HealthResponse(SQLModel):
    status: str
    version: str
    services: dict[str, str]


class ErrorResponse(SQLModel):
    error: str
    message: str
    code: int


def error_response(code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content=ErrorResponse(error=error, message=message, code=code).model_dump(),
    )
