from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import field_validator
from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="")


class Task(TaskBase, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: str = Field(primary_key=True, max_length=36)
    status: str = Field(default=TaskStatus.PENDING.value, max_length=20, index=True)
    priority: str = Field(default=TaskPriority.MEDIUM.value, max_length=20, index=True)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class TaskCreate(TaskBase):
    """Schema for creating a task"""

    priority: TaskPriority | None = None


class TaskUpdate(SQLModel):
    """Schema for updating a task.

    Every field may be omitted; omitted fields keep their stored value. A field
    that is sent must carry a value, so ``{"description": ""}`` clears the
    description while ``{}`` leaves it alone.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None

    @field_validator("title", "description", "status", "priority", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field may be omitted but not set to null")
        return value

    def changes(self) -> dict[str, Any]:
        """Return only the fields present in the request."""
        return self.model_dump(exclude_unset=True, mode="json")


class TaskRead(TaskBase):
    """Detached task snapshot handed out by the repositories and the cache"""

    id: str
    status: TaskStatus
    priority: TaskPriority
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # some drivers (sqlite) hand back naive datetimes for tz-aware columns
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TaskPage(SQLModel):
    tasks: list[TaskRead]
    total: int
    page: int
    per_page: int


class ActivityLog(SQLModel):
    """Activity log entry as stored in the document store"""

    id: str | None = None
    task_id: str
    action: str
    details: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # pymongo decodes BSON dates as naive UTC unless tz_aware is set
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
