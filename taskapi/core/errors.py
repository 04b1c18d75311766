class TaskAPIError(Exception):
    """Base class for errors raised by the task API core."""


class ValidationError(TaskAPIError):
    """Raised when input is malformed or out of range."""


class NotFoundError(TaskAPIError):
    """Raised when no task matches the given identifier."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id '{task_id}' was not found.")
        self.task_id = task_id


class StoreError(TaskAPIError):
    """Raised when the primary store (or a requested audit read) fails."""


class CacheError(TaskAPIError):
    """Raised when the cache is unreachable or holds an undecodable entry."""


class AuditError(TaskAPIError):
    """Raised when an activity log entry cannot be written."""
