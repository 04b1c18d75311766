import structlog

from taskapi.cache.layer import TaskCache
from taskapi.core.errors import CacheError, TaskAPIError
from taskapi.models import ActivityLog, TaskCreate, TaskPage, TaskRead, TaskUpdate
from taskapi.repositories.activities import ActivityRepository
from taskapi.repositories.tasks import TaskRepository, clamp_page
from taskapi.services.activity_queue import ActivityQueue

logger = structlog.get_logger(__name__)

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_DELETED = "deleted"


class TaskService:
    """
    Coordinates the task store, the read cache and the activity log.

    The task store is the only source of truth and its failures end the
    operation. Cache failures are logged and the operation carries on.
    Activity entries are handed to the queue and never awaited.
    """

    def __init__(
        self,
        tasks: TaskRepository,
        cache: TaskCache,
        activities: ActivityRepository,
        activity_queue: ActivityQueue,
    ):
        self.tasks = tasks
        self.cache = cache
        self.activities = activities
        self.activity_queue = activity_queue

    async def create(self, task_data: TaskCreate) -> TaskRead:
        task = await self.tasks.create(task_data)

        await self._cache_task(task, "failed to cache new task")

        self.activity_queue.submit(
            task.id,
            ACTION_CREATED,
            f"Task '{task.title}' created with priority {task.priority.value}",
        )
        return task

    async def get_by_id(self, task_id: str) -> TaskRead:
        try:
            cached = await self.cache.get(task_id)
        except CacheError as e:
            logger.warning("cache lookup failed", task_id=task_id, error=str(e))
            cached = None

        if cached is not None:
            logger.debug("cache hit", task_id=task_id)
            return cached

        task = await self.tasks.get_by_id(task_id)
        await self._cache_task(task, "failed to cache task")
        return task

    async def list_tasks(
        self, page: int = 1, per_page: int = 20, status: str | None = None
    ) -> TaskPage:
        page, per_page = clamp_page(page, per_page)
        tasks, total = await self.tasks.list_tasks(page, per_page, status)
        return TaskPage(tasks=tasks or [], total=total, page=page, per_page=per_page)

    async def update(self, task_id: str, task_data: TaskUpdate) -> TaskRead:
        task = await self.tasks.update(task_id, task_data)

        try:
            await self.cache.invalidate(task_id)
        except CacheError as e:
            logger.warning("failed to invalidate cache", task_id=task_id, error=str(e))
        await self._cache_task(task, "failed to recache task")

        self.activity_queue.submit(
            task_id, ACTION_UPDATED, f"Task '{task.title}' updated"
        )
        return task

    async def delete(self, task_id: str):
        # only used to name the task in the activity entry
        title = task_id
        try:
            title = (await self.tasks.get_by_id(task_id)).title
        except TaskAPIError:
            pass

        await self.tasks.delete(task_id)

        try:
            await self.cache.invalidate(task_id)
        except CacheError as e:
            logger.warning("failed to invalidate cache", task_id=task_id, error=str(e))

        self.activity_queue.submit(task_id, ACTION_DELETED, f"Task '{title}' deleted")

    async def get_activities(self, task_id: str, limit: int = 50) -> list[ActivityLog]:
        return await self.activities.list_by_task(task_id, limit)

    async def recent_activities(self, limit: int = 20) -> list[ActivityLog]:
        return await self.activities.list_recent(limit)

    async def flush_cache(self) -> int:
        return await self.cache.invalidate_all()

    async def _cache_task(self, task: TaskRead, message: str):
        try:
            await self.cache.set(task)
        except CacheError as e:
            logger.warning(message, task_id=task.id, error=str(e))
