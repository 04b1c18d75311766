from contextlib import AsyncExitStack
from dataclasses import dataclass

import structlog
from pymongo import AsyncMongoClient
from redis.asyncio import Redis, RedisError
from sqlalchemy.ext.asyncio import AsyncEngine

from taskapi.cache.layer import TaskCache, build_redis
from taskapi.core.config import Settings
from taskapi.core.errors import AuditError
from taskapi.database import build_engine, build_session_factory
from taskapi.repositories.activities import ActivityRepository
from taskapi.repositories.tasks import TaskRepository
from taskapi.services.activity_queue import ActivityQueue
from taskapi.services.task_service import TaskService

logger = structlog.get_logger(__name__)


@dataclass
class Resources:
    """Connection pools and workers shared by every request in the process."""

    engine: AsyncEngine
    redis: Redis | None
    mongo: AsyncMongoClient
    task_repository: TaskRepository
    activity_repository: ActivityRepository
    cache: TaskCache
    activity_queue: ActivityQueue
    task_service: TaskService
    drain_timeout: float = 10.0

    async def close(self):
        # unwinds in reverse: queue, cache, mongo, engine
        async with AsyncExitStack() as stack:
            stack.push_async_callback(self.engine.dispose)
            stack.push_async_callback(self.mongo.close)
            stack.push_async_callback(self.cache.close)
            stack.push_async_callback(self.activity_queue.close, timeout=self.drain_timeout)
        logger.info("resources released")


async def open_resources(settings: Settings) -> Resources:
    engine = build_engine(settings)
    task_repository = TaskRepository(engine, build_session_factory(engine))
    # the primary store must be usable, anything raised here aborts startup
    try:
        await task_repository.init_schema()
    except Exception:
        await engine.dispose()
        raise
    logger.info("database schema initialized")

    redis: Redis | None = build_redis(settings)
    try:
        await redis.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        # allow degraded operation without the shared cache tier
        logger.error("Redis initialization failed", error=str(e))
        await redis.aclose()
        redis = None
    cache = TaskCache.from_settings(redis, settings)

    mongo = AsyncMongoClient(settings.mongo_uri, tz_aware=True)
    collection = mongo[settings.mongo_db][settings.mongo_collection]
    activity_repository = ActivityRepository(collection)
    try:
        await activity_repository.init_indexes()
    except AuditError as e:
        logger.error("activity log index creation failed", error=str(e))

    activity_queue = ActivityQueue(
        activity_repository,
        maxsize=settings.audit_queue_size,
        workers=settings.audit_workers,
        write_timeout=settings.audit_write_timeout_seconds,
    )
    activity_queue.start()

    task_service = TaskService(task_repository, cache, activity_repository, activity_queue)
    return Resources(
        engine=engine,
        redis=redis,
        mongo=mongo,
        task_repository=task_repository,
        activity_repository=activity_repository,
        cache=cache,
        activity_queue=activity_queue,
        task_service=task_service,
        drain_timeout=settings.audit_drain_timeout_seconds,
    )
