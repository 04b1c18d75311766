"""Shared fixtures: sqlite-backed task store, in-memory Redis and activity log."""

import fnmatch
from collections.abc import AsyncGenerator
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from taskapi.cache.layer import TaskCache
from taskapi.core.config import Settings
from taskapi.core.errors import AuditError, StoreError
from taskapi.database import build_engine, build_session_factory
from taskapi.models import ActivityLog
from taskapi.repositories.tasks import TaskRepository
from taskapi.resources import Resources
from taskapi.services.activity_queue import ActivityQueue
from taskapi.services.task_service import TaskService


class FakeRedis:
    """Just enough of redis.asyncio.Redis for TaskCache."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}
        self.broken = False
        self.closed = False

    def _check(self):
        if self.broken:
            raise RedisConnectionError("Connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def scan(self, cursor=0, match=None, count=None):
        self._check()
        keys = [k for k in self.data if match is None or fnmatch.fnmatch(k, match)]
        return 0, keys

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        self.closed = True


class FakeActivityRepository:
    """In-memory stand-in for the MongoDB activity log."""

    def __init__(self) -> None:
        self.entries: list[tuple[int, ActivityLog]] = []
        self.fail_writes = False
        self.fail_reads = False

    async def append(
        self, task_id: str, action: str, details: str, timestamp: datetime, seq: int = 0
    ):
        if self.fail_writes:
            raise AuditError("failed to log activity: connection refused")
        # stored like a BSON date, to the millisecond
        timestamp = timestamp.replace(microsecond=timestamp.microsecond // 1000 * 1000)
        self.entries.append(
            (
                seq,
                ActivityLog(
                    id=str(len(self.entries)),
                    task_id=task_id,
                    action=action,
                    details=details,
                    timestamp=timestamp,
                ),
            )
        )

    def _sorted(self) -> list[ActivityLog]:
        ordered = sorted(self.entries, key=lambda e: (e[1].timestamp, e[0]), reverse=True)
        return [entry for _, entry in ordered]

    async def list_by_task(self, task_id: str, limit: int = 50) -> list[ActivityLog]:
        if self.fail_reads:
            raise StoreError("failed to get activities")
        if limit <= 0:
            limit = 50
        return [e for e in self._sorted() if e.task_id == task_id][:limit]

    async def list_recent(self, limit: int = 20) -> list[ActivityLog]:
        if limit <= 0:
            limit = 20
        return self._sorted()[:limit]

    async def init_indexes(self):
        pass

    async def ping(self):
        if self.fail_reads:
            raise StoreError("mongodb ping failed")


@pytest_asyncio.fixture
async def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}",
        l1_maxsize=0,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def task_repository(settings: Settings) -> AsyncGenerator[TaskRepository, None]:
    engine = build_engine(settings)
    repository = TaskRepository(engine, build_session_factory(engine))
    await repository.init_schema()
    yield repository
    await engine.dispose()


@pytest_asyncio.fixture
async def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def cache(fake_redis: FakeRedis) -> TaskCache:
    return TaskCache(fake_redis, l1_maxsize=0)


@pytest_asyncio.fixture
async def activity_repository() -> FakeActivityRepository:
    return FakeActivityRepository()


@pytest_asyncio.fixture
async def activity_queue(activity_repository) -> AsyncGenerator[ActivityQueue, None]:
    queue = ActivityQueue(activity_repository, maxsize=100, workers=2, write_timeout=1.0)
    queue.start()
    yield queue
    await queue.close(timeout=1.0)


@pytest_asyncio.fixture
async def service(
    task_repository, cache, activity_repository, activity_queue
) -> TaskService:
    return TaskService(task_repository, cache, activity_repository, activity_queue)


@pytest_asyncio.fixture
async def app(settings, task_repository, cache, fake_redis, activity_repository, activity_queue, service):
    from taskapi.main import create_app

    application = create_app(settings)
    # bypass the lifespan: wire the already-built test resources directly
    application.state.resources = Resources(
        engine=task_repository._engine,
        redis=fake_redis,
        mongo=AsyncMock(),
        task_repository=task_repository,
        activity_repository=activity_repository,
        cache=cache,
        activity_queue=activity_queue,
        task_service=service,
    )
    yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
