import structlog
from cachetools import TTLCache
from pydantic import ValidationError
from redis.asyncio import Redis, RedisError

from taskapi.core.config import Settings
from taskapi.core.errors import CacheError
from taskapi.models import TaskRead

logger = structlog.get_logger(__name__)


def build_redis(settings: Settings) -> Redis:
    return Redis.from_url(
        settings.redis_dsn,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_pool_size,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


class TaskCache:
    """
    Two-tier cache of task snapshots.

    L1: Process-local TTLCache (optional, limited size, short TTL)
    L2: Redis (shared, fixed expiry)

    L1 is only safe with a single worker process. Invalidations reach Redis
    but not the L1 of other processes, which keep serving their copy until
    it expires.

    Neither tier is authoritative. Lookup failures raise CacheError so the
    caller can decide to fall through to the primary store; a miss is None.
    """

    def __init__(
        self,
        redis: Redis | None,
        namespace: str = "task:",
        ttl_seconds: int = 300,
        l1_maxsize: int = 0,
        l1_ttl_seconds: int = 15,
    ):
        self._redis = redis
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.l1: TTLCache | None = None
        if l1_maxsize > 0:
            self.l1 = TTLCache(maxsize=l1_maxsize, ttl=l1_ttl_seconds)

    @classmethod
    def from_settings(cls, redis: Redis | None, settings: Settings) -> "TaskCache":
        return cls(
            redis,
            namespace=settings.cache_namespace,
            ttl_seconds=settings.cache_ttl_seconds,
            l1_maxsize=settings.l1_maxsize,
            l1_ttl_seconds=settings.l1_ttl_seconds,
        )

    def _key(self, task_id: str) -> str:
        """Build namespaced cache key."""
        return f"{self.namespace}{task_id}"

    def _require_redis(self) -> Redis:
        if self._redis is None:
            raise CacheError("redis is not connected")
        return self._redis

    async def get(self, task_id: str) -> TaskRead | None:
        key = self._key(task_id)

        if self.l1 is not None and key in self.l1:
            logger.debug("L1 hit", task_id=task_id)
            return self.l1[key]

        redis = self._require_redis()
        try:
            raw = await redis.get(key)
        except RedisError as e:
            raise CacheError(f"failed to get cached task: {e}") from e

        if raw is None:
            logger.debug("cache miss", task_id=task_id)
            return None

        try:
            task = TaskRead.model_validate_json(raw)
        except ValidationError as e:
            raise CacheError(f"failed to decode cached task: {e}") from e

        logger.debug("L2 hit", task_id=task_id)
        if self.l1 is not None:
            self.l1[key] = task
        return task

    async def set(self, task: TaskRead):
        key = self._key(task.id)

        if self.l1 is not None:
            self.l1[key] = task

        redis = self._require_redis()
        try:
            await redis.set(key, task.model_dump_json(), ex=self.ttl_seconds)
        except RedisError as e:
            raise CacheError(f"failed to cache task: {e}") from e

    async def invalidate(self, task_id: str):
        """
        Delete a task from both tiers. Deleting an absent key is not an error.
        """
        key = self._key(task_id)

        if self.l1 is not None:
            self.l1.pop(key, None)

        redis = self._require_redis()
        try:
            await redis.delete(key)
        except RedisError as e:
            raise CacheError(f"failed to invalidate cached task: {e}") from e

    async def invalidate_all(self) -> int:
        """
        Delete every key under this cache's namespace.

        Returns the number of Redis keys removed.
        """
        if self.l1 is not None:
            self.l1.clear()

        redis = self._require_redis()
        cursor = 0
        deleted_count = 0
        try:
            while True:
                cursor, keys = await redis.scan(
                    cursor, match=f"{self.namespace}*", count=100
                )
                if keys:
                    await redis.delete(*keys)
                    deleted_count += len(keys)
                if cursor == 0:
                    break
        except RedisError as e:
            raise CacheError(f"failed to clear task cache: {e}") from e

        logger.info("cache cleared", namespace=self.namespace, deleted=deleted_count)
        return deleted_count

    async def ping(self):
        redis = self._require_redis()
        try:
            await redis.ping()
        except RedisError as e:
            raise CacheError(f"redis ping failed: {e}") from e

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis is not None:
            await self._redis.aclose()
            logger.info("Redis connection closed")
