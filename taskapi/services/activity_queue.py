import asyncio
import itertools
from dataclasses import dataclass
from datetime import datetime

import structlog

from taskapi.models import get_utc_now
from taskapi.repositories.activities import ActivityRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ActivityEntry:
    task_id: str
    action: str
    details: str
    timestamp: datetime
    seq: int


class ActivityQueue:
    """
    Bounded queue of activity log writes drained by its own worker tasks.

    Workers are started from the application lifespan, so they are never
    children of a request: cancelling or finishing a request has no effect
    on entries it already submitted. Each write gets its own timeout.
    """

    def __init__(
        self,
        repository: ActivityRepository,
        maxsize: int = 1000,
        workers: int = 2,
        write_timeout: float = 5.0,
    ):
        self._repository = repository
        self._queue: asyncio.Queue[ActivityEntry] = asyncio.Queue(maxsize=maxsize)
        self._worker_count = workers
        self._write_timeout = write_timeout
        self._workers: list[asyncio.Task] = []
        self._closed = False
        self._seq = itertools.count()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self):
        if self._workers:
            return
        self._closed = False
        for n in range(self._worker_count):
            self._workers.append(
                asyncio.create_task(self._run(), name=f"activity-writer-{n}")
            )
        logger.info("activity queue started", workers=self._worker_count)

    def submit(self, task_id: str, action: str, details: str) -> bool:
        """Enqueue one entry without waiting. Returns False if it was dropped."""
        entry = ActivityEntry(task_id, action, details, get_utc_now(), next(self._seq))
        if self._closed:
            logger.warning("activity queue closed, dropping entry", task_id=task_id, action=action)
            return False
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            logger.warning("activity queue full, dropping entry", task_id=task_id, action=action)
            return False
        return True

    async def _run(self):
        while True:
            entry = await self._queue.get()
            try:
                await asyncio.wait_for(
                    self._repository.append(
                        entry.task_id, entry.action, entry.details, entry.timestamp, entry.seq
                    ),
                    timeout=self._write_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "activity write timed out", task_id=entry.task_id, action=entry.action
                )
            except Exception as e:
                logger.warning(
                    "failed to log activity",
                    task_id=entry.task_id,
                    action=entry.action,
                    error=str(e),
                )
            finally:
                self._queue.task_done()

    async def join(self):
        """Wait until every submitted entry has been written or given up on."""
        await self._queue.join()

    async def close(self, timeout: float = 10.0):
        self._closed = True
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("activity queue drain timed out", dropped=self._queue.qsize())

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("activity queue stopped")
