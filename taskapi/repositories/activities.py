from datetime import datetime

from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from taskapi.core.errors import AuditError, StoreError
from taskapi.models import ActivityLog

DEFAULT_TASK_LIMIT = 50
DEFAULT_RECENT_LIMIT = 20

# BSON dates keep milliseconds only, seq breaks ties within one millisecond
NEWEST_FIRST = [("timestamp", DESCENDING), ("seq", DESCENDING)]


def _to_activity(doc: dict) -> ActivityLog:
    return ActivityLog(
        id=str(doc["_id"]) if doc.get("_id") is not None else None,
        task_id=doc["task_id"],
        action=doc["action"],
        details=doc.get("details", ""),
        timestamp=doc["timestamp"],
    )


class ActivityRepository:
    """Append-only activity log kept in a MongoDB collection."""

    def __init__(self, collection: AsyncCollection):
        self._collection = collection

    async def init_indexes(self):
        try:
            await self._collection.create_index(
                [("task_id", ASCENDING), *NEWEST_FIRST]
            )
            await self._collection.create_index(NEWEST_FIRST)
        except PyMongoError as e:
            raise AuditError(f"failed to create activity indexes: {e}") from e

    async def append(
        self, task_id: str, action: str, details: str, timestamp: datetime, seq: int = 0
    ):
        doc = {
            "task_id": task_id,
            "action": action,
            "details": details,
            "timestamp": timestamp,
            "seq": seq,
        }
        try:
            await self._collection.insert_one(doc)
        except PyMongoError as e:
            raise AuditError(f"failed to log activity: {e}") from e

    async def list_by_task(self, task_id: str, limit: int = DEFAULT_TASK_LIMIT) -> list[ActivityLog]:
        if limit <= 0:
            limit = DEFAULT_TASK_LIMIT
        return await self._find({"task_id": task_id}, limit)

    async def list_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[ActivityLog]:
        if limit <= 0:
            limit = DEFAULT_RECENT_LIMIT
        return await self._find({}, limit)

    async def _find(self, query: dict, limit: int) -> list[ActivityLog]:
        try:
            cursor = self._collection.find(query).sort(NEWEST_FIRST).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise StoreError(f"failed to get activities: {e}") from e
        return [_to_activity(doc) for doc in docs]

    async def ping(self):
        try:
            await self._collection.database.client.admin.command("ping")
        except PyMongoError as e:
            raise StoreError(f"mongodb ping failed: {e}") from e
