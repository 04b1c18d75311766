import uuid

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskapi.core.errors import NotFoundError, StoreError
from taskapi.database import create_db_and_tables
from taskapi.models import (
    Task,
    TaskCreate,
    TaskPriority,
    TaskRead,
    TaskStatus,
    TaskUpdate,
    get_utc_now,
)

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def clamp_page(page: int, per_page: int) -> tuple[int, int]:
    if page < 1:
        page = 1
    if per_page < 1 or per_page > MAX_PER_PAGE:
        per_page = DEFAULT_PER_PAGE
    return page, per_page


class TaskRepository:
    """PostgreSQL-backed owner of task rows."""

    def __init__(
        self, engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]
    ):
        self._engine = engine
        self._session_factory = session_factory

    async def init_schema(self):
        try:
            await create_db_and_tables(self._engine)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to initialize schema: {e}") from e

    async def create(self, task_data: TaskCreate) -> TaskRead:
        now = get_utc_now()
        task = Task(
            id=str(uuid.uuid4()),
            title=task_data.title,
            description=task_data.description or "",
            status=TaskStatus.PENDING.value,
            priority=(task_data.priority or TaskPriority.MEDIUM).value,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as db:
                db.add(task)
                await db.commit()
                await db.refresh(task)
                return TaskRead.model_validate(task)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to create task: {e}") from e

    async def get_by_id(self, task_id: str) -> TaskRead:
        try:
            async with self._session_factory() as db:
                task = await db.get(Task, task_id)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to get task: {e}") from e
        if task is None:
            raise NotFoundError(task_id)
        return TaskRead.model_validate(task)

    async def list_tasks(
        self, page: int, per_page: int, status: str | None = None
    ) -> tuple[list[TaskRead], int]:
        page, per_page = clamp_page(page, per_page)
        offset = (page - 1) * per_page

        count_query = select(func.count()).select_from(Task)
        query = select(Task)
        if status:
            count_query = count_query.where(Task.status == status)
            query = query.where(Task.status == status)
        query = query.order_by(Task.created_at.desc()).offset(offset).limit(per_page)

        try:
            async with self._session_factory() as db:
                total = (await db.exec(count_query)).one()
                rows = (await db.exec(query)).all()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to list tasks: {e}") from e

        return [TaskRead.model_validate(row) for row in rows], total

    async def update(self, task_id: str, task_data: TaskUpdate) -> TaskRead:
        update_data = task_data.changes()
        try:
            async with self._session_factory() as db:
                task = await db.get(Task, task_id)
                if task is None:
                    raise NotFoundError(task_id)
                task.sqlmodel_update(update_data)
                task.updated_at = get_utc_now()
                db.add(task)
                await db.commit()
                await db.refresh(task)
                return TaskRead.model_validate(task)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to update task: {e}") from e

    async def delete(self, task_id: str):
        try:
            async with self._session_factory() as db:
                task = await db.get(Task, task_id)
                if task is None:
                    raise NotFoundError(task_id)
                await db.delete(task)
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to delete task: {e}") from e

    async def ping(self):
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError(f"database ping failed: {e}") from e
