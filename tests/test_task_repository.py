import pytest

from taskapi.core.errors import NotFoundError
from taskapi.models import TaskCreate, TaskPriority, TaskStatus, TaskUpdate
from taskapi.repositories.tasks import clamp_page


async def _make(repo, title, **kwargs):
    return await repo.create(TaskCreate(title=title, **kwargs))


class TestCreate:
    async def test_assigns_id_and_defaults(self, task_repository):
        task = await _make(task_repository, "Write report")

        assert task.id
        assert task.status == TaskStatus.PENDING
        assert task.priority == TaskPriority.MEDIUM
        assert task.description == ""
        assert task.created_at == task.updated_at
        assert task.created_at.tzinfo is not None

    async def test_keeps_requested_priority(self, task_repository):
        task = await _make(task_repository, "Urgent", priority=TaskPriority.CRITICAL)
        assert task.priority == TaskPriority.CRITICAL

    async def test_ids_are_unique(self, task_repository):
        first = await _make(task_repository, "a")
        second = await _make(task_repository, "b")
        assert first.id != second.id


class TestGet:
    async def test_round_trip(self, task_repository):
        created = await _make(task_repository, "Read me", description="details")
        fetched = await task_repository.get_by_id(created.id)
        assert fetched == created

    async def test_missing(self, task_repository):
        with pytest.raises(NotFoundError) as exc_info:
            await task_repository.get_by_id("does-not-exist")
        assert exc_info.value.task_id == "does-not-exist"


class TestList:
    async def test_orders_newest_first_and_counts_all(self, task_repository):
        for i in range(5):
            await _make(task_repository, f"task {i}")

        tasks, total = await task_repository.list_tasks(page=1, per_page=2)

        assert total == 5
        assert [t.title for t in tasks] == ["task 4", "task 3"]

        tasks, _ = await task_repository.list_tasks(page=3, per_page=2)
        assert [t.title for t in tasks] == ["task 0"]

    async def test_status_filter_applies_to_count(self, task_repository):
        done = await _make(task_repository, "done")
        await _make(task_repository, "open 1")
        await _make(task_repository, "open 2")
        await task_repository.update(done.id, TaskUpdate(status=TaskStatus.COMPLETED))

        tasks, total = await task_repository.list_tasks(1, 20, "pending")

        assert total == 2
        assert {t.title for t in tasks} == {"open 1", "open 2"}
        assert all(t.status == TaskStatus.PENDING for t in tasks)
        assert tasks[0].created_at >= tasks[1].created_at

    async def test_empty(self, task_repository):
        tasks, total = await task_repository.list_tasks(1, 20)
        assert tasks == []
        assert total == 0

    @pytest.mark.parametrize(
        "page, per_page, expected",
        [
            (0, 20, (1, 20)),
            (-3, 10, (1, 10)),
            (2, 0, (2, 20)),
            (1, 101, (1, 20)),
            (4, 100, (4, 100)),
        ],
    )
    def test_clamp_page(self, page, per_page, expected):
        assert clamp_page(page, per_page) == expected


class TestUpdate:
    async def test_merge_patch_only_touches_present_fields(self, task_repository):
        created = await _make(
            task_repository, "Original", description="keep me", priority=TaskPriority.HIGH
        )

        updated = await task_repository.update(
            created.id, TaskUpdate(status=TaskStatus.COMPLETED)
        )

        assert updated.status == TaskStatus.COMPLETED
        assert updated.title == "Original"
        assert updated.description == "keep me"
        assert updated.priority == TaskPriority.HIGH
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at

    async def test_empty_description_is_applied(self, task_repository):
        created = await _make(task_repository, "t", description="something")
        updated = await task_repository.update(created.id, TaskUpdate(description=""))
        assert updated.description == ""

    async def test_missing(self, task_repository):
        with pytest.raises(NotFoundError):
            await task_repository.update("nope", TaskUpdate(title="x"))


class TestDelete:
    async def test_delete_then_missing(self, task_repository):
        created = await _make(task_repository, "bye")

        await task_repository.delete(created.id)

        with pytest.raises(NotFoundError):
            await task_repository.get_by_id(created.id)
        with pytest.raises(NotFoundError):
            await task_repository.delete(created.id)


async def test_ping(task_repository):
    await task_repository.ping()


async def test_init_schema_is_idempotent(task_repository):
    await task_repository.init_schema()
    await _make(task_repository, "still works")
