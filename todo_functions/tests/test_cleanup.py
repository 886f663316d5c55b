import pytest

from src.backend.bindings import bind_triggers, register_functions
from src.backend.cleanup import clean_todos
from src.backend.context import ServiceContext
from src.backend.errors import TransientRepositoryError, ValidationError
from src.backend.registry import FunctionRegistry
from src.backend.repositories import InMemoryRepository
from src.backend.services import TodoService


class FlakyDeleteRepository(InMemoryRepository):
    """Fails any commit containing a delete, like a dropped connection mid-batch."""

    def __init__(self):
        super().__init__()
        self.fail_deletes = True

    async def apply(self, writes):
        if self.fail_deletes and any(w.kind == "delete" for w in writes):
            raise TransientRepositoryError("connection reset")
        return await super().apply(writes)


async def seed(service, done_flags):
    ids = []
    for i, done in enumerate(done_flags):
        todo_id = await service.create(f"Todo {i}", "c")
        if done:
            await service.toggle(todo_id, True)
        ids.append(todo_id)
    return ids


class TestCleanTodos:
    @pytest.mark.asyncio
    async def test_removes_only_done_todos(self, service, context):
        ids = await seed(service, [True, False, True, False])

        deleted = await clean_todos(context)

        assert deleted == 2
        remaining = {t["id"] for t in await service.read_all()}
        assert remaining == {ids[1], ids[3]}

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, service, context):
        await seed(service, [True, False])
        await clean_todos(context)
        snapshot = await service.read_all()

        assert await clean_todos(context) == 0
        assert await service.read_all() == snapshot

    @pytest.mark.asyncio
    async def test_empty_collection(self, context):
        assert await clean_todos(context) == 0

    @pytest.mark.asyncio
    async def test_already_deleted_ids_in_batch_are_fine(self, service, context):
        ids = await seed(service, [True, True])
        collection = context.todos()

        async def delete_twice(txn):
            await collection.doc(ids[0]).delete(txn)
            await collection.doc(ids[0]).delete(txn)

        await context.repository.run_in_transaction(delete_twice)
        assert await clean_todos(context) == 1

    @pytest.mark.asyncio
    async def test_failure_deletes_nothing_and_next_run_retries(self, settings, clock):
        repository = FlakyDeleteRepository()
        context = ServiceContext(
            repository=repository,
            registry=register_functions(FunctionRegistry(), settings),
            clock=clock,
        )
        bind_triggers(context)
        service = TodoService(context)
        await seed(service, [True, True, False])

        with pytest.raises(TransientRepositoryError):
            await clean_todos(context)
        assert len(await service.read_all()) == 3

        repository.fail_deletes = False
        assert await clean_todos(context) == 2
        assert len(await service.read_all()) == 1

    @pytest.mark.asyncio
    async def test_manual_and_scheduled_share_implementation(self, context):
        registry = context.registry
        assert registry.executable("cleanTodos").handler is clean_todos
        assert registry.schedules["cleanTodosOnSchedule"].handler is clean_todos

    @pytest.mark.asyncio
    async def test_executable_runs_cleanup(self, service, context):
        await seed(service, [True])
        assert await context.execute_function("cleanTodos") == 1
        assert await service.read_all() == []

    @pytest.mark.asyncio
    async def test_executable_rejects_unexpected_arguments(self, service, context):
        await seed(service, [True])
        with pytest.raises(ValidationError):
            await context.execute_function("cleanTodos", 1)
        assert len(await service.read_all()) == 1
