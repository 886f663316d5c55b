import pytest

from src.backend.cleanup import clean_todos
from src.backend.db import SQLiteRepository
from src.backend.errors import NotFoundError, ValidationError
from src.backend.repositories import InMemoryRepository


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_sets_defaults(self, service):
        todo_id = await service.create("Buy milk", "2%")
        todo = await service.read_by_id(todo_id)

        assert todo["id"] == todo_id
        assert todo["title"] == "Buy milk"
        assert todo["content"] == "2%"
        assert todo["done"] is False
        assert todo["created_at"] == todo["updated_at"]

    @pytest.mark.asyncio
    async def test_create_strips_whitespace(self, service):
        todo_id = await service.create("  Walk dog ", "\tpark\n")
        todo = await service.read_by_id(todo_id)
        assert todo["title"] == "Walk dog"
        assert todo["content"] == "park"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "title,content",
        [("", "body"), ("title", ""), (None, "body"), ("title", None), ("   ", "body")],
    )
    async def test_create_requires_title_and_content(self, service, title, content):
        with pytest.raises(ValidationError):
            await service.create(title, content)
        assert await service.read_all() == []

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, service):
        ids = {await service.create(f"T{i}", "c") for i in range(20)}
        assert len(ids) == 20

    @pytest.mark.asyncio
    async def test_read_all_is_restartable(self, service):
        await service.create("A", "1")
        await service.create("B", "2")

        first = await service.read_all()
        second = await service.read_all()
        assert [t["title"] for t in first] == ["A", "B"]
        assert first == second

    @pytest.mark.asyncio
    async def test_read_all_returns_copies(self, service):
        todo_id = await service.create("A", "1")
        todos = await service.read_all()
        todos[0]["title"] = "mutated"
        assert (await service.read_by_id(todo_id))["title"] == "A"

    @pytest.mark.asyncio
    async def test_read_by_id_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.read_by_id("does-not-exist")

    @pytest.mark.asyncio
    async def test_read_by_id_requires_id(self, service):
        with pytest.raises(ValidationError):
            await service.read_by_id("")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, service):
        todo_id = await service.create("A", "B")
        await service.update(todo_id, title="A2")

        todo = await service.read_by_id(todo_id)
        assert todo["title"] == "A2"
        assert todo["content"] == "B"
        assert todo["done"] is False

    @pytest.mark.asyncio
    async def test_update_content_only(self, service):
        todo_id = await service.create("A", "B")
        await service.update(todo_id, content="B2")
        todo = await service.read_by_id(todo_id)
        assert (todo["title"], todo["content"]) == ("A", "B2")

    @pytest.mark.asyncio
    async def test_empty_update_fails_and_leaves_document(self, service):
        todo_id = await service.create("A", "B")
        before = await service.read_by_id(todo_id)

        with pytest.raises(ValidationError, match="No fields to update"):
            await service.update(todo_id)
        with pytest.raises(ValidationError):
            await service.update(todo_id, title="", content="  ")

        assert await service.read_by_id(todo_id) == before

    @pytest.mark.asyncio
    async def test_update_missing_document(self, service):
        with pytest.raises(NotFoundError):
            await service.update("missing", title="x")

    @pytest.mark.asyncio
    async def test_update_stamps_updated_at_but_not_created_at(self, service):
        todo_id = await service.create("A", "B")
        before = await service.read_by_id(todo_id)

        await service.update(todo_id, title="A2")
        after = await service.read_by_id(todo_id)

        assert after["created_at"] == before["created_at"]
        assert after["updated_at"] > before["updated_at"]

    @pytest.mark.asyncio
    async def test_same_value_update_does_not_stamp(self, service):
        todo_id = await service.create("A", "B")
        before = await service.read_by_id(todo_id)

        await service.update(todo_id, title="A")
        assert (await service.read_by_id(todo_id))["updated_at"] == before["updated_at"]


class TestToggle:
    @pytest.mark.asyncio
    async def test_toggle_round_trip(self, service):
        todo_id = await service.create("A", "B")
        created = await service.read_by_id(todo_id)

        await service.toggle(todo_id, True)
        done = await service.read_by_id(todo_id)
        assert done["done"] is True
        assert done["updated_at"] >= created["updated_at"]

        await service.toggle(todo_id, False)
        undone = await service.read_by_id(todo_id)
        assert undone["done"] is False
        assert undone["updated_at"] >= done["updated_at"]
        assert undone["created_at"] == created["created_at"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw,expected", [("true", True), ("FALSE", False), ("1", True), ("off", False)])
    async def test_toggle_parses_strings(self, service, raw, expected):
        todo_id = await service.create("A", "B")
        assert await service.toggle(todo_id, raw) is expected
        assert (await service.read_by_id(todo_id))["done"] is expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["maybe", "", None, 2])
    async def test_toggle_rejects_non_boolean(self, service, raw):
        todo_id = await service.create("A", "B")
        with pytest.raises(ValidationError):
            await service.toggle(todo_id, raw)
        assert (await service.read_by_id(todo_id))["done"] is False

    @pytest.mark.asyncio
    async def test_toggle_requires_id(self, service):
        with pytest.raises(ValidationError):
            await service.toggle(None, True)

    @pytest.mark.asyncio
    async def test_toggle_missing_document(self, service):
        with pytest.raises(NotFoundError):
            await service.toggle("missing", True)

    @pytest.mark.asyncio
    async def test_toggle_only_touches_done(self, service):
        todo_id = await service.create("A", "B")
        await service.toggle(todo_id, "true")
        todo = await service.read_by_id(todo_id)
        assert (todo["title"], todo["content"]) == ("A", "B")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete(self, service):
        todo_id = await service.create("A", "B")
        await service.delete(todo_id)
        with pytest.raises(NotFoundError):
            await service.read_by_id(todo_id)

    @pytest.mark.asyncio
    async def test_delete_absent_id_is_silent(self, service):
        await service.delete("never-existed")
        todo_id = await service.create("A", "B")
        await service.delete(todo_id)
        await service.delete(todo_id)
        assert await service.read_all() == []

    @pytest.mark.asyncio
    async def test_delete_requires_id(self, service):
        with pytest.raises(ValidationError):
            await service.delete("  ")


class TestScenarios:
    @pytest.mark.asyncio
    async def test_create_toggle_cleanup(self, service, context):
        id1 = await service.create("Buy milk", "2%")
        todos = await service.read_all()
        assert [t["title"] for t in todos].count("Buy milk") == 1

        await service.toggle(id1, True)
        await clean_todos(context)

        assert id1 not in {t["id"] for t in await service.read_all()}

    @pytest.mark.asyncio
    async def test_create_then_partial_update(self, service):
        id2 = await service.create("A", "B")
        await service.update(id2, title="A2")
        todo = await service.read_by_id(id2)
        assert todo["title"] == "A2"
        assert todo["content"] == "B"

    @pytest.mark.asyncio
    async def test_toggle_restamps_after_storage_round_trip(self, service, context, settings):
        expected = SQLiteRepository if settings.persistence_backend == "sqlite" else InMemoryRepository
        assert isinstance(context.repository, expected)

        todo_id = await service.create("Water plants", "balcony")
        created = await service.read_by_id(todo_id)
        await service.toggle(todo_id, True)
        toggled = await service.read_by_id(todo_id)

        assert toggled["created_at"] == created["created_at"]
        assert toggled["updated_at"] > created["updated_at"]
        assert await clean_todos(context) == 1
        assert await service.read_all() == []
