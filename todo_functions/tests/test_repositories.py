from datetime import datetime, timezone

import pytest

from src.backend.db import SQLiteRepository
from src.backend.errors import NotFoundError, TransientRepositoryError, ValidationError
from src.backend.repositories import InMemoryRepository, get_repository
from src.backend.settings import Settings

NOW = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "data" / "todos.db"))
    return InMemoryRepository()


def todo_fields(title="T", content="C", done=False):
    return {"title": title, "content": content, "done": done, "created_at": NOW, "updated_at": NOW}


class TestDocuments:
    @pytest.mark.asyncio
    async def test_insert_and_snapshot(self, repository):
        ref = repository.collection("todos").doc()
        await ref.insert(todo_fields())

        doc = await ref.snapshot()
        assert doc == {"id": ref.id, **todo_fields()}

    @pytest.mark.asyncio
    async def test_snapshot_of_absent_document(self, repository):
        assert await repository.collection("todos").doc("nope").snapshot() is None

    @pytest.mark.asyncio
    async def test_insert_existing_id_fails(self, repository):
        ref = repository.collection("todos").doc("fixed")
        await ref.insert(todo_fields())
        with pytest.raises(ValidationError):
            await ref.insert(todo_fields(title="again"))

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, repository):
        ref = repository.collection("todos").doc()
        await ref.insert(todo_fields())
        await ref.update({"title": "New"})

        doc = await ref.snapshot()
        assert doc["title"] == "New"
        assert doc["content"] == "C"

    @pytest.mark.asyncio
    async def test_update_absent_document_fails(self, repository):
        with pytest.raises(NotFoundError):
            await repository.collection("todos").doc("nope").update({"title": "x"})

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, repository):
        ref = repository.collection("todos").doc()
        await ref.insert(todo_fields())
        await ref.delete()
        await ref.delete()
        assert await ref.snapshot() is None

    @pytest.mark.asyncio
    async def test_query_filters_by_equality(self, repository):
        todos = repository.collection("todos")
        await todos.doc("a").insert(todo_fields(title="a", done=True))
        await todos.doc("b").insert(todo_fields(title="b", done=False))
        await todos.doc("c").insert(todo_fields(title="c", done=True))

        done = await todos.query({"done": True})
        assert sorted(d["id"] for d in done) == ["a", "c"]
        assert len(await todos.query()) == 3


class TestTransactions:
    @pytest.mark.asyncio
    async def test_writes_apply_together(self, repository):
        todos = repository.collection("todos")
        for doc_id in ("a", "b"):
            await todos.doc(doc_id).insert(todo_fields(done=True))

        async def sweep(txn):
            await todos.doc("a").delete(txn)
            await todos.doc("b").delete(txn)
            # nothing is visible before commit
            assert await todos.doc("a").snapshot() is not None

        await repository.run_in_transaction(sweep)
        assert await todos.query() == []

    @pytest.mark.asyncio
    async def test_failed_write_rolls_back_batch(self, repository):
        todos = repository.collection("todos")
        await todos.doc("a").insert(todo_fields())

        async def broken(txn):
            await todos.doc("a").delete(txn)
            await todos.doc("missing").update({"title": "x"}, txn)

        with pytest.raises(NotFoundError):
            await repository.run_in_transaction(broken)
        assert await todos.doc("a").snapshot() is not None

    @pytest.mark.asyncio
    async def test_callback_error_discards_writes(self, repository):
        todos = repository.collection("todos")
        await todos.doc("a").insert(todo_fields())

        async def aborted(txn):
            await todos.doc("a").delete(txn)
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            await repository.run_in_transaction(aborted)
        assert await todos.doc("a").snapshot() is not None


class TestUpdateListeners:
    @pytest.mark.asyncio
    async def test_listener_sees_before_and_after(self, repository):
        seen = []

        async def listener(collection, before, after):
            seen.append((collection, before["title"], after["title"]))

        repository.add_update_listener(listener)
        ref = repository.collection("todos").doc()
        await ref.insert(todo_fields(title="old"))
        await ref.update({"title": "new"})
        await ref.delete()

        assert seen == [("todos", "old", "new")]


class TestFactory:
    def test_memory_backend(self):
        assert isinstance(get_repository(Settings(persistence_backend="memory")), InMemoryRepository)

    def test_sqlite_backend(self, tmp_path):
        repo = get_repository(Settings(persistence_backend="sqlite", sqlite_db_path=str(tmp_path / "t.db")))
        assert isinstance(repo, SQLiteRepository)

    @pytest.mark.asyncio
    async def test_sqlite_rejects_other_collections(self, tmp_path):
        repo = SQLiteRepository(str(tmp_path / "t.db"))
        with pytest.raises(ValidationError):
            await repo.collection("notes").query()

    @pytest.mark.asyncio
    async def test_sqlite_database_errors_are_transient(self, tmp_path):
        path = tmp_path / "t.db"
        repo = SQLiteRepository(str(path))
        path.write_bytes(b"x" * 4096)
        with pytest.raises(TransientRepositoryError):
            await repo.collection("todos").query()
