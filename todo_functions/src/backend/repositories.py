from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from .errors import NotFoundError, ValidationError
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
# (collection, before, after) for every committed update
UpdateChange = Tuple[str, Document, Document]
UpdateListener = Callable[[str, Document, Document], Awaitable[None]]

T = TypeVar("T")


@dataclass(frozen=True)
class StagedWrite:
    """A single write waiting to be committed."""
    kind: str  # "update" or "delete"
    collection: str
    doc_id: str
    fields: Optional[Dict[str, Any]] = None


class Transaction:
    """
    Collects writes issued inside run_in_transaction. Nothing is visible to
    readers until the callback returns and the whole batch is committed.
    """

    def __init__(self) -> None:
        self.id = uuid.uuid4().hex
        self.writes: List[StagedWrite] = []
        self._finished = False

    def stage(self, write: StagedWrite) -> None:
        if self._finished:
            raise RuntimeError(f"Transaction {self.id} is already finished")
        self.writes.append(write)

    def finish(self) -> List[StagedWrite]:
        self._finished = True
        return list(self.writes)


class DocumentRef:
    """Handle on one document id inside a collection."""

    def __init__(self, repository: "Repository", collection: str, doc_id: str) -> None:
        self._repository = repository
        self.collection = collection
        self.id = doc_id

    async def insert(self, fields: Mapping[str, Any]) -> Document:
        """Insert the document. Fails with ValidationError if the id is taken."""
        data = dict(fields)
        data["id"] = self.id
        return await self._repository.insert(self.collection, self.id, data)

    async def update(self, fields: Mapping[str, Any], txn: Optional[Transaction] = None) -> None:
        """Merge fields into the document. Fails with NotFoundError if it does not exist."""
        write = StagedWrite("update", self.collection, self.id, dict(fields))
        if txn is not None:
            txn.stage(write)
            return
        await self._repository.commit([write])

    async def delete(self, txn: Optional[Transaction] = None) -> None:
        """Delete the document. Deleting an absent document succeeds."""
        write = StagedWrite("delete", self.collection, self.id)
        if txn is not None:
            txn.stage(write)
            return
        await self._repository.commit([write])

    async def snapshot(self) -> Optional[Document]:
        return await self._repository.get(self.collection, self.id)


class Collection:
    """Named set of documents; entry point for refs and queries."""

    def __init__(self, repository: "Repository", name: str) -> None:
        self._repository = repository
        self.name = name

    def doc(self, doc_id: Optional[str] = None) -> DocumentRef:
        """Return a ref for doc_id, or for a freshly allocated id when omitted."""
        return DocumentRef(self._repository, self.name, doc_id or self._repository.new_id())

    async def query(self, filters: Optional[Mapping[str, Any]] = None) -> List[Document]:
        """
        Return copies of all documents whose fields equal every value in filters.
        Each call runs a fresh query; no cursor is kept.
        """
        return await self._repository.query(self.name, dict(filters or {}))


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract document store contract consumed by the todo functions.

    Backends implement get/query/insert/apply; this base class provides the
    collection/ref facade, transactions, and update notifications.
    """

    def __init__(self) -> None:
        self._update_listeners: List[UpdateListener] = []

    def collection(self, name: str) -> Collection:
        return Collection(self, name)

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def add_update_listener(self, listener: UpdateListener) -> None:
        """Register a coroutine called with (collection, before, after) after each committed update."""
        self._update_listeners.append(listener)

    async def run_in_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """
        Run fn with a fresh Transaction and commit its staged writes as one unit.
        If fn raises, or the commit fails, none of the staged writes are applied.
        """
        txn = Transaction()
        result = await fn(txn)
        writes = txn.finish()
        if writes:
            await self.commit(writes)
        return result

    async def commit(self, writes: List[StagedWrite]) -> None:
        changes = await self.apply(writes)
        for collection, before, after in changes:
            for listener in list(self._update_listeners):
                await listener(collection, before, after)

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return a copy of the document, or None if absent."""

    @abstractmethod
    async def query(self, collection: str, filters: Dict[str, Any]) -> List[Document]:
        """Return copies of documents matching all equality filters."""

    @abstractmethod
    async def insert(self, collection: str, doc_id: str, data: Document) -> Document:
        """Insert a new document and return a copy of it."""

    @abstractmethod
    async def apply(self, writes: List[StagedWrite]) -> List[UpdateChange]:
        """
        Apply all writes atomically. Raise NotFoundError (and apply nothing)
        if an update targets a missing document. Return the committed updates.
        """


class InMemoryRepository(Repository):
    """
    In-memory document store suitable for testing and the default runtime.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = asyncio.Lock()
        self._collections: Dict[str, Dict[str, Document]] = {}

    def _docs(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self._lock:
            item = self._docs(collection).get(doc_id)
            return None if item is None else dict(item)

    async def query(self, collection: str, filters: Dict[str, Any]) -> List[Document]:
        async with self._lock:
            return [
                dict(doc)
                for doc in self._docs(collection).values()
                if all(doc.get(k) == v for k, v in filters.items())
            ]

    async def insert(self, collection: str, doc_id: str, data: Document) -> Document:
        async with self._lock:
            docs = self._docs(collection)
            if doc_id in docs:
                raise ValidationError(f"Document '{doc_id}' already exists in '{collection}'")
            docs[doc_id] = dict(data)
            return dict(data)

    async def apply(self, writes: List[StagedWrite]) -> List[UpdateChange]:
        async with self._lock:
            # Work on copies so a failing write leaves every collection untouched.
            staged = {name: dict(self._docs(name)) for name in {w.collection for w in writes}}
            changes: List[UpdateChange] = []
            for write in writes:
                docs = staged[write.collection]
                if write.kind == "delete":
                    docs.pop(write.doc_id, None)
                    continue
                before = docs.get(write.doc_id)
                if before is None:
                    raise NotFoundError(write.doc_id, write.collection)
                after = {**before, **(write.fields or {}), "id": write.doc_id}
                docs[write.doc_id] = after
                changes.append((write.collection, dict(before), dict(after)))
            self._collections.update(staged)
        return changes


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository (stdlib sqlite3)
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        logger.info("Using SQLite repository at %s", settings.sqlite_db_path)
        return SQLiteRepository(settings.sqlite_db_path)
    logger.info("Using in-memory repository")
    return InMemoryRepository()
