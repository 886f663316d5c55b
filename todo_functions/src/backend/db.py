from __future__ import annotations

import asyncio
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

from .errors import NotFoundError, TransientRepositoryError, ValidationError
from .models import TODOS_COLLECTION
from .repositories import Document, Repository, StagedWrite, UpdateChange


@dataclass(frozen=True)
class _Cols:
    table: str = TODOS_COLLECTION
    id: str = "id"
    title: str = "title"
    content: str = "content"
    done: str = "done"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()
_FIELDS = (_COLS.id, _COLS.title, _COLS.content, _COLS.done, _COLS.created_at, _COLS.updated_at)
_DATETIME_FIELDS = {_COLS.created_at, _COLS.updated_at}


class SQLiteRepository(Repository):
    """
    SQLite-backed store for the `todos` collection. Blocking sqlite3 calls run
    in worker threads; every commit runs in a single sqlite transaction.
    """

    def __init__(self, db_path: str) -> None:
        super().__init__()
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.DatabaseError as exc:
            raise TransientRepositoryError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.DatabaseError as exc:
            raise TransientRepositoryError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.content} TEXT NOT NULL,
                    {_COLS.done} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_done ON {_COLS.table}({_COLS.done})"
            )

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection != TODOS_COLLECTION:
            raise ValidationError(f"Unknown collection '{collection}'")

    @staticmethod
    def _to_db(field: str, value: Any) -> Any:
        if field == _COLS.done:
            return 1 if value else 0
        if field in _DATETIME_FIELDS and isinstance(value, datetime):
            return value.isoformat()
        return value

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> Document:
        return {
            _COLS.id: str(row[_COLS.id]),
            _COLS.title: str(row[_COLS.title]),
            _COLS.content: str(row[_COLS.content]),
            _COLS.done: bool(row[_COLS.done]),
            _COLS.created_at: datetime.fromisoformat(row[_COLS.created_at]),
            _COLS.updated_at: datetime.fromisoformat(row[_COLS.updated_at]),
        }

    def _select(self, conn: sqlite3.Connection, doc_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (doc_id,)
        ).fetchone()

    def _get_sync(self, doc_id: str) -> Optional[Document]:
        with self._conn() as conn:
            row = self._select(conn, doc_id)
            return self._row_to_doc(row) if row else None

    def _query_sync(self, filters: Dict[str, Any]) -> List[Document]:
        clauses = []
        params: list = []
        for field, value in filters.items():
            if field not in _FIELDS:
                raise ValidationError(f"Cannot filter on unknown field '{field}'")
            clauses.append(f"{field} = ?")
            params.append(self._to_db(field, value))
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} {where_sql} ORDER BY {_COLS.created_at} ASC, rowid ASC",
                params,
            ).fetchall()
            return [self._row_to_doc(r) for r in rows]

    def _insert_sync(self, doc_id: str, data: Document) -> Document:
        values = [self._to_db(f, data.get(f)) for f in _FIELDS]
        values[0] = doc_id
        with self._conn() as conn:
            try:
                conn.execute(
                    f"INSERT INTO {_COLS.table} ({', '.join(_FIELDS)}) VALUES (?, ?, ?, ?, ?, ?)",
                    values,
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(f"Cannot insert document '{doc_id}': {exc}") from exc
            row = self._select(conn, doc_id)
            assert row is not None
            return self._row_to_doc(row)

    def _apply_sync(self, writes: List[StagedWrite]) -> List[UpdateChange]:
        changes: List[UpdateChange] = []
        # Leaving the block through an exception closes without commit, rolling back every write.
        with self._conn() as conn:
            for write in writes:
                self._check_collection(write.collection)
                if write.kind == "delete":
                    conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (write.doc_id,))
                    continue
                row = self._select(conn, write.doc_id)
                if row is None:
                    raise NotFoundError(write.doc_id, write.collection)
                before = self._row_to_doc(row)
                fields = {k: v for k, v in (write.fields or {}).items() if k in _FIELDS and k != _COLS.id}
                if fields:
                    assignments = ", ".join(f"{k} = ?" for k in fields)
                    conn.execute(
                        f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ?",
                        [*(self._to_db(k, v) for k, v in fields.items()), write.doc_id],
                    )
                row2 = self._select(conn, write.doc_id)
                assert row2 is not None
                changes.append((write.collection, before, self._row_to_doc(row2)))
        return changes

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check_collection(collection)
        return await asyncio.to_thread(self._get_sync, doc_id)

    async def query(self, collection: str, filters: Dict[str, Any]) -> List[Document]:
        self._check_collection(collection)
        return await asyncio.to_thread(self._query_sync, filters)

    async def insert(self, collection: str, doc_id: str, data: Document) -> Document:
        self._check_collection(collection)
        return await asyncio.to_thread(self._insert_sync, doc_id, data)

    async def apply(self, writes: List[StagedWrite]) -> List[UpdateChange]:
        return await asyncio.to_thread(self._apply_sync, writes)
