"""SQLite document storage adapter (relational baseline).

Each document is one row of JSON text keyed by its identity. Indexes are
``json_extract`` expression indexes; transactions map onto native
``BEGIN``/``COMMIT``/``ROLLBACK``. Query, update and aggregation semantics
come from the domain services over decoded rows, so results match every
other adapter exactly.

Table Layout:
    documents(id INTEGER PRIMARY KEY, data TEXT NOT NULL)

The connection runs in autocommit mode (``isolation_level=None``) so that
transaction boundaries are exactly the ones issued here.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from docbench.adapters.outbound.base import BaseStorageAdapter, decode_document, encode_document
from docbench.domain.value_objects import ID_FIELD, DocumentId, Query
from docbench.ports.outbound import AdapterCapabilities, StorageError, TransactionError

_CREATE_TABLE = "CREATE TABLE IF NOT EXISTS documents (id INTEGER PRIMARY KEY, data TEXT NOT NULL)"


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _json_path(field: str) -> str:
    return "'$." + field.replace("'", "''") + "'"


class SQLiteTransaction:
    """Native SQLite transaction handle."""

    def __init__(self, adapter: SQLiteStorageAdapter) -> None:
        self._adapter = adapter
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def commit(self) -> None:
        self._finish("COMMIT")

    def rollback(self) -> None:
        self._finish("ROLLBACK")

    def _finish(self, statement: str) -> None:
        if not self._active:
            raise TransactionError("Transaction already finished")
        self._active = False
        self._adapter._transaction = None
        self._adapter._execute(statement)


class SQLiteStorageAdapter(BaseStorageAdapter):
    """Document store over an SQLite database.

    Args:
        strict: Reject unknown operators instead of ignoring them.
        database: SQLite database path; defaults to a private in-memory
            database.
    """

    adapter_name = "sqlite"
    CAPABILITIES = AdapterCapabilities(
        transactions=True,
        indexes=True,
        aggregation=True,
        update_operators=True,
        bulk_operations=True,
    )

    def __init__(self, strict: bool = False, database: str = ":memory:") -> None:
        super().__init__(strict)
        self._database = database
        self._connection: sqlite3.Connection | None = None
        self._next_id = 0
        self._transaction: SQLiteTransaction | None = None
        self._indexes: dict[str, tuple[str, ...]] = {}

    def init(self) -> None:
        if self._connection is not None:
            return
        try:
            self._connection = sqlite3.connect(self._database, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open SQLite database {self._database!r}: {e}") from e
        self._execute(_CREATE_TABLE)
        row = self._execute("SELECT COALESCE(MAX(id), 0) FROM documents").fetchone()
        self._next_id = max(self._next_id, row[0])
        self._logger.debug("adapter_initialized", database=self._database)

    def close(self) -> None:
        if self._connection is None:
            return
        self._transaction = None
        self._connection.close()
        self._connection = None

    def clear(self) -> None:
        self._execute("DELETE FROM documents")

    def _execute(self, sql: str, parameters: Sequence[Any] = ()) -> sqlite3.Cursor:
        if self._connection is None:
            raise StorageError("SQLite adapter is not initialized")
        try:
            return self._connection.execute(sql, parameters)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}") from e

    def _allocate_id(self) -> DocumentId:
        self._next_id += 1
        return DocumentId(self._next_id)

    def _load(self, document_id: DocumentId) -> dict[str, Any] | None:
        row = self._execute("SELECT data FROM documents WHERE id = ?", (document_id,)).fetchone()
        return decode_document(row[0]) if row else None

    def _store(self, document_id: DocumentId, document: dict[str, Any]) -> None:
        self._execute(
            "INSERT OR REPLACE INTO documents (id, data) VALUES (?, ?)",
            (document_id, encode_document(document)),
        )

    def _remove(self, document_id: DocumentId) -> bool:
        return self._execute("DELETE FROM documents WHERE id = ?", (document_id,)).rowcount > 0

    def _scan(self) -> Iterator[dict[str, Any]]:
        rows = self._execute("SELECT data FROM documents ORDER BY id").fetchall()
        return (decode_document(data) for (data,) in rows)

    def _snapshot(self, document: dict[str, Any]) -> dict[str, Any]:
        return document

    def insert(self, document: Mapping[str, Any]) -> DocumentId:
        document_id = self._allocate_id()
        self._store(document_id, {**document, ID_FIELD: document_id})
        return document_id

    def bulk_insert(self, documents: Sequence[Mapping[str, Any]]) -> list[DocumentId]:
        """Insert all documents with one ``executemany``.

        Runs inside its own transaction unless one is already open, so a
        failure leaves no partial batch behind.
        """
        ids = [self._allocate_id() for _ in documents]
        rows = [
            (document_id, encode_document({**document, ID_FIELD: document_id}))
            for document_id, document in zip(ids, documents)
        ]
        if self._connection is None:
            raise StorageError("SQLite adapter is not initialized")

        own_transaction = self._transaction is None
        if own_transaction:
            self._execute("BEGIN")
        try:
            self._connection.executemany("INSERT INTO documents (id, data) VALUES (?, ?)", rows)
        except sqlite3.Error as e:
            if own_transaction:
                self._execute("ROLLBACK")
            raise StorageError(f"SQLite error: {e}") from e
        if own_transaction:
            self._execute("COMMIT")
        return ids

    def count(self, query: Mapping[str, Any] | Query | None = None) -> int:
        if not query:
            return self._execute("SELECT COUNT(*) FROM documents").fetchone()[0]
        return super().count(query)

    def create_index(self, name: str, fields: str | Sequence[str]) -> bool:
        paths = (fields,) if isinstance(fields, str) else tuple(fields)
        if not paths:
            raise ValueError("An index needs at least one field")
        expressions = ", ".join(f"json_extract(data, {_json_path(path)})" for path in paths)
        self._execute(
            f"CREATE INDEX IF NOT EXISTS {_quote_identifier(name)} ON documents ({expressions})"
        )
        self._indexes[name] = paths
        self._logger.debug("index_created", index=name, fields=list(paths))
        return True

    def begin_transaction(self) -> SQLiteTransaction:
        if self._transaction is not None:
            raise TransactionError("A transaction is already open")
        self._execute("BEGIN")
        self._transaction = SQLiteTransaction(self)
        return self._transaction

    def stats(self) -> dict[str, Any]:
        stats = super().stats()
        stats["database"] = self._database
        stats["indexes"] = {name: list(paths) for name, paths in self._indexes.items()}
        stats["in_transaction"] = self._transaction is not None
        return stats
