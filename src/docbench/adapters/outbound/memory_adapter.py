"""In-memory document storage adapter.

The reference engine: an owned ``dict`` of documents keyed by identity,
queried through the domain services. Supports every capability.

Transactions snapshot the table on begin. Stored documents are never
mutated in place (updates replace them with fresh copies), so a shallow copy
of the table is an exact restore point.

Usage:
    adapter = MemoryStorageAdapter()
    adapter.init()
    doc_id = adapter.insert({"name": "Ada", "age": 36})
    adapter.find({"age": {"$gte": 30}})
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from docbench.adapters.outbound.base import BaseStorageAdapter
from docbench.domain.value_objects import DocumentId, Query
from docbench.ports.outbound import AdapterCapabilities, TransactionError


class MemoryTransaction:
    """Snapshot transaction over a :class:`MemoryStorageAdapter`."""

    def __init__(
        self,
        adapter: MemoryStorageAdapter,
        snapshot: dict[DocumentId, dict[str, Any]],
    ) -> None:
        self._adapter = adapter
        self._snapshot = snapshot
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def commit(self) -> None:
        self._finish()

    def rollback(self) -> None:
        self._finish()
        self._adapter._restore(self._snapshot)

    def _finish(self) -> None:
        if not self._active:
            raise TransactionError("Transaction already finished")
        self._active = False
        self._adapter._transaction = None


class MemoryStorageAdapter(BaseStorageAdapter):
    """Full-featured in-memory adapter.

    Attributes:
        indexes: Index name to indexed field paths. Recorded as metadata
            only; every query scans.
    """

    adapter_name = "memory"
    CAPABILITIES = AdapterCapabilities(
        transactions=True,
        indexes=True,
        aggregation=True,
        update_operators=True,
        bulk_operations=True,
    )

    def __init__(self, strict: bool = False) -> None:
        super().__init__(strict)
        self._documents: dict[DocumentId, dict[str, Any]] = {}
        self._next_id = 0
        self._transaction: MemoryTransaction | None = None
        self.indexes: dict[str, tuple[str, ...]] = {}

    def init(self) -> None:
        self._logger.debug("adapter_initialized")

    def close(self) -> None:
        self._documents.clear()
        self.indexes.clear()
        self._transaction = None

    def clear(self) -> None:
        self._documents.clear()

    def _allocate_id(self) -> DocumentId:
        self._next_id += 1
        return DocumentId(self._next_id)

    def _load(self, document_id: DocumentId) -> dict[str, Any] | None:
        return self._documents.get(document_id)

    def _store(self, document_id: DocumentId, document: dict[str, Any]) -> None:
        self._documents[document_id] = document

    def _remove(self, document_id: DocumentId) -> bool:
        return self._documents.pop(document_id, None) is not None

    def _scan(self) -> Iterator[dict[str, Any]]:
        return iter(list(self._documents.values()))

    def count(self, query: Mapping[str, Any] | Query | None = None) -> int:
        if not query:
            return len(self._documents)
        return super().count(query)

    def create_index(self, name: str, fields: str | Sequence[str]) -> bool:
        paths = (fields,) if isinstance(fields, str) else tuple(fields)
        self.indexes[name] = paths
        self._logger.debug("index_created", index=name, fields=list(paths))
        return True

    def begin_transaction(self) -> MemoryTransaction:
        if self._transaction is not None:
            raise TransactionError("A transaction is already open")
        self._transaction = MemoryTransaction(self, dict(self._documents))
        return self._transaction

    def _restore(self, snapshot: dict[DocumentId, dict[str, Any]]) -> None:
        self._documents = snapshot

    def stats(self) -> dict[str, Any]:
        stats = super().stats()
        stats["indexes"] = {name: list(paths) for name, paths in self.indexes.items()}
        stats["in_transaction"] = self._transaction is not None
        return stats
