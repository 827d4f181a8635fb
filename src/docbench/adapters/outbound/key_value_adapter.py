"""Key-value document storage adapter (string-store baseline).

Models a synchronous browser-style string store: every document is a JSON
string under its own key, alongside an id-index key listing live identities
in insertion order and a counter key holding the last assigned identity.
All keys share a prefix, so several adapters can live in one store.

Key Layout:
    {prefix}_counter        last assigned identity
    {prefix}_index          JSON list of live identities
    {prefix}_data_{id}      JSON document

No transactions, indexes or aggregation.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from docbench.adapters.outbound.base import BaseStorageAdapter, decode_document, encode_document
from docbench.domain.services.query_matcher import evaluate
from docbench.domain.value_objects import ID_FIELD, DocumentId
from docbench.ports.outbound import AdapterCapabilities, StorageError


class KeyValueStore:
    """Minimal string store with the browser ``Storage`` surface."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Values must be strings, got {type(value).__name__}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class KeyValueStorageAdapter(BaseStorageAdapter):
    """Document store over a :class:`KeyValueStore`.

    Args:
        strict: Reject unknown operators instead of ignoring them.
        store: Backing store; a private one is created when omitted.
        prefix: Namespace for every key this adapter writes.
    """

    adapter_name = "key_value"
    CAPABILITIES = AdapterCapabilities(
        transactions=False,
        indexes=False,
        aggregation=False,
        update_operators=True,
        bulk_operations=True,
    )

    def __init__(
        self,
        strict: bool = False,
        store: KeyValueStore | None = None,
        prefix: str = "benchmark",
    ) -> None:
        super().__init__(strict)
        self._store_backend = store if store is not None else KeyValueStore()
        self._prefix = prefix
        self._index_key = f"{prefix}_index"
        self._counter_key = f"{prefix}_counter"
        self._data_prefix = f"{prefix}_data_"

    def _data_key(self, document_id: DocumentId) -> str:
        return f"{self._data_prefix}{document_id}"

    def init(self) -> None:
        if self._store_backend.get_item(self._index_key) is None:
            self._store_backend.set_item(self._index_key, "[]")
        if self._store_backend.get_item(self._counter_key) is None:
            self._store_backend.set_item(self._counter_key, "0")
        self._logger.debug("adapter_initialized", prefix=self._prefix)

    def close(self) -> None:
        pass

    def clear(self) -> None:
        for key in self._store_backend.keys():
            if key.startswith(self._data_prefix):
                self._store_backend.remove_item(key)
        self._store_backend.set_item(self._index_key, "[]")

    def _read_index(self) -> list[DocumentId]:
        raw = self._store_backend.get_item(self._index_key)
        if raw is None:
            raise StorageError(f"{self.name} adapter is not initialized")
        return json.loads(raw)

    def _write_index(self, index: list[DocumentId]) -> None:
        self._store_backend.set_item(self._index_key, json.dumps(index))

    def _reserve_ids(self, count: int) -> list[DocumentId]:
        raw = self._store_backend.get_item(self._counter_key)
        if raw is None:
            raise StorageError(f"{self.name} adapter is not initialized")
        start = int(raw)
        self._store_backend.set_item(self._counter_key, str(start + count))
        return [DocumentId(start + offset) for offset in range(1, count + 1)]

    def _allocate_id(self) -> DocumentId:
        return self._reserve_ids(1)[0]

    def _load(self, document_id: DocumentId) -> dict[str, Any] | None:
        raw = self._store_backend.get_item(self._data_key(document_id))
        return decode_document(raw) if raw is not None else None

    def _store(self, document_id: DocumentId, document: dict[str, Any]) -> None:
        key = self._data_key(document_id)
        is_new = self._store_backend.get_item(key) is None
        self._store_backend.set_item(key, encode_document(document))
        if is_new:
            index = self._read_index()
            index.append(document_id)
            self._write_index(index)

    def _remove(self, document_id: DocumentId) -> bool:
        key = self._data_key(document_id)
        if self._store_backend.get_item(key) is None:
            return False
        self._store_backend.remove_item(key)
        self._write_index([i for i in self._read_index() if i != document_id])
        return True

    def _scan(self) -> Iterator[dict[str, Any]]:
        for document_id in self._read_index():
            document = self._load(document_id)
            if document is not None:
                yield document

    def _snapshot(self, document: dict[str, Any]) -> dict[str, Any]:
        return document

    def insert(self, document: Mapping[str, Any]) -> DocumentId:
        document_id = self._allocate_id()
        self._store(document_id, {**document, ID_FIELD: document_id})
        return document_id

    def bulk_insert(self, documents: Sequence[Mapping[str, Any]]) -> list[DocumentId]:
        """Write every document, then the id index once."""
        ids = self._reserve_ids(len(documents))
        rows = [
            (self._data_key(document_id), encode_document({**document, ID_FIELD: document_id}))
            for document_id, document in zip(ids, documents)
        ]
        index = self._read_index()
        for key, value in rows:
            self._store_backend.set_item(key, value)
        index.extend(ids)
        self._write_index(index)
        return ids

    def delete_many(self, query: Mapping[str, Any]) -> int:
        compiled = self._matcher.compile(query)
        doomed = {doc[ID_FIELD] for doc in self._scan() if evaluate(doc, compiled)}
        if not doomed:
            return 0
        for document_id in doomed:
            self._store_backend.remove_item(self._data_key(document_id))
        self._write_index([i for i in self._read_index() if i not in doomed])
        return len(doomed)

    def stats(self) -> dict[str, Any]:
        stats = super().stats()
        stats["prefix"] = self._prefix
        stats["keys"] = sum(1 for key in self._store_backend.keys() if key.startswith(self._prefix))
        return stats
