"""Shared storage adapter behaviour.

Concrete adapters supply a handful of storage primitives (load, store,
remove, scan, allocate an identity) and inherit the query, update and
aggregation paths, which delegate to the domain services. Adapters with a
native engine override individual operations where they can do better.

Capability-gated operations are enforced here: ``create_index`` answers
False, ``aggregate`` and ``begin_transaction`` raise
:class:`UnsupportedOperationError`, unless the adapter's capabilities say
otherwise and it overrides them.
"""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, ClassVar

from docbench.domain.services import AggregationEngine, QueryMatcher, UpdateApplier
from docbench.domain.services.ordering import sort_documents, values_equal
from docbench.domain.services.query_matcher import evaluate
from docbench.domain.value_objects import ID_FIELD, DocumentId, Query, UpdateSpec
from docbench.infrastructure.logging import get_logger
from docbench.ports.outbound import (
    AdapterCapabilities,
    FindOptions,
    StorageError,
    Transaction,
    UnsupportedOperationError,
    UpdateResult,
)


class BaseStorageAdapter(ABC):
    """Template for :class:`~docbench.ports.outbound.StorageAdapter` implementations.

    Subclasses set ``adapter_name`` and ``CAPABILITIES`` and implement the
    abstract primitives. Everything else is derived from them.

    Args:
        strict: Reject unknown query operators, stages and accumulators
            instead of ignoring them.
    """

    adapter_name: ClassVar[str] = "base"
    CAPABILITIES: ClassVar[AdapterCapabilities] = AdapterCapabilities()

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict
        self._matcher = QueryMatcher(strict)
        self._applier = UpdateApplier()
        self._engine = AggregationEngine(strict)
        self._logger = get_logger(__name__, adapter=self.adapter_name)

    @property
    def name(self) -> str:
        return self.adapter_name

    @property
    def capabilities(self) -> AdapterCapabilities:
        return self.CAPABILITIES

    @property
    def strict(self) -> bool:
        return self._strict

    # -- storage primitives -------------------------------------------------

    @abstractmethod
    def init(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def _allocate_id(self) -> DocumentId:
        """Reserve the next identity. Identities are never reused."""

    @abstractmethod
    def _load(self, document_id: DocumentId) -> dict[str, Any] | None:
        ...

    @abstractmethod
    def _store(self, document_id: DocumentId, document: dict[str, Any]) -> None:
        """Create or replace the stored document for ``document_id``."""

    @abstractmethod
    def _remove(self, document_id: DocumentId) -> bool:
        ...

    @abstractmethod
    def _scan(self) -> Iterable[dict[str, Any]]:
        """Yield stored documents in insertion order."""

    def _snapshot(self, document: dict[str, Any]) -> dict[str, Any]:
        """Copy a stored document before it leaves the adapter."""
        return copy.deepcopy(document)

    # -- derived operations -------------------------------------------------

    def insert(self, document: Mapping[str, Any]) -> DocumentId:
        document_id = self._allocate_id()
        stored = copy.deepcopy(dict(document))
        stored[ID_FIELD] = document_id
        self._store(document_id, stored)
        return document_id

    def bulk_insert(self, documents: Sequence[Mapping[str, Any]]) -> list[DocumentId]:
        return [self.insert(document) for document in documents]

    def find(
        self,
        query: Mapping[str, Any] | Query | None = None,
        options: Mapping[str, Any] | FindOptions | None = None,
    ) -> list[dict[str, Any]]:
        compiled = self._matcher.compile(query)
        find_options = FindOptions.from_mapping(options)
        matched = [doc for doc in self._scan() if evaluate(doc, compiled)]
        if find_options.sort:
            matched = sort_documents(matched, find_options.sort)
        return [self._snapshot(doc) for doc in find_options.apply(matched)]

    def find_one(self, query: Mapping[str, Any] | Query | None = None) -> dict[str, Any] | None:
        compiled = self._matcher.compile(query)
        for doc in self._scan():
            if evaluate(doc, compiled):
                return self._snapshot(doc)
        return None

    def count(self, query: Mapping[str, Any] | Query | None = None) -> int:
        compiled = self._matcher.compile(query)
        if compiled.is_empty:
            return sum(1 for _ in self._scan())
        return sum(1 for doc in self._scan() if evaluate(doc, compiled))

    def update(self, document_id: DocumentId, update: Mapping[str, Any]) -> UpdateResult:
        stored = self._load(document_id)
        if stored is None:
            return UpdateResult()
        return self._rewrite(document_id, stored, self._applier.compile(update))

    def update_many(self, query: Mapping[str, Any], update: Mapping[str, Any]) -> UpdateResult:
        compiled = self._matcher.compile(query)
        spec = self._applier.compile(update)
        targets = [doc for doc in self._scan() if evaluate(doc, compiled)]
        result = UpdateResult()
        for stored in targets:
            result += self._rewrite(stored[ID_FIELD], stored, spec)
        return result

    def _rewrite(
        self, document_id: DocumentId, stored: dict[str, Any], spec: UpdateSpec
    ) -> UpdateResult:
        updated = self._applier.apply(stored, spec)
        if values_equal(updated, stored):
            return UpdateResult(matched_count=1, modified_count=0)
        self._store(document_id, updated)
        return UpdateResult(matched_count=1, modified_count=1)

    def delete(self, document_id: DocumentId) -> int:
        return 1 if self._remove(document_id) else 0

    def delete_many(self, query: Mapping[str, Any]) -> int:
        compiled = self._matcher.compile(query)
        doomed = [doc[ID_FIELD] for doc in self._scan() if evaluate(doc, compiled)]
        return sum(1 for document_id in doomed if self._remove(document_id))

    # -- capability-gated operations ----------------------------------------

    def create_index(self, name: str, fields: str | Sequence[str]) -> bool:
        self._logger.debug("index_unsupported", index=name)
        return False

    def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        if not self.capabilities.aggregation:
            raise UnsupportedOperationError(self.name, "aggregation")
        return [self._snapshot(doc) for doc in self._engine.run(self._scan(), pipeline)]

    def begin_transaction(self) -> Transaction:
        raise UnsupportedOperationError(self.name, "transactions")

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "capabilities": self.capabilities.to_dict(),
            "documents": self.count(),
            "strict": self._strict,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(strict={self._strict})"


def encode_document(document: Mapping[str, Any]) -> str:
    """Serialize a document to JSON text for string-backed stores.

    Raises:
        StorageError: The document holds a value JSON cannot represent.
    """
    try:
        return json.dumps(document, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise StorageError(f"Document is not JSON serializable: {e}") from e


def decode_document(text: str | bytes) -> dict[str, Any]:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"Corrupt stored document: {e}") from e
