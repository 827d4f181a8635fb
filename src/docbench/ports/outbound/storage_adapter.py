"""Storage Adapter port: the uniform contract every backend implements.

The benchmark runner drives every backend (the reference engine and each
comparison baseline) exclusively through this protocol, so no scenario needs
backend-specific branching. Optional operations are gated by an explicit
:class:`AdapterCapabilities` descriptor that callers consult once, before
dispatch, instead of probing for methods at runtime.

Behavioural guarantees:
    - ``find``/``count``/``update_many``/``delete_many`` follow the query
      matcher's semantics exactly, whatever the backend.
    - Inserted documents are copied; identities are assigned exactly once
      and never reused within an adapter instance.
    - ``create_index`` returns False instead of raising when indexes are
      unsupported.
    - ``aggregate`` and ``begin_transaction`` raise
      :class:`UnsupportedOperationError` when the capability is absent.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from docbench.domain.value_objects import DocumentId, SortKey, parse_sort


class StorageError(Exception):
    """Base class for adapter failures."""


class UnsupportedOperationError(StorageError):
    """A capability-gated operation was invoked on an adapter lacking it."""

    def __init__(self, adapter: str, operation: str) -> None:
        super().__init__(f"{operation} not supported by {adapter}")
        self.adapter = adapter
        self.operation = operation


class TransactionError(StorageError):
    """Invalid transaction usage (nested begin, commit after rollback, ...)."""


@dataclass(frozen=True, slots=True)
class AdapterCapabilities:
    """Which optional operations an adapter supports."""

    transactions: bool = False
    indexes: bool = False
    aggregation: bool = False
    update_operators: bool = True
    bulk_operations: bool = True

    def supports(self, capability: str) -> bool:
        """Look up a capability by name; unknown names are unsupported."""
        return bool(getattr(self, capability, False))

    def compatibility(self) -> int:
        """Percentage of the six document-store feature groups supported.

        Filter queries always count; the other five are the capability flags.
        """
        flags = (
            self.update_operators,
            self.aggregation,
            self.bulk_operations,
            self.indexes,
            self.transactions,
        )
        return round((1 + sum(flags)) / (1 + len(flags)) * 100)

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class UpdateResult:
    """Outcome of an update: documents matched and documents actually changed."""

    matched_count: int = 0
    modified_count: int = 0

    def __add__(self, other: UpdateResult) -> UpdateResult:
        return UpdateResult(
            self.matched_count + other.matched_count,
            self.modified_count + other.modified_count,
        )


@dataclass(frozen=True, slots=True)
class FindOptions:
    """Sort, skip and limit for ``find``. A limit of 0 means unlimited."""

    sort: tuple[SortKey, ...] = ()
    skip: int = 0
    limit: int = 0

    def __post_init__(self) -> None:
        if self.skip < 0 or self.limit < 0:
            raise ValueError("skip and limit must be non-negative")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | FindOptions | None) -> FindOptions:
        """Build options from ``{"sort": ..., "skip": n, "limit": n}``."""
        if options is None:
            return cls()
        if isinstance(options, FindOptions):
            return options
        return cls(
            sort=parse_sort(options.get("sort")),
            skip=int(options.get("skip") or 0),
            limit=int(options.get("limit") or 0),
        )

    def apply(self, documents: list[Any]) -> list[Any]:
        """Slice an already sorted result list."""
        end = self.skip + self.limit if self.limit else None
        return documents[self.skip:end]


class Transaction(Protocol):
    """Handle returned by ``begin_transaction``.

    Exactly one of ``commit`` or ``rollback`` ends the transaction; after
    either, storage reflects all or none of the transaction's writes.
    """

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class StorageAdapter(Protocol):
    """Protocol for document storage backends.

    Thread Safety:
        Not required. The runner drives each adapter instance from a single
        thread, one operation at a time.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name used in reports."""
        ...

    @property
    @abstractmethod
    def capabilities(self) -> AdapterCapabilities:
        """Capability descriptor consulted before gated operations."""
        ...

    @abstractmethod
    def init(self) -> None:
        """Allocate backing storage. Idempotent."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release backing storage. The adapter must not be used afterwards."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every document. Safe to call repeatedly."""
        ...

    @abstractmethod
    def insert(self, document: Mapping[str, Any]) -> DocumentId:
        """Store a copy of ``document`` and return its assigned identity."""
        ...

    @abstractmethod
    def bulk_insert(self, documents: Sequence[Mapping[str, Any]]) -> list[DocumentId]:
        """Equivalent to sequential ``insert`` calls, expected to be faster."""
        ...

    @abstractmethod
    def find(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | FindOptions | None = None,
    ) -> list[dict[str, Any]]:
        """Return copies of matching documents in storage order unless sorted."""
        ...

    @abstractmethod
    def find_one(self, query: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        """Return the first matching document or None."""
        ...

    @abstractmethod
    def update(self, document_id: DocumentId, update: Mapping[str, Any]) -> UpdateResult:
        """Apply ``update`` to the document with ``document_id``."""
        ...

    @abstractmethod
    def update_many(self, query: Mapping[str, Any], update: Mapping[str, Any]) -> UpdateResult:
        """Apply ``update`` to every matching document."""
        ...

    @abstractmethod
    def delete(self, document_id: DocumentId) -> int:
        """Remove one document; return 1 if it existed, else 0."""
        ...

    @abstractmethod
    def delete_many(self, query: Mapping[str, Any]) -> int:
        """Remove matching documents; return how many were removed."""
        ...

    @abstractmethod
    def count(self, query: Mapping[str, Any] | None = None) -> int:
        """Count matching documents."""
        ...

    @abstractmethod
    def create_index(self, name: str, fields: str | Sequence[str]) -> bool:
        """Create an index; False if indexes are unsupported."""
        ...

    @abstractmethod
    def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Run an aggregation pipeline over the stored documents.

        Raises:
            UnsupportedOperationError: If aggregation is unsupported.
        """
        ...

    @abstractmethod
    def begin_transaction(self) -> Transaction:
        """Open a transaction.

        Raises:
            UnsupportedOperationError: If transactions are unsupported.
            TransactionError: If a transaction is already open.
        """
        ...

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Descriptive statistics (name, capabilities, document count, ...)."""
        ...
