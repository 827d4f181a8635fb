"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts. The only
port here is outbound: the storage adapter contract every backend
implements. Adapters implement these ports with concrete functionality.
"""

from docbench.ports.outbound import (
    AdapterCapabilities,
    FindOptions,
    StorageAdapter,
    StorageError,
    Transaction,
    TransactionError,
    UnsupportedOperationError,
    UpdateResult,
)

__all__ = [
    "AdapterCapabilities",
    "FindOptions",
    "StorageAdapter",
    "StorageError",
    "Transaction",
    "TransactionError",
    "UnsupportedOperationError",
    "UpdateResult",
]
