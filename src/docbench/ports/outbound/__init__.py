"""Outbound ports - interfaces for storage backends.

Outbound ports define the contract the benchmark harness depends on to reach
any document store, whether the reference engine or a comparison baseline.
"""

from docbench.ports.outbound.storage_adapter import (
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
