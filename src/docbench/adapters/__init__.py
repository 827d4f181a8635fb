"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: Handle incoming requests (CLI)
- Outbound adapters: Implement storage backends (memory, SQLite, key-value)
"""

from docbench.adapters.outbound import (
    KeyValueStorageAdapter,
    MemoryStorageAdapter,
    SQLiteStorageAdapter,
    create_adapter,
)

__all__ = [
    # Outbound adapters
    "KeyValueStorageAdapter",
    "MemoryStorageAdapter",
    "SQLiteStorageAdapter",
    "create_adapter",
]
