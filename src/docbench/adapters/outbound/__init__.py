"""Outbound adapters - storage backends implementing the StorageAdapter port."""

from docbench.adapters.outbound.base import BaseStorageAdapter
from docbench.adapters.outbound.key_value_adapter import KeyValueStorageAdapter, KeyValueStore
from docbench.adapters.outbound.memory_adapter import MemoryStorageAdapter, MemoryTransaction
from docbench.adapters.outbound.registry import ADAPTERS, available_adapters, create_adapter
from docbench.adapters.outbound.sqlite_adapter import SQLiteStorageAdapter, SQLiteTransaction

__all__ = [
    "ADAPTERS",
    "BaseStorageAdapter",
    "KeyValueStorageAdapter",
    "KeyValueStore",
    "MemoryStorageAdapter",
    "MemoryTransaction",
    "SQLiteStorageAdapter",
    "SQLiteTransaction",
    "available_adapters",
    "create_adapter",
]
