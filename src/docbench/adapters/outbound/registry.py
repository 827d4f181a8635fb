"""Adapter registry: maps adapter names to implementations."""

from __future__ import annotations

from typing import Any

from docbench.adapters.outbound.base import BaseStorageAdapter
from docbench.adapters.outbound.key_value_adapter import KeyValueStorageAdapter
from docbench.adapters.outbound.memory_adapter import MemoryStorageAdapter
from docbench.adapters.outbound.sqlite_adapter import SQLiteStorageAdapter

ADAPTERS: dict[str, type[BaseStorageAdapter]] = {
    MemoryStorageAdapter.adapter_name: MemoryStorageAdapter,
    SQLiteStorageAdapter.adapter_name: SQLiteStorageAdapter,
    KeyValueStorageAdapter.adapter_name: KeyValueStorageAdapter,
}


def available_adapters() -> list[str]:
    return sorted(ADAPTERS)


def create_adapter(name: str, **options: Any) -> BaseStorageAdapter:
    """Instantiate the adapter registered under ``name``.

    Args:
        name: Registered adapter name.
        **options: Constructor keyword arguments (``strict``, ``database``, ...).

    Raises:
        KeyError: If no adapter is registered under ``name``.
    """
    try:
        adapter_cls = ADAPTERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown adapter {name!r}; available: {', '.join(available_adapters())}"
        ) from None
    return adapter_cls(**options)
