"""Pytest configuration and fixtures for docbench tests."""

from __future__ import annotations

from typing import Any, Generator

import pytest
from prometheus_client import CollectorRegistry

from docbench.adapters.outbound import (
    KeyValueStorageAdapter,
    MemoryStorageAdapter,
    SQLiteStorageAdapter,
)
from docbench.adapters.outbound.base import BaseStorageAdapter
from docbench.infrastructure.config import BenchmarkConfig, get_config
from docbench.infrastructure.metrics import MetricsRegistry

ADAPTER_CLASSES = {
    "memory": MemoryStorageAdapter,
    "sqlite": SQLiteStorageAdapter,
    "key_value": KeyValueStorageAdapter,
}


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def test_config() -> BenchmarkConfig:
    """Provide a small, fast benchmark configuration."""
    return BenchmarkConfig(
        iterations=3,
        warmup=1,
        data_size=50,
        adapters=["memory", "sqlite", "key_value"],
        scenarios=["insert", "query", "update", "delete", "aggregate", "transaction"],
    )


@pytest.fixture
def people() -> list[dict[str, Any]]:
    """Three documents aged 20, 30 and 40."""
    return [
        {"name": "Ann", "age": 20, "city": "Chicago"},
        {"name": "Ben", "age": 30, "city": "Dallas"},
        {"name": "Cid", "age": 40, "city": "Chicago"},
    ]


@pytest.fixture(params=sorted(ADAPTER_CLASSES))
def adapter(request: pytest.FixtureRequest) -> Generator[BaseStorageAdapter, None, None]:
    """Every storage adapter, initialized and closed around the test."""
    instance = ADAPTER_CLASSES[request.param]()
    instance.init()
    yield instance
    instance.close()


@pytest.fixture
def memory_adapter() -> Generator[MemoryStorageAdapter, None, None]:
    instance = MemoryStorageAdapter()
    instance.init()
    yield instance
    instance.close()


@pytest.fixture(autouse=True)
def _reset_config_cache() -> Generator[None, None, None]:
    get_config.cache_clear()
    yield
    get_config.cache_clear()


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
