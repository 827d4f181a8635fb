"""Benchmark scenarios.

A scenario is bound to one adapter and the run's shared dataset. The runner
drives it through ``prepare`` once, then ``setup_iteration`` / ``execute`` /
``teardown_iteration`` per iteration; only ``execute`` is timed.

Scenarios that need an optional capability declare it in
``required_capability``; the runner checks it before dispatch.
"""

from __future__ import annotations

import gc
import tracemalloc
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from docbench.domain.services import Dataset
from docbench.ports.outbound import StorageAdapter

# Update and delete scenarios operate on the first SUBSET_SIZE documents.
SUBSET_SIZE = 1000
TRANSACTION_BATCH = 10

QUERY_SET: tuple[dict[str, Any], ...] = (
    {"age": 30},
    {"age": {"$gt": 25}},
    {"age": {"$gte": 25, "$lte": 35}},
    {"city": {"$in": ["New York", "Los Angeles"]}},
    {"$and": [{"age": {"$gt": 25}}, {"status": "active"}]},
)
QUERY_LIMIT = 100

UPDATE_FILTER = {"age": {"$gte": 25, "$lte": 35}}
DELETE_FILTER = {"age": {"$lt": 30}}

AGGREGATE_PIPELINE: list[dict[str, Any]] = [
    {"$match": {"age": {"$gte": 25}}},
    {"$group": {"_id": "$city", "avgAge": {"$avg": "$age"}, "count": {"$sum": 1}}},
    {"$sort": {"count": -1}},
    {"$limit": 10},
]

FEATURE_UPDATE = {
    "$set": {"category": "senior"},
    "$inc": {"viewCount": 1},
    "$push": {"tags": "experienced"},
}
FEATURE_PIPELINE: list[dict[str, Any]] = [
    {"$match": {"age": {"$gte": 25}}},
    {
        "$group": {
            "_id": "$city",
            "avgAge": {"$avg": "$age"},
            "count": {"$sum": 1},
            "skills": {"$addToSet": "$skills"},
        }
    },
    {"$sort": {"count": -1}},
    {"$limit": 5},
]
FEATURE_QUERY = {
    "$and": [
        {"age": {"$gte": 25, "$lte": 40}},
        {"city": {"$in": ["New York", "San Francisco"]}},
        {"status": {"$ne": "inactive"}},
    ]
}


class Scenario(ABC):
    """One benchmark scenario bound to an adapter and a dataset."""

    name: ClassVar[str]
    required_capability: ClassVar[str | None] = None

    def __init__(self, adapter: StorageAdapter, dataset: Dataset) -> None:
        self.adapter = adapter
        self.dataset = dataset

    def prepare(self) -> None:
        """Seed the adapter before warm-up. Runs once."""

    def setup_iteration(self) -> None:
        """Untimed work before each iteration."""

    @abstractmethod
    def execute(self) -> Any:
        """The timed body of one iteration."""

    def teardown_iteration(self) -> None:
        """Untimed work after each successful iteration."""

    def operations_per_iteration(self) -> int:
        """Logical operations in one ``execute``, for throughput."""
        return 1

    def report_details(self) -> dict[str, Any]:
        """Scenario-specific figures added to the result after measuring."""
        return {}

    def _seed(self, documents: list[dict[str, Any]] | tuple[dict[str, Any], ...]) -> None:
        self.adapter.clear()
        if documents:
            self.adapter.bulk_insert(list(documents))


class InsertScenario(Scenario):
    """Insert the whole dataset into an empty store."""

    name = "insert"

    def setup_iteration(self) -> None:
        self.adapter.clear()

    def execute(self) -> Any:
        documents = list(self.dataset.documents)
        if self.adapter.capabilities.bulk_operations:
            return self.adapter.bulk_insert(documents)
        return [self.adapter.insert(document) for document in documents]

    def operations_per_iteration(self) -> int:
        return len(self.dataset)


class QueryScenario(Scenario):
    """Five representative filters, each limited to 100 results."""

    name = "query"

    def prepare(self) -> None:
        self._seed(self.dataset.documents)
        if self.adapter.capabilities.indexes:
            self.adapter.create_index("age", "age")

    def execute(self) -> Any:
        return [self.adapter.find(query, {"limit": QUERY_LIMIT}) for query in QUERY_SET]

    def operations_per_iteration(self) -> int:
        return len(QUERY_SET)


class UpdateScenario(Scenario):
    """Range ``update_many`` with ``$set`` against a freshly seeded subset."""

    name = "update"

    def __init__(self, adapter: StorageAdapter, dataset: Dataset) -> None:
        super().__init__(adapter, dataset)
        self._revision = 0

    def setup_iteration(self) -> None:
        self._seed(self.dataset.head(SUBSET_SIZE))

    def execute(self) -> Any:
        self._revision += 1
        return self.adapter.update_many(
            UPDATE_FILTER,
            {"$set": {"status": "updated", "lastModified": self._revision}},
        )


class DeleteScenario(Scenario):
    """``delete_many`` against a freshly seeded subset."""

    name = "delete"

    def setup_iteration(self) -> None:
        self._seed(self.dataset.head(SUBSET_SIZE))

    def execute(self) -> Any:
        return self.adapter.delete_many(DELETE_FILTER)


class AggregateScenario(Scenario):
    """Match, group by city, sort by count, limit."""

    name = "aggregate"
    required_capability = "aggregation"

    def prepare(self) -> None:
        self._seed(self.dataset.documents)

    def execute(self) -> Any:
        return self.adapter.aggregate(AGGREGATE_PIPELINE)


class TransactionScenario(Scenario):
    """Ten inserts, two updates and a delete, committed atomically.

    A failure inside the transaction rolls it back and fails the iteration.
    """

    name = "transaction"
    required_capability = "transactions"

    def prepare(self) -> None:
        self.adapter.clear()

    def execute(self) -> Any:
        transaction = self.adapter.begin_transaction()
        try:
            ids = [self.adapter.insert(doc) for doc in self.dataset.head(TRANSACTION_BATCH)]
            for document_id in ids[:2]:
                self.adapter.update(document_id, {"$set": {"status": "modified"}})
            if len(ids) > 2:
                self.adapter.delete(ids[2])
        except Exception:
            transaction.rollback()
            raise
        transaction.commit()
        return ids


class MongoFeaturesScenario(Scenario):
    """Compound update operators, grouped ``$addToSet`` and an ``$and`` query.

    Each part runs only when the adapter advertises the capability it needs.
    """

    name = "mongo_features"

    def prepare(self) -> None:
        self._seed(self.dataset.documents)

    def execute(self) -> Any:
        capabilities = self.adapter.capabilities
        if capabilities.update_operators:
            self.adapter.update_many({"age": {"$gte": 25}}, FEATURE_UPDATE)
        if capabilities.aggregation:
            self.adapter.aggregate(FEATURE_PIPELINE)
        return self.adapter.find(FEATURE_QUERY)

    def operations_per_iteration(self) -> int:
        capabilities = self.adapter.capabilities
        return 1 + int(capabilities.update_operators) + int(capabilities.aggregation)

    def report_details(self) -> dict[str, Any]:
        capabilities = self.adapter.capabilities
        exercised = []
        if capabilities.update_operators:
            exercised.append("update_operators")
        if capabilities.aggregation:
            exercised.append("aggregation")
        exercised.append("complex_queries")
        return {
            "features_supported": exercised,
            "mongo_compatibility": capabilities.compatibility(),
        }


class MemoryScenario(Scenario):
    """Python heap growth from bulk-loading the dataset into an empty store.

    Allocations are traced with :mod:`tracemalloc` around ``execute``; the
    figures from the last measured iteration are reported. Memory held
    outside the Python allocator (the SQLite page cache, for one) is not
    seen.
    """

    name = "memory"

    def __init__(self, adapter: StorageAdapter, dataset: Dataset) -> None:
        super().__init__(adapter, dataset)
        self._retained = 0
        self._peak = 0

    def setup_iteration(self) -> None:
        self.adapter.clear()
        gc.collect()

    def execute(self) -> Any:
        documents = list(self.dataset.documents)
        started = not tracemalloc.is_tracing()
        if started:
            tracemalloc.start()
        try:
            before, _ = tracemalloc.get_traced_memory()
            tracemalloc.reset_peak()
            if self.adapter.capabilities.bulk_operations:
                ids = self.adapter.bulk_insert(documents)
            else:
                ids = [self.adapter.insert(document) for document in documents]
            after, peak = tracemalloc.get_traced_memory()
        finally:
            if started:
                tracemalloc.stop()
        self._retained = max(after - before, 0)
        self._peak = max(peak - before, 0)
        return ids

    def operations_per_iteration(self) -> int:
        return len(self.dataset)

    def report_details(self) -> dict[str, Any]:
        return {
            "retained_bytes": self._retained,
            "peak_bytes": self._peak,
            "retained_mb": round(self._retained / (1024 * 1024), 3),
        }


SCENARIOS: dict[str, type[Scenario]] = {
    scenario.name: scenario
    for scenario in (
        InsertScenario,
        QueryScenario,
        UpdateScenario,
        DeleteScenario,
        AggregateScenario,
        TransactionScenario,
        MongoFeaturesScenario,
        MemoryScenario,
    )
}
