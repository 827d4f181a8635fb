"""Unit tests for BenchmarkRunner."""

from __future__ import annotations

from typing import Any

import pytest
import structlog

from docbench.adapters.outbound import KeyValueStorageAdapter, MemoryStorageAdapter
from docbench.application import SCENARIOS, BenchmarkRunner, Scenario
from docbench.application.benchmark_runner import ALL_ITERATIONS_FAILED
from docbench.domain.services import generate_dataset
from docbench.infrastructure.config import BenchmarkConfig
from docbench.infrastructure.metrics import MetricsRegistry
from docbench.ports.outbound import UnsupportedOperationError


class FakeClock:
    """Advances 2 ms on every reading."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 0.002
        return self.now


class TrackingAdapter(MemoryStorageAdapter):
    closed = False

    def close(self) -> None:
        super().close()
        self.closed = True


class BrokenInitAdapter(MemoryStorageAdapter):
    def init(self) -> None:
        raise RuntimeError("disk on fire")


class FlakyScenario(Scenario):
    """Fails on call number ``fail_on_call`` to ``execute``."""

    name = "flaky"
    fail_on_call = 3

    def __init__(self, adapter: Any, dataset: Any) -> None:
        super().__init__(adapter, dataset)
        self.calls = 0

    def execute(self) -> Any:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("transient")
        return self.calls


class LateFlakyScenario(FlakyScenario):
    name = "late_flaky"
    fail_on_call = 4


class AlwaysFailingScenario(Scenario):
    name = "always_failing"

    def execute(self) -> Any:
        raise RuntimeError("nope")


class BadPreparationScenario(Scenario):
    name = "bad_preparation"

    def prepare(self) -> None:
        raise RuntimeError("seed failed")

    def execute(self) -> Any:
        return None


class UnsupportedScenario(Scenario):
    name = "unsupported"

    def execute(self) -> Any:
        raise UnsupportedOperationError(self.adapter.name, "teleport")


class CountingScenario(Scenario):
    name = "counting"

    def execute(self) -> Any:
        return self.adapter.count()

    def operations_per_iteration(self) -> int:
        return 4


TEST_SCENARIOS: dict[str, type[Scenario]] = {
    **SCENARIOS,
    "flaky": FlakyScenario,
    "late_flaky": LateFlakyScenario,
    "always_failing": AlwaysFailingScenario,
    "bad_preparation": BadPreparationScenario,
    "unsupported": UnsupportedScenario,
    "counting": CountingScenario,
}


def make_runner(
    metrics: MetricsRegistry,
    scenarios: list[str],
    adapters: list[str] | None = None,
    factory: Any = None,
    **overrides: Any,
) -> BenchmarkRunner:
    options = {"iterations": 3, "warmup": 0, "data_size": 20, **overrides}
    config = BenchmarkConfig(adapters=adapters or ["memory"], scenarios=scenarios, **options)
    kwargs: dict[str, Any] = {}
    if factory is not None:
        kwargs["adapter_factory"] = factory
    return BenchmarkRunner(
        config,
        metrics=metrics,
        scenarios=TEST_SCENARIOS,
        clock=FakeClock(),
        **kwargs,
    )


@pytest.mark.unit
class TestScenarioExecution:
    """Tests for per-scenario phases and iteration accounting."""

    def test_successful_run_collects_samples(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["counting"]).run()
        result = report.result("counting", "memory")

        assert result is not None
        assert result.samples == pytest.approx([2.0, 2.0, 2.0])
        assert result.completed_iterations == result.total_iterations == 3
        assert not result.partial
        assert result.error is None
        assert result.stats.count == 3
        assert result.stats.mean == pytest.approx(2.0)
        # Four operations every 2 ms.
        assert result.derived_throughput == pytest.approx(2000.0)

    def test_failed_iteration_is_excluded(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["flaky"]).run()
        result = report.result("flaky", "memory")

        assert result.completed_iterations == 2
        assert result.total_iterations == 3
        assert result.partial
        assert len(result.samples) == 2
        assert result.error is None

    def test_warmup_iterations_not_sampled(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["flaky"], warmup=2).run()
        result = report.result("flaky", "memory")

        # The third call is the first measured iteration.
        assert result.completed_iterations == 2
        warmup_ok = metrics_registry.iterations_total.labels(
            scenario="flaky", adapter="memory", phase="warmup", status="ok"
        )
        assert warmup_ok._value.get() == 2

    def test_last_measured_iteration_fails_after_warmup(
        self, metrics_registry: MetricsRegistry
    ) -> None:
        report = make_runner(metrics_registry, ["late_flaky"], warmup=1).run()
        result = report.result("late_flaky", "memory")

        # One warmup call, then measured calls two and three succeed and four fails.
        assert result.completed_iterations == 2
        assert result.total_iterations == 3
        assert result.partial
        assert result.samples == pytest.approx([2.0, 2.0])
        assert result.stats.count == 2
        assert result.error is None
        failed = metrics_registry.iterations_total.labels(
            scenario="late_flaky", adapter="memory", phase="measure", status="failed"
        )
        assert failed._value.get() == 1

    def test_all_iterations_failed(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["always_failing"]).run()
        result = report.result("always_failing", "memory")

        assert result.samples == []
        assert result.completed_iterations == 0
        assert result.error == ALL_ITERATIONS_FAILED
        assert result.stats.mean == 0.0
        assert result.derived_throughput == 0.0

    def test_preparation_failure_keeps_adapter(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["bad_preparation", "counting"]).run()

        failed = report.result("bad_preparation", "memory")
        assert failed.error == "Data preparation failed: seed failed"
        assert failed.samples == []
        assert report.result("counting", "memory").completed_iterations == 3
        assert report.failures == []

    def test_missing_capability_skips_scenario(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["aggregate", "transaction"], ["key_value"]).run()

        for scenario, capability in (("aggregate", "aggregation"), ("transaction", "transactions")):
            result = report.result(scenario, "key_value")
            assert result.skipped
            assert not result.partial
            assert result.error == f"{capability} not supported"
        assert report.failures == []

    def test_iteration_metrics(self, metrics_registry: MetricsRegistry) -> None:
        make_runner(metrics_registry, ["flaky"]).run()

        ok = metrics_registry.iterations_total.labels(
            scenario="flaky", adapter="memory", phase="measure", status="ok"
        )
        failed = metrics_registry.iterations_total.labels(
            scenario="flaky", adapter="memory", phase="measure", status="failed"
        )
        assert ok._value.get() == 2
        assert failed._value.get() == 1


@pytest.mark.unit
class TestAdapterIsolation:
    """Tests for removing broken adapters from a run."""

    def test_init_failure_recorded(self, metrics_registry: MetricsRegistry) -> None:
        adapters = {"memory": MemoryStorageAdapter, "broken": BrokenInitAdapter}

        def factory(name: str, **options: Any) -> Any:
            return adapters[name](**options)

        report = make_runner(
            metrics_registry, ["counting"], ["broken", "memory"], factory=factory
        ).run()

        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.adapter == "broken"
        assert failure.stage == "init"
        assert failure.error == "disk on fire"
        assert failure.error_type == "RuntimeError"
        assert list(report.results["counting"]) == ["memory"]
        assert metrics_registry.adapter_failures_total.labels(adapter="broken")._value.get() == 1

    def test_unknown_adapter_recorded(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["counting"], ["memory", "cassandra"]).run()

        assert [f.adapter for f in report.failures] == ["cassandra"]
        assert report.failures[0].error_type == "KeyError"
        assert report.result("counting", "memory") is not None

    def test_unsupported_operation_removes_adapter(
        self, metrics_registry: MetricsRegistry
    ) -> None:
        created: list[TrackingAdapter] = []

        def factory(name: str, **options: Any) -> Any:
            adapter = TrackingAdapter(**options)
            created.append(adapter)
            return adapter

        report = make_runner(
            metrics_registry, ["unsupported", "counting"], ["memory"], factory=factory
        ).run()

        assert [(f.adapter, f.stage) for f in report.failures] == [("memory", "unsupported")]
        assert report.failures[0].error_type == "UnsupportedOperationError"
        assert "memory" not in report.results["unsupported"]
        assert report.results["counting"] == {}
        assert created[0].closed
        assert metrics_registry.adapters_active._value.get() == 0

    def test_adapters_closed_after_run(self, metrics_registry: MetricsRegistry) -> None:
        created: list[TrackingAdapter] = []

        def factory(name: str, **options: Any) -> Any:
            adapter = TrackingAdapter(**options)
            created.append(adapter)
            return adapter

        make_runner(metrics_registry, ["counting"], ["a", "b"], factory=factory).run()
        assert len(created) == 2
        assert all(adapter.closed for adapter in created)

    def test_strict_flag_passed_to_factory(self, metrics_registry: MetricsRegistry) -> None:
        seen: list[dict[str, Any]] = []

        def factory(name: str, **options: Any) -> Any:
            seen.append(options)
            return MemoryStorageAdapter(**options)

        make_runner(
            metrics_registry, ["counting"], factory=factory, strict_operators=True
        ).run()
        assert seen == [{"strict": True}]


@pytest.mark.unit
class TestReport:
    """Tests for report assembly."""

    def test_unknown_scenario_skipped(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["warp_speed", "counting"]).run()

        assert report.skipped_scenarios == ["warp_speed"]
        assert "warp_speed" not in report.results
        assert report.result("counting", "memory") is not None

    def test_metadata(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["counting"]).run()

        assert report.metadata["documents"] == 20
        assert report.metadata["config"]["iterations"] == 3
        assert report.metadata["config"]["adapters"] == ["memory"]
        assert "timestamp" in report.metadata
        assert len(report.metadata["run_id"]) == 12
        assert metrics_registry.documents_generated_total._value.get() == 20

    def test_run_context_cleared(self, metrics_registry: MetricsRegistry) -> None:
        first = make_runner(metrics_registry, ["counting"]).run()
        second = make_runner(metrics_registry, ["counting"]).run()

        assert first.metadata["run_id"] != second.metadata["run_id"]
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_supplied_dataset_used(self, metrics_registry: MetricsRegistry) -> None:
        dataset = generate_dataset(7, seed=3)
        report = make_runner(metrics_registry, ["insert"]).run(dataset)

        assert report.metadata["documents"] == 7
        assert report.result("insert", "memory").completed_iterations == 3
        assert metrics_registry.documents_generated_total._value.get() == 0

    def test_to_dict_shape(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["flaky"], ["memory", "nosuch"]).run()
        payload = report.to_dict()

        assert set(payload) == {"metadata", "results", "failures", "skipped_scenarios"}
        result = payload["results"]["flaky"]["memory"]
        assert set(result) == {
            "samples",
            "stats",
            "derived_throughput",
            "completed_iterations",
            "total_iterations",
            "partial",
            "error",
            "skipped",
            "details",
        }
        assert result["partial"] is True
        assert result["details"] == {}
        assert set(result["stats"]) == {
            "count",
            "mean",
            "std_dev",
            "median",
            "min",
            "max",
            "p95",
            "p99",
        }
        assert payload["failures"][0]["adapter"] == "nosuch"


@pytest.mark.unit
class TestBuiltinScenarios:
    """Built-in scenarios against the in-memory adapter."""

    @pytest.mark.parametrize("scenario", sorted(SCENARIOS))
    def test_scenario_completes(self, scenario: str, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, [scenario], warmup=1).run()
        result = report.result(scenario, "memory")

        assert result.error is None
        assert result.completed_iterations == 3
        assert result.derived_throughput > 0

    def test_insert_counts_documents_as_operations(
        self, metrics_registry: MetricsRegistry
    ) -> None:
        report = make_runner(metrics_registry, ["insert"]).run()
        # 20 documents every 2 ms.
        assert report.result("insert", "memory").derived_throughput == pytest.approx(10_000.0)

    def test_update_scenario_reseeds_between_iterations(self) -> None:
        adapter = MemoryStorageAdapter()
        adapter.init()
        dataset = generate_dataset(50, seed=1)
        scenario = SCENARIOS["update"](adapter, dataset)
        scenario.prepare()
        scenario.setup_iteration()
        result = scenario.execute()
        assert result.modified_count > 0
        assert adapter.count({"status": "updated"}) == result.modified_count

        scenario.setup_iteration()
        assert adapter.count({"status": "updated"}) == 0
        assert adapter.count({"lastModified": {"$exists": True}}) == 0
        stored = [{k: v for k, v in doc.items() if k != "_id"} for doc in adapter.find()]
        assert stored == list(dataset.documents)
        assert scenario.execute().modified_count == result.modified_count

    def test_delete_scenario_reseeds(self) -> None:
        adapter = KeyValueStorageAdapter()
        adapter.init()
        dataset = generate_dataset(40, seed=5)
        scenario = SCENARIOS["delete"](adapter, dataset)
        for _ in range(2):
            scenario.setup_iteration()
            assert adapter.count() == 40
            scenario.execute()
            assert adapter.count({"age": {"$lt": 30}}) == 0

    def test_transaction_scenario_commits(self) -> None:
        adapter = MemoryStorageAdapter()
        adapter.init()
        scenario = SCENARIOS["transaction"](adapter, generate_dataset(20, seed=2))
        scenario.prepare()
        ids = scenario.execute()

        assert len(ids) == 10
        assert adapter.count() == 9
        assert adapter.count({"status": "modified"}) == 2

    def test_mongo_features_reports_compatibility(
        self, metrics_registry: MetricsRegistry
    ) -> None:
        report = make_runner(metrics_registry, ["mongo_features"], ["memory", "key_value"]).run()

        assert report.result("mongo_features", "memory").details == {
            "features_supported": ["update_operators", "aggregation", "complex_queries"],
            "mongo_compatibility": 100,
        }
        assert report.result("mongo_features", "key_value").details == {
            "features_supported": ["update_operators", "complex_queries"],
            "mongo_compatibility": 50,
        }

    def test_memory_scenario_reports_heap_growth(self, metrics_registry: MetricsRegistry) -> None:
        report = make_runner(metrics_registry, ["memory"]).run()
        result = report.result("memory", "memory")

        assert result.error is None
        details = result.details
        assert set(details) == {"retained_bytes", "peak_bytes", "retained_mb"}
        assert details["retained_bytes"] > 0
        assert details["peak_bytes"] >= details["retained_bytes"]
        assert details["retained_mb"] == round(details["retained_bytes"] / (1024 * 1024), 3)

    def test_memory_scenario_loads_into_empty_store(self) -> None:
        adapter = MemoryStorageAdapter()
        adapter.init()
        scenario = SCENARIOS["memory"](adapter, generate_dataset(30, seed=3))
        for _ in range(2):
            scenario.setup_iteration()
            assert adapter.count() == 0
            scenario.execute()
            assert adapter.count() == 30
        assert scenario.operations_per_iteration() == 30
