"""Benchmark runner: orchestrates scenarios across storage adapters.

For every (scenario, adapter) pair the runner walks a fixed state machine:

    Preparing -> WarmingUp -> Measuring -> Reporting

Failures are isolated at three levels:
    - Iteration: logged, counted, excluded from the samples. The remaining
      iterations still run and the result records completed/total counts.
    - Preparation: the scenario reports an error for that adapter; the
      adapter stays in the run.
    - Adapter: initialization failure, an unknown adapter name, or an
      unsupported-operation error escaping a scenario removes the adapter
      from the rest of the run and records an :class:`AdapterFailure`.

The run itself always completes and returns a :class:`BenchmarkReport`.
"""

from __future__ import annotations

import platform
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from docbench import __version__
from docbench.adapters.outbound.registry import create_adapter
from docbench.application.scenarios import SCENARIOS, Scenario
from docbench.domain.services import (
    Dataset,
    SampleStatistics,
    StatisticsCalculator,
    generate_dataset,
)
from docbench.domain.services.statistics import EMPTY_STATISTICS
from docbench.infrastructure.config import BenchmarkConfig
from docbench.infrastructure.logging import bind_run_context, clear_run_context, get_logger
from docbench.infrastructure.metrics import MetricsRegistry, get_metrics
from docbench.infrastructure.tracing import (
    record_iteration,
    record_scenario_outcome,
    trace_run,
    trace_scenario,
)
from docbench.ports.outbound import StorageAdapter, UnsupportedOperationError

logger = get_logger(__name__)

ALL_ITERATIONS_FAILED = "All iterations failed"


class Phase(Enum):
    """Per-scenario, per-adapter run phase."""

    PREPARING = "preparing"
    WARMING_UP = "warmup"
    MEASURING = "measure"
    REPORTING = "reporting"


@dataclass
class ScenarioResult:
    """Outcome of one scenario against one adapter.

    ``samples`` holds one elapsed time in milliseconds per completed measured
    iteration, in execution order. ``details`` carries scenario-specific
    figures such as memory use or the feature compatibility score.
    """

    scenario: str
    adapter: str
    samples: list[float] = field(default_factory=list)
    stats: SampleStatistics = EMPTY_STATISTICS
    derived_throughput: float = 0.0
    completed_iterations: int = 0
    total_iterations: int = 0
    error: str | None = None
    skipped: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        """True when fewer measured iterations completed than were requested."""
        return not self.skipped and self.completed_iterations < self.total_iterations

    def to_dict(self) -> dict[str, Any]:
        return {
            "samples": list(self.samples),
            "stats": self.stats.to_dict(),
            "derived_throughput": self.derived_throughput,
            "completed_iterations": self.completed_iterations,
            "total_iterations": self.total_iterations,
            "partial": self.partial,
            "error": self.error,
            "skipped": self.skipped,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class AdapterFailure:
    """An adapter removed from the run."""

    adapter: str
    stage: str
    error: str
    error_type: str

    @classmethod
    def from_exception(cls, adapter: str, stage: str, exc: BaseException) -> AdapterFailure:
        return cls(adapter=adapter, stage=stage, error=str(exc), error_type=type(exc).__name__)

    def to_dict(self) -> dict[str, str]:
        return {
            "adapter": self.adapter,
            "stage": self.stage,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BenchmarkReport:
    """Everything one :meth:`BenchmarkRunner.run` produced."""

    metadata: dict[str, Any] = field(default_factory=dict)
    results: dict[str, dict[str, ScenarioResult]] = field(default_factory=dict)
    failures: list[AdapterFailure] = field(default_factory=list)
    skipped_scenarios: list[str] = field(default_factory=list)

    def result(self, scenario: str, adapter: str) -> ScenarioResult | None:
        return self.results.get(scenario, {}).get(adapter)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata,
            "results": {
                scenario: {adapter: result.to_dict() for adapter, result in by_adapter.items()}
                for scenario, by_adapter in self.results.items()
            },
            "failures": [failure.to_dict() for failure in self.failures],
            "skipped_scenarios": list(self.skipped_scenarios),
        }


class _AdapterRemoved(Exception):
    """Internal signal: the adapter must leave the run."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause


class BenchmarkRunner:
    """Runs configured scenarios against configured adapters.

    Usage:
        runner = BenchmarkRunner(BenchmarkConfig(iterations=5, data_size=1000))
        report = runner.run()
        report.result("query", "memory").stats.mean

    Args:
        config: What to run.
        metrics: Metrics registry; the process-wide one when omitted.
        adapter_factory: ``factory(name, strict=...)`` returning an adapter.
            Raises ``KeyError`` for unknown names.
        scenarios: Scenario name to scenario class.
        statistics: Statistics calculator.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        metrics: MetricsRegistry | None = None,
        adapter_factory: Callable[..., StorageAdapter] = create_adapter,
        scenarios: Mapping[str, type[Scenario]] | None = None,
        statistics: StatisticsCalculator | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._config = config
        self._metrics = metrics or get_metrics()
        self._adapter_factory = adapter_factory
        self._scenarios = dict(SCENARIOS if scenarios is None else scenarios)
        self._statistics = statistics or StatisticsCalculator()
        self._clock = clock

    @property
    def config(self) -> BenchmarkConfig:
        return self._config

    def run(self, dataset: Dataset | None = None) -> BenchmarkReport:
        """Execute every configured scenario against every live adapter.

        Args:
            dataset: Pre-generated dataset; generated from the config when
                omitted.

        Returns:
            The report. Never raises for scenario or adapter failures.
        """
        run_id = uuid.uuid4().hex[:12]
        bind_run_context(run_id=run_id)
        try:
            report = self._run(run_id, dataset)
            logger.info(
                "benchmark_finished",
                scenarios=len(report.results),
                failures=len(report.failures),
            )
        finally:
            clear_run_context()
        return report

    def _run(self, run_id: str, dataset: Dataset | None) -> BenchmarkReport:
        config = self._config
        report = BenchmarkReport()

        with trace_run(
            run_id,
            documents=config.document_count,
            iterations=config.iterations,
            warmup=config.warmup,
            adapters=config.adapters,
            scenarios=config.scenarios,
        ):
            adapters = self._initialize_adapters(report)
            try:
                if dataset is None:
                    dataset = generate_dataset(config.document_count, config.seed)
                    self._metrics.documents_generated_total.inc(len(dataset))
                logger.info(
                    "benchmark_started",
                    documents=len(dataset),
                    adapters=list(adapters),
                    scenarios=config.scenarios,
                )
                for scenario_name in config.scenarios:
                    self._run_scenario_for_all(scenario_name, adapters, dataset, report)
            finally:
                self._close_adapters(adapters)

            report.metadata = self._metadata(run_id, dataset)

        return report

    def _initialize_adapters(self, report: BenchmarkReport) -> dict[str, StorageAdapter]:
        adapters: dict[str, StorageAdapter] = {}
        for name in self._config.adapters:
            if name in adapters:
                continue
            try:
                adapter = self._adapter_factory(name, strict=self._config.strict_operators)
                adapter.init()
            except Exception as e:
                self._record_failure(report, name, "init", e)
                continue
            adapters[name] = adapter
            logger.info("adapter_initialized", adapter=name)
        self._metrics.adapters_active.set(len(adapters))
        return adapters

    def _run_scenario_for_all(
        self,
        scenario_name: str,
        adapters: dict[str, StorageAdapter],
        dataset: Dataset,
        report: BenchmarkReport,
    ) -> None:
        scenario_cls = self._scenarios.get(scenario_name)
        if scenario_cls is None:
            logger.warning("scenario_unknown", scenario=scenario_name)
            report.skipped_scenarios.append(scenario_name)
            return

        results = report.results.setdefault(scenario_name, {})
        for name, adapter in list(adapters.items()):
            try:
                results[name] = self.run_scenario(scenario_cls, name, adapter, dataset)
            except _AdapterRemoved as removed:
                self._record_failure(report, name, scenario_name, removed.cause)
                del adapters[name]
                self._close_adapter(name, adapter)
                self._metrics.adapters_active.set(len(adapters))

    def run_scenario(
        self,
        scenario_cls: type[Scenario],
        adapter_name: str,
        adapter: StorageAdapter,
        dataset: Dataset,
    ) -> ScenarioResult:
        """Run one scenario against one adapter through all four phases."""
        config = self._config
        result = ScenarioResult(
            scenario=scenario_cls.name,
            adapter=adapter_name,
            total_iterations=config.iterations,
        )
        log = logger.bind(scenario=scenario_cls.name, adapter=adapter_name)

        capability = scenario_cls.required_capability
        if capability and not adapter.capabilities.supports(capability):
            log.info("scenario_skipped", reason=f"{capability} not supported")
            result.skipped = True
            result.error = f"{capability} not supported"
            return result

        with trace_scenario(scenario_cls.name, adapter_name) as span:
            scenario = scenario_cls(adapter, dataset)

            try:
                scenario.prepare()
            except UnsupportedOperationError as e:
                raise _AdapterRemoved(e) from e
            except Exception as e:
                log.error("preparation_failed", phase=Phase.PREPARING.value, error=str(e))
                result.error = f"Data preparation failed: {e}"
                record_scenario_outcome(span, 0, result.total_iterations, result.error)
                return result

            for _ in range(config.warmup):
                self._iterate(scenario, adapter_name, Phase.WARMING_UP, log)

            for _ in range(config.iterations):
                elapsed_ms = self._iterate(scenario, adapter_name, Phase.MEASURING, log)
                if elapsed_ms is not None:
                    result.samples.append(elapsed_ms)

            result.completed_iterations = len(result.samples)
            result.stats = self._statistics.calculate(result.samples)
            result.derived_throughput = self._statistics.throughput(
                scenario.operations_per_iteration(), result.stats
            )
            result.details = scenario.report_details()
            if not result.samples:
                result.error = ALL_ITERATIONS_FAILED
            record_scenario_outcome(
                span, result.completed_iterations, result.total_iterations, result.error
            )

        log.info(
            "scenario_completed",
            phase=Phase.REPORTING.value,
            completed=result.completed_iterations,
            total=result.total_iterations,
            mean_ms=round(result.stats.mean, 3),
            throughput=round(result.derived_throughput, 1),
        )
        return result

    def _iterate(
        self,
        scenario: Scenario,
        adapter_name: str,
        phase: Phase,
        log: Any,
    ) -> float | None:
        """Run one iteration; return elapsed milliseconds, or None on failure."""
        try:
            scenario.setup_iteration()
            started = self._clock()
            scenario.execute()
            elapsed = self._clock() - started
            scenario.teardown_iteration()
        except UnsupportedOperationError as e:
            raise _AdapterRemoved(e) from e
        except Exception as e:
            log.warning(
                "iteration_failed",
                phase=phase.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._count_iteration(scenario.name, adapter_name, phase, "failed")
            record_iteration(phase.value, None, error=str(e))
            return None

        self._count_iteration(scenario.name, adapter_name, phase, "ok")
        record_iteration(phase.value, elapsed * 1000.0)
        if phase is Phase.MEASURING:
            self._metrics.iteration_duration_seconds.labels(
                scenario=scenario.name, adapter=adapter_name
            ).observe(elapsed)
        return elapsed * 1000.0

    def _count_iteration(self, scenario: str, adapter: str, phase: Phase, status: str) -> None:
        self._metrics.iterations_total.labels(
            scenario=scenario, adapter=adapter, phase=phase.value, status=status
        ).inc()

    def _record_failure(
        self,
        report: BenchmarkReport,
        adapter: str,
        stage: str,
        exc: BaseException,
    ) -> None:
        logger.error("adapter_failed", adapter=adapter, stage=stage, error=str(exc))
        report.failures.append(AdapterFailure.from_exception(adapter, stage, exc))
        self._metrics.adapter_failures_total.labels(adapter=adapter).inc()

    def _close_adapters(self, adapters: dict[str, StorageAdapter]) -> None:
        for name, adapter in adapters.items():
            self._close_adapter(name, adapter)
        self._metrics.adapters_active.set(0)

    def _close_adapter(self, name: str, adapter: StorageAdapter) -> None:
        try:
            adapter.close()
        except Exception as e:
            logger.warning("adapter_close_failed", adapter=name, error=str(e))

    def _metadata(self, run_id: str, dataset: Dataset | None) -> dict[str, Any]:
        return {
            "run_id": run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "platform": platform.platform(),
            "python": platform.python_version(),
            "documents": len(dataset) if dataset is not None else 0,
            "config": self._config.model_dump(mode="json"),
        }
