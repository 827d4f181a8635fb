"""Unit tests for benchmark tracing."""

from __future__ import annotations

from typing import Generator

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from docbench.application import BenchmarkRunner
from docbench.infrastructure import tracing
from docbench.infrastructure.config import BenchmarkConfig
from docbench.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def spans(monkeypatch: pytest.MonkeyPatch) -> Generator[InMemorySpanExporter, None, None]:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(tracing, "_tracer", provider.get_tracer("test"))
    yield exporter
    provider.shutdown()


@pytest.mark.unit
class TestSpanAttributes:
    """Tests for attribute namespacing."""

    def test_prefix_added_once(self) -> None:
        assert tracing.span_attributes({"adapter": "memory", "benchmark.run_id": "r1"}) == {
            "benchmark.adapter": "memory",
            "benchmark.run_id": "r1",
        }

    def test_none_dropped_and_sequences_stringified(self) -> None:
        attributes = tracing.span_attributes({"error": None, "adapters": ["memory", 3]})
        assert attributes == {"benchmark.adapters": ("memory", "3")}


@pytest.mark.unit
class TestSpans:
    """Tests for span and event recording."""

    def test_error_recorded_and_reraised(self, spans: InMemorySpanExporter) -> None:
        with pytest.raises(ValueError):
            with tracing.trace_span("work", {"step": 1}):
                raise ValueError("bad input")

        (span,) = spans.get_finished_spans()
        assert span.name == "work"
        assert span.attributes["benchmark.step"] == 1
        assert span.status.status_code is StatusCode.ERROR
        assert span.events[0].name == "exception"

    def test_iteration_events_on_scenario_span(self, spans: InMemorySpanExporter) -> None:
        with tracing.trace_scenario("query", "memory") as span:
            tracing.record_iteration("measure", 1.5)
            tracing.record_iteration("measure", None, error="boom")
            tracing.record_scenario_outcome(span, 1, 2)

        (finished,) = spans.get_finished_spans()
        assert finished.attributes["benchmark.scenario"] == "query"
        assert finished.attributes["benchmark.completed_iterations"] == 1
        assert [dict(event.attributes) for event in finished.events] == [
            {"benchmark.phase": "measure", "benchmark.elapsed_ms": 1.5},
            {"benchmark.phase": "measure", "benchmark.error": "boom"},
        ]
        assert finished.status.status_code is not StatusCode.ERROR

    def test_failed_scenario_marks_span(self, spans: InMemorySpanExporter) -> None:
        with tracing.trace_scenario("query", "memory") as span:
            tracing.record_scenario_outcome(span, 0, 3, "All iterations failed")

        (finished,) = spans.get_finished_spans()
        assert finished.status.status_code is StatusCode.ERROR
        assert finished.attributes["benchmark.error"] == "All iterations failed"


@pytest.mark.unit
class TestRunnerSpans:
    """Spans produced by a benchmark run."""

    def test_run_and_scenario_spans(
        self, spans: InMemorySpanExporter, metrics_registry: MetricsRegistry
    ) -> None:
        config = BenchmarkConfig(
            iterations=2,
            warmup=1,
            data_size=20,
            adapters=["memory", "key_value"],
            scenarios=["query", "transaction"],
        )
        BenchmarkRunner(config, metrics=metrics_registry).run()

        finished = spans.get_finished_spans()
        (run,) = [s for s in finished if s.name == "benchmark.run"]
        assert run.attributes["benchmark.scenarios"] == ("query", "transaction")
        assert run.attributes["benchmark.warmup"] == 1

        scenarios = [s for s in finished if s.name == "benchmark.scenario"]
        pairs = [
            (s.attributes["benchmark.scenario"], s.attributes["benchmark.adapter"])
            for s in scenarios
        ]
        # Skipped pairs never open a span.
        assert pairs == [("query", "memory"), ("query", "key_value"), ("transaction", "memory")]
        for span in scenarios:
            assert span.parent.span_id == run.context.span_id
            assert span.attributes["benchmark.completed_iterations"] == 2
            phases = [event.attributes["benchmark.phase"] for event in span.events]
            assert phases == ["warmup", "measure", "measure"]
