"""OpenTelemetry tracing for benchmark runs.

A run opens one ``benchmark.run`` span. Each scenario and adapter pair gets a
child ``benchmark.scenario`` span, and every iteration is recorded as an
``iteration`` event on that span. Without :func:`setup_tracing` the global
no-op provider is used.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from docbench import __version__

ATTRIBUTE_PREFIX = "benchmark."

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "docbench",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install a tracer provider exporting benchmark spans.

    Args:
        service_name: Service name reported with every span
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Also print finished spans to stdout

    Returns:
        The tracer used for run and scenario spans
    """
    global _tracer

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("docbench", __version__)
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the tracer installed by :func:`setup_tracing`, or the global one."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("docbench", __version__)
    return _tracer


def span_attributes(values: Mapping[str, Any]) -> dict[str, Any]:
    """Namespace ``values`` under ``benchmark.`` and drop unset entries.

    Sequences become tuples of strings, which OpenTelemetry accepts as an
    attribute value.
    """
    attributes: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, Sequence) and not isinstance(value, str):
            value = tuple(str(item) for item in value)
        name = key if key.startswith(ATTRIBUTE_PREFIX) else ATTRIBUTE_PREFIX + key
        attributes[name] = value
    return attributes


@contextmanager
def trace_span(name: str, attributes: Mapping[str, Any] | None = None) -> Iterator[trace.Span]:
    """
    Open a span whose errors are recorded before they propagate.

    Args:
        name: Span name
        attributes: Attributes, namespaced by :func:`span_attributes`

    Yields:
        The active span
    """
    with get_tracer().start_as_current_span(
        name,
        attributes=span_attributes(attributes or {}),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, f"{type(e).__name__}: {e}"))
            raise


@contextmanager
def trace_run(
    run_id: str,
    documents: int,
    iterations: int,
    warmup: int,
    adapters: Sequence[str],
    scenarios: Sequence[str],
) -> Iterator[trace.Span]:
    """Span covering a whole benchmark run."""
    with trace_span(
        "benchmark.run",
        {
            "run_id": run_id,
            "documents": documents,
            "iterations": iterations,
            "warmup": warmup,
            "adapters": adapters,
            "scenarios": scenarios,
        },
    ) as span:
        yield span


@contextmanager
def trace_scenario(scenario: str, adapter: str) -> Iterator[trace.Span]:
    """Span covering one scenario against one adapter."""
    with trace_span("benchmark.scenario", {"scenario": scenario, "adapter": adapter}) as span:
        yield span


def record_iteration(phase: str, elapsed_ms: float | None, error: str | None = None) -> None:
    """Add an ``iteration`` event to the active scenario span."""
    trace.get_current_span().add_event(
        "iteration",
        span_attributes({"phase": phase, "elapsed_ms": elapsed_ms, "error": error}),
    )


def record_scenario_outcome(
    span: trace.Span,
    completed: int,
    total: int,
    error: str | None = None,
) -> None:
    """Attach iteration counts to a scenario span; an error marks it failed."""
    span.set_attributes(
        span_attributes({"completed_iterations": completed, "total_iterations": total})
    )
    if error:
        span.set_attribute(ATTRIBUTE_PREFIX + "error", error)
        span.set_status(Status(StatusCode.ERROR, error))
