"""Infrastructure layer - cross-cutting concerns."""

from docbench.infrastructure.config import BenchmarkConfig, Config, get_config
from docbench.infrastructure.logging import (
    bind_run_context,
    clear_run_context,
    get_logger,
    setup_logging,
)
from docbench.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from docbench.infrastructure.tracing import (
    get_tracer,
    record_iteration,
    setup_tracing,
    trace_run,
    trace_scenario,
    trace_span,
)

__all__ = [
    "BenchmarkConfig",
    "Config",
    "get_config",
    "bind_run_context",
    "clear_run_context",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
    "trace_run",
    "trace_scenario",
    "record_iteration",
]
