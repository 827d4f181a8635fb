"""Prometheus metrics for the benchmark harness."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)

from docbench import __version__


class MetricsRegistry:
    """Registry of all benchmark metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Iteration metrics
        self.iterations_total = Counter(
            "docbench_iterations_total",
            "Total number of benchmark iterations executed",
            ["scenario", "adapter", "phase", "status"],  # phase: warmup, measure
            registry=self._registry,
        )

        self.iteration_duration_seconds = Histogram(
            "docbench_iteration_duration_seconds",
            "Duration of measured iterations in seconds",
            ["scenario", "adapter"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )

        # Adapter metrics
        self.adapter_failures_total = Counter(
            "docbench_adapter_failures_total",
            "Adapters excluded from a run after a total failure",
            ["adapter"],
            registry=self._registry,
        )

        self.adapters_active = Gauge(
            "docbench_adapters_active",
            "Adapters still participating in the current run",
            registry=self._registry,
        )

        # Dataset metrics
        self.documents_generated_total = Counter(
            "docbench_documents_generated_total",
            "Total synthetic documents generated",
            registry=self._registry,
        )

        # Build info
        self.info = Info(
            "docbench",
            "Benchmark harness information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)
    _metrics.info.info({"version": __version__})

    # Start HTTP server for Prometheus scraping
    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
