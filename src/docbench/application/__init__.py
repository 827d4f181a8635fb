"""Application layer - benchmark orchestration.

Coordinates the domain services and storage adapters into repeatable,
failure-isolated benchmark runs.
"""

from docbench.application.benchmark_runner import (
    AdapterFailure,
    BenchmarkReport,
    BenchmarkRunner,
    Phase,
    ScenarioResult,
)
from docbench.application.scenarios import SCENARIOS, Scenario

__all__ = [
    "AdapterFailure",
    "BenchmarkReport",
    "BenchmarkRunner",
    "Phase",
    "SCENARIOS",
    "Scenario",
    "ScenarioResult",
]
