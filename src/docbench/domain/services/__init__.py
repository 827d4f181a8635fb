"""Domain services: query, update, aggregation and statistics logic."""

from docbench.domain.services.aggregation_engine import AggregationEngine, aggregate
from docbench.domain.services.data_generator import Dataset, generate_dataset
from docbench.domain.services.query_matcher import QueryMatcher, matches
from docbench.domain.services.statistics import (
    SampleStatistics,
    StatisticsCalculator,
    calculate_stats,
    throughput,
)
from docbench.domain.services.update_applier import UpdateApplier, apply_update

__all__ = [
    "AggregationEngine",
    "aggregate",
    "Dataset",
    "generate_dataset",
    "QueryMatcher",
    "matches",
    "SampleStatistics",
    "StatisticsCalculator",
    "calculate_stats",
    "throughput",
    "UpdateApplier",
    "apply_update",
]
