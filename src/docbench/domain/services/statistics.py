"""Summary statistics over benchmark sample sets.

Conventions:
    - Standard deviation uses the population formula (ddof=0).
    - Median is the sorted sample at index ``(n - 1) // 2``, i.e. the lower
      of the two middle values for even counts.
    - Percentile p is the sorted sample at index ``floor(n * p)``, clamped to
      the last index.
    - An empty sample set yields all-zero statistics.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import asdict, dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class SampleStatistics:
    """Statistics for one sample set. Times are in milliseconds."""

    count: int = 0
    mean: float = 0.0
    std_dev: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


EMPTY_STATISTICS = SampleStatistics()


def percentile_index(count: int, fraction: float) -> int:
    """Index of the ``fraction`` percentile in a sorted array of ``count`` samples."""
    if count <= 0:
        raise ValueError("count must be positive")
    return min(math.floor(count * fraction), count - 1)


def calculate_stats(samples: Sequence[float]) -> SampleStatistics:
    """Compute summary statistics for ``samples``.

    Args:
        samples: Elapsed-time measurements, in any order.

    Returns:
        The statistics; all zeros when ``samples`` is empty.
    """
    if len(samples) == 0:
        return EMPTY_STATISTICS

    ordered = np.sort(np.asarray(samples, dtype=np.float64))
    count = int(ordered.size)
    lowest = float(ordered[0])
    highest = float(ordered[-1])

    # Rounding in the sum can push the mean just outside the sample range.
    mean = min(max(float(ordered.mean()), lowest), highest)

    return SampleStatistics(
        count=count,
        mean=mean,
        std_dev=float(ordered.std()),
        median=float(ordered[(count - 1) // 2]),
        min=lowest,
        max=highest,
        p95=float(ordered[percentile_index(count, 0.95)]),
        p99=float(ordered[percentile_index(count, 0.99)]),
    )


def throughput(operations: float, mean_ms: float) -> float:
    """Operations per second given the mean iteration time in milliseconds."""
    if mean_ms <= 0:
        return 0.0
    return operations / (mean_ms / 1000.0)


class StatisticsCalculator:
    """Object form of :func:`calculate_stats` for injection into the runner."""

    def calculate(self, samples: Sequence[float]) -> SampleStatistics:
        return calculate_stats(samples)

    def throughput(self, operations: float, stats: SampleStatistics) -> float:
        return throughput(operations, stats.mean)
