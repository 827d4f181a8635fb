"""Synthetic dataset generation for benchmark scenarios.

Documents model a simple user profile with scalar, nested and array fields so
that equality, range, membership, nested-path and array operators are all
exercised. Generation is seeded, so every adapter in a run sees the same data.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

CITIES = (
    "New York", "Los Angeles", "Chicago", "Houston", "Phoenix",
    "Philadelphia", "San Antonio", "San Diego", "Dallas", "San Jose",
)
STATUSES = ("active", "inactive", "pending", "archived")
FIRST_NAMES = ("John", "Jane", "Bob", "Alice", "Charlie", "Diana", "Eve", "Frank", "Grace", "Henry")
LAST_NAMES = (
    "Smith", "Johnson", "Williams", "Brown", "Jones",
    "Garcia", "Miller", "Davis", "Rodriguez", "Martinez",
)
SKILLS = ("python", "sql", "rust", "go", "javascript", "ops")

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Dataset:
    """A generated dataset shared by every adapter in a run."""

    documents: tuple[dict[str, Any], ...]
    seed: int

    def __len__(self) -> int:
        return len(self.documents)

    def head(self, count: int) -> list[dict[str, Any]]:
        """The first ``count`` documents."""
        return list(self.documents[:count])


def generate_document(rng: random.Random) -> dict[str, Any]:
    """Generate one user-profile document."""
    first = rng.choice(FIRST_NAMES)
    last = rng.choice(LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "email": f"{first.lower()}.{last.lower()}@example.com",
        "age": rng.randint(18, 67),
        "city": rng.choice(CITIES),
        "status": rng.choice(STATUSES),
        "score": round(rng.uniform(0, 100), 3),
        "created": (_EPOCH - timedelta(seconds=rng.randint(0, 365 * 24 * 3600))).isoformat(),
        "tags": [f"tag{i + 1}" for i in range(rng.randint(1, 5))],
        "skills": rng.sample(SKILLS, rng.randint(1, 3)),
        "address": {
            "street": f"{rng.randint(1, 9999)} Main St",
            "city": rng.choice(CITIES),
            "zip": str(rng.randint(10000, 99999)),
        },
        "metadata": {"source": "benchmark", "version": 1},
    }


def generate_dataset(count: int, seed: int = 42) -> Dataset:
    """Generate ``count`` documents deterministically from ``seed``.

    Raises:
        ValueError: If ``count`` is negative.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    rng = random.Random(seed)
    return Dataset(tuple(generate_document(rng) for _ in range(count)), seed)
