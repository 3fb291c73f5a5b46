"""
Histogram bucket simulation.

Classifies readings against a fixed, strictly ascending set of upper bounds
and keeps a per-metric tally for the current cycle. Bucket keys are
positional: "le1" is the first boundary, "le2" the second, and values above
the last boundary land in the overflow bucket. A boundary is inclusive
(value <= boundary).

Tally increments are a random weight (1-5 by default) rather than 1 to
mimic bursty traffic; the weight carries no statistical meaning.
"""

import math
import random
from bisect import bisect_left
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from ..defaults import DEFAULT_BOUNDARIES, DEFAULT_BUCKET_WEIGHT
from ..statistics.distributions import IntRange

OVERFLOW_BUCKET_KEY = "le+Inf"


@dataclass(frozen=True)
class BucketBoundarySet:
    """Strictly ascending histogram upper bounds, shared read-only across workers."""

    boundaries: tuple[float, ...] = DEFAULT_BOUNDARIES

    def __post_init__(self):
        bounds = tuple(float(b) for b in self.boundaries)
        if not bounds:
            raise ValueError("at least one bucket boundary is required")
        if not all(math.isfinite(b) for b in bounds):
            raise ValueError(f"bucket boundaries must be finite: {bounds}")
        for prev, cur in zip(bounds, bounds[1:]):
            if cur <= prev:
                raise ValueError(f"bucket boundaries must be strictly ascending: {bounds}")
        object.__setattr__(self, "boundaries", bounds)

    def __iter__(self) -> Iterator[float]:
        return iter(self.boundaries)

    def __len__(self) -> int:
        return len(self.boundaries)

    def keys(self) -> list[str]:
        """All bucket keys in ascending order, overflow last."""
        return [f"le{i}" for i in range(1, len(self.boundaries) + 1)] + [OVERFLOW_BUCKET_KEY]

    def upper_bound(self, key: str) -> float:
        """Upper bound a key stands for (inf for the overflow bucket)."""
        if key == OVERFLOW_BUCKET_KEY:
            return float("inf")
        return self.boundaries[int(key[2:]) - 1]


def classify(value: float, boundaries: Sequence[float] | BucketBoundarySet) -> str:
    """Key of the first boundary the value does not exceed, or the overflow key."""
    bounds = boundaries.boundaries if isinstance(boundaries, BucketBoundarySet) else boundaries
    idx = bisect_left(bounds, value)
    if idx >= len(bounds):
        return OVERFLOW_BUCKET_KEY
    return f"le{idx + 1}"


@dataclass
class BucketTally:
    """Simulated per-bucket counts for one metric within one cycle."""

    boundaries: BucketBoundarySet = field(default_factory=BucketBoundarySet)
    weight: IntRange = IntRange(*DEFAULT_BUCKET_WEIGHT)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    counts: dict[str, int] = field(default_factory=dict)

    def observe(self, value: float) -> str:
        """Classify a value and add a random weight to its bucket; returns the key."""
        key = classify(value, self.boundaries)
        self.counts[key] = self.counts.get(key, 0) + self.weight.draw(self.rng)
        return key

    def items(self) -> list[tuple[str, int]]:
        """Non-empty buckets in ascending boundary order."""
        return [(k, self.counts[k]) for k in self.boundaries.keys() if k in self.counts]

    def total(self) -> int:
        return sum(self.counts.values())
