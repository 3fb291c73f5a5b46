"""
Build the per-cycle metric catalog for a resource.

Each cycle re-rolls how many metrics a resource reports and names them:
- Resources matching a known service archetype (e.g. web-service-*) report
  under the archetype's metric suffix
- Any other resource falls back to <resource>-metric-<index>

The archetype table is plain data (pattern -> suffix) so new service kinds
are added in config, not code.
"""

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase

from ..defaults import DEFAULT_ARCHETYPES, DEFAULT_METRIC_COUNT
from ..statistics.distributions import IntRange


class MetricKind(Enum):
    """Instrument kinds a metric is reported as."""

    GAUGE = "gauge"
    COUNTER = "counter"
    HISTOGRAM = "histogram"


ALL_KINDS: tuple[MetricKind, ...] = (MetricKind.GAUGE, MetricKind.COUNTER, MetricKind.HISTOGRAM)


@dataclass(frozen=True)
class MetricDescriptor:
    """One simulated metric within a single cycle."""

    name: str
    index: int
    kinds: tuple[MetricKind, ...] = ALL_KINDS

    def reports(self, kind: MetricKind) -> bool:
        return kind in self.kinds


def archetype_suffix(resource: str, archetypes: Iterable[tuple[str, str]]) -> str | None:
    """Return the metric suffix of the first archetype pattern matching the resource."""
    for pattern, suffix in archetypes:
        if fnmatchcase(resource, pattern):
            return suffix
    return None


def metric_name(
    resource: str,
    index: int,
    archetypes: Iterable[tuple[str, str]] = DEFAULT_ARCHETYPES,
) -> str:
    """Name of the index-th metric (1-based) of a resource; total over all names."""
    suffix = archetype_suffix(resource, archetypes)
    if suffix is None:
        return f"{resource}-metric-{index}"
    return f"{resource}-{suffix}"


class MetricCatalogBuilder:
    """Draw a fresh metric catalog for a resource every cycle."""

    def __init__(
        self,
        metric_count: IntRange = IntRange(*DEFAULT_METRIC_COUNT),
        archetypes: Sequence[tuple[str, str]] = DEFAULT_ARCHETYPES,
        kinds: Sequence[MetricKind] = ALL_KINDS,
        rng: random.Random | None = None,
    ):
        if metric_count.low < 1:
            raise ValueError("metric count range must start at 1 or above")
        if not kinds:
            raise ValueError("at least one instrument kind is required")
        self.metric_count = metric_count
        self.archetypes = tuple(archetypes)
        self.kinds = tuple(kinds)
        self.rng = rng or random.Random()

    def build(self, resource: str) -> list[MetricDescriptor]:
        """Return this cycle's descriptors for the resource (never cached)."""
        count = self.metric_count.draw(self.rng)
        return [
            MetricDescriptor(
                name=metric_name(resource, i, self.archetypes),
                index=i,
                kinds=self.kinds,
            )
            for i in range(1, count + 1)
        ]
