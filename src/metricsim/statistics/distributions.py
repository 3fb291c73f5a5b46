"""
Bounded random draws for metric generation.

Provides the value generator used for every simulated reading and the
inclusive integer ranges that size catalogs, data-point batches and bucket
weights. All draws go through an explicit random.Random so a seeded worker
reproduces its sequence.
"""

import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class Distribution(ABC):
    """Base class for sample distributions."""

    @abstractmethod
    def sample(self) -> float:
        """Draw a single sample from the distribution."""
        pass

    def next(self) -> float:
        """Draw the next reading (alias of sample)."""
        return self.sample()


@dataclass
class UniformDistribution(Distribution):
    """
    Uniform distribution over [low, high].

    When precision is set, samples are drawn uniformly from the grid of
    values with that many decimal places inside the range, so
    precision=2 over [0, 15000] yields 0.00, 0.01, ..., 15000.00.
    """

    low: float = 0.0
    high: float = 1.0
    precision: int | None = None
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self):
        if not (math.isfinite(self.low) and math.isfinite(self.high)):
            raise ValueError(f"bounds must be finite, got [{self.low}, {self.high}]")
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) must be >= low ({self.low})")
        if self.precision is not None and self.precision < 0:
            raise ValueError("precision must be non-negative")

    def sample(self) -> float:
        if self.precision is None:
            return self._sample_continuous()
        scale = 10**self.precision
        # Round first so 0.29 * 100 = 28.999999999999996 still reaches 29
        lo = math.ceil(round(self.low * scale, 9))
        hi = math.floor(round(self.high * scale, 9))
        if hi < lo:
            # Range narrower than one grid step
            return round(self.low, self.precision)
        return self.rng.randint(lo, hi) / scale

    def _sample_continuous(self) -> float:
        """Continuous draw clamped into [low, high] against float rounding."""
        return min(self.high, max(self.low, self.rng.uniform(self.low, self.high)))


@dataclass(frozen=True)
class IntRange:
    """Inclusive integer range [low, high] drawn uniformly."""

    low: int
    high: int

    def __post_init__(self):
        if self.high < self.low:
            raise ValueError(f"range upper bound {self.high} is below lower bound {self.low}")

    def draw(self, rng: random.Random) -> int:
        """Draw an integer uniformly from the range."""
        return rng.randint(self.low, self.high)

    @classmethod
    def parse(cls, value: object) -> "IntRange":
        """Build from a [low, high] pair, a {min, max} mapping or a "low-high" string."""
        if isinstance(value, IntRange):
            return value
        if isinstance(value, dict):
            low = value.get("min", value.get("low"))
            high = value.get("max", value.get("high"))
            if low is None or high is None:
                raise ValueError(f"range mapping needs min and max, got {value!r}")
            return cls(int(low), int(high))
        if isinstance(value, str):
            parts = [p.strip() for p in value.replace(",", "-").split("-") if p.strip()]
            if len(parts) != 2:
                raise ValueError(f"expected 'low-high', got {value!r}")
            return cls(int(parts[0]), int(parts[1]))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(int(value[0]), int(value[1]))
        raise ValueError(f"cannot interpret {value!r} as an integer range")
