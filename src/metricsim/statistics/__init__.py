"""Bounded random draws for realistic metric generation."""

from .distributions import (
    Distribution,
    IntRange,
    UniformDistribution,
)

__all__ = [
    "Distribution",
    "UniformDistribution",
    "IntRange",
]
