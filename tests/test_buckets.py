"""Tests for histogram bucket classification and the per-cycle tally."""

import random

import pytest

from metricsim.generators.buckets import (
    OVERFLOW_BUCKET_KEY,
    BucketBoundarySet,
    BucketTally,
    classify,
)
from metricsim.statistics.distributions import IntRange

SMALL = (0.5, 1.0, 2.5, 5.0)


def test_classify_known_values() -> None:
    assert classify(0.3, SMALL) == "le1"
    assert classify(1.0, SMALL) == "le2"
    assert classify(7.0, SMALL) == OVERFLOW_BUCKET_KEY


def test_boundary_values_are_inclusive() -> None:
    for i, bound in enumerate(SMALL, start=1):
        assert classify(bound, SMALL) == f"le{i}"


def test_zero_and_negative_land_in_first_bucket() -> None:
    assert classify(0.0, SMALL) == "le1"
    assert classify(-3.0, SMALL) == "le1"


def test_classify_picks_smallest_boundary_at_or_above_value() -> None:
    boundaries = BucketBoundarySet()
    rng = random.Random(9)
    for _ in range(5000):
        value = round(rng.uniform(0, 15000), 2)
        key = classify(value, boundaries)
        candidates = [b for b in boundaries if b >= value]
        if candidates:
            assert boundaries.upper_bound(key) == min(candidates)
        else:
            assert key == OVERFLOW_BUCKET_KEY


def test_classify_is_pure() -> None:
    boundaries = BucketBoundarySet(SMALL)
    assert [classify(2.0, boundaries) for _ in range(3)] == ["le3"] * 3
    assert boundaries.boundaries == SMALL


def test_boundary_set_keys() -> None:
    boundaries = BucketBoundarySet(SMALL)
    assert boundaries.keys() == ["le1", "le2", "le3", "le4", OVERFLOW_BUCKET_KEY]
    assert boundaries.upper_bound("le3") == 2.5
    assert boundaries.upper_bound(OVERFLOW_BUCKET_KEY) == float("inf")
    assert len(boundaries) == 4


def test_boundary_set_coerces_to_float() -> None:
    assert BucketBoundarySet((1, 2, 3)).boundaries == (1.0, 2.0, 3.0)


@pytest.mark.parametrize(
    "bounds",
    [
        (),
        (1.0, 1.0),
        (5.0, 2.5),
        (0.5, 2.0, 1.0),
        (1.0, float("nan"), 2.0),
        (1.0, float("inf")),
        (float("-inf"), 1.0),
    ],
)
def test_boundary_set_rejects_invalid(bounds) -> None:
    with pytest.raises(ValueError):
        BucketBoundarySet(bounds)


def test_tally_weights_between_one_and_five() -> None:
    tally = BucketTally(BucketBoundarySet(SMALL), rng=random.Random(3))
    for _ in range(200):
        before = tally.total()
        tally.observe(0.1)
        assert 1 <= tally.total() - before <= 5
    assert list(tally.counts) == ["le1"]


def test_tally_fixed_weight_counts_observations() -> None:
    tally = BucketTally(BucketBoundarySet(SMALL), weight=IntRange(1, 1), rng=random.Random(0))
    for value in (0.1, 0.7, 0.9, 3.0, 100.0, 200.0):
        tally.observe(value)
    assert tally.items() == [("le1", 1), ("le2", 2), ("le4", 1), (OVERFLOW_BUCKET_KEY, 2)]
    assert tally.total() == 6


def test_tally_items_skip_empty_buckets_in_order() -> None:
    tally = BucketTally(BucketBoundarySet(SMALL), rng=random.Random(1))
    tally.observe(9.0)
    tally.observe(0.2)
    assert [key for key, _ in tally.items()] == ["le1", OVERFLOW_BUCKET_KEY]
