"""Metric catalog and histogram bucket generators."""

from .buckets import OVERFLOW_BUCKET_KEY, BucketBoundarySet, BucketTally, classify
from .catalog import ALL_KINDS, MetricCatalogBuilder, MetricDescriptor, MetricKind, metric_name

__all__ = [
    "MetricCatalogBuilder",
    "MetricDescriptor",
    "MetricKind",
    "ALL_KINDS",
    "metric_name",
    "BucketBoundarySet",
    "BucketTally",
    "OVERFLOW_BUCKET_KEY",
    "classify",
]
