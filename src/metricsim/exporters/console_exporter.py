"""
Console exporter for debugging and development.

Prints metric batches to stdout for quick verification.
"""

from opentelemetry.sdk.metrics.export import ConsoleMetricExporter


def create_console_metric_exporter():
    """Create a console exporter for metrics."""
    return ConsoleMetricExporter()
