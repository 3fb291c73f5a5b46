"""
Metric Simulator - synthetic OTEL metric streams for pipeline load testing.

This package fabricates plausible gauge, counter and histogram readings for a
fixed set of named resources and pushes them to an OTLP metrics endpoint.
"""

__version__ = "1.0.0"
