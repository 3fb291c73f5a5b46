"""
Per-resource metric export session.

A MeterSession owns one MeterProvider with the resource's identity attached,
one metric reader and the exporter behind it. Workers never share sessions:
every reading a session exports carries exactly one resource's attributes.

Session factories build sessions for a resource name and turn any setup
failure into ExporterSetupError, which a worker treats as "skip this cycle".
"""

import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

from opentelemetry.sdk.metrics import Histogram, MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.metrics.view import ExplicitBucketHistogramAggregation, View
from opentelemetry.sdk.resources import Resource

from ..config import SimulatorConfig, resource_attributes
from ..generators.catalog import MetricKind
from .console_exporter import create_console_metric_exporter
from .file_exporter import FileMetricExporter
from .otlp_exporter import create_otlp_metric_exporter

logger = logging.getLogger(__name__)

# OTEL instrument name syntax.
_INSTRUMENT_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_.\-/]{0,254}$")


class ExporterSetupError(RuntimeError):
    """Raised when the exporter or meter provider for a resource cannot be created."""

    pass


class InstrumentError(RuntimeError):
    """Raised when an instrument cannot be created for a metric name."""

    pass


class InstrumentHandle:
    """Uniform record() over gauge, counter and histogram instruments."""

    def __init__(self, kind: MetricKind, name: str, instrument: Any):
        self.kind = kind
        self.name = name
        self._instrument = instrument

    def record(self, value: float, attributes: dict[str, Any] | None = None) -> None:
        if self.kind is MetricKind.GAUGE:
            self._instrument.set(value, attributes)
        elif self.kind is MetricKind.COUNTER:
            self._instrument.add(value, attributes)
        else:
            self._instrument.record(value, attributes)

    def __repr__(self) -> str:
        return f"InstrumentHandle({self.kind.value}, {self.name!r})"


class MeterSession:
    """Meter provider, reader and exporter serving one resource."""

    def __init__(self, resource_name: str, reader: MetricReader, config: SimulatorConfig):
        self.resource_name = resource_name
        resource = Resource.create(resource_attributes(resource_name, config))
        histogram_view = View(
            instrument_type=Histogram,
            aggregation=ExplicitBucketHistogramAggregation(
                boundaries=list(config.boundaries.boundaries)
            ),
        )
        self.provider = MeterProvider(
            resource=resource,
            metric_readers=[reader],
            views=[histogram_view],
        )
        self.meter = self.provider.get_meter(f"meter-{resource_name}".lower())
        self._closed = False

    def _create(self, kind: MetricKind, name: str) -> InstrumentHandle:
        if self._closed:
            raise InstrumentError(f"Session for {self.resource_name} is shut down")
        if not _INSTRUMENT_NAME_RE.match(name):
            raise InstrumentError(f"Invalid instrument name: {name!r}")
        try:
            if kind is MetricKind.GAUGE:
                instrument = self.meter.create_gauge(name)
            elif kind is MetricKind.COUNTER:
                instrument = self.meter.create_counter(name)
            else:
                instrument = self.meter.create_histogram(name)
        except Exception as e:
            raise InstrumentError(f"Cannot create {kind.value} {name!r}: {e}") from e
        return InstrumentHandle(kind, name, instrument)

    def create_gauge(self, name: str) -> InstrumentHandle:
        return self._create(MetricKind.GAUGE, name)

    def create_counter(self, name: str) -> InstrumentHandle:
        return self._create(MetricKind.COUNTER, name)

    def create_histogram(self, name: str) -> InstrumentHandle:
        return self._create(MetricKind.HISTOGRAM, name)

    def create(self, kind: MetricKind, name: str) -> InstrumentHandle:
        return self._create(kind, name)

    def shutdown(self, timeout_millis: float = 10000) -> None:
        """Flush pending readings and release the exporter; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self.provider.shutdown(timeout_millis=timeout_millis)


SessionFactory = Callable[[str], MeterSession]


def reader_session_factory(
    config: SimulatorConfig,
    make_exporter: Callable[[], MetricExporter],
) -> SessionFactory:
    """Factory building a fresh exporter and periodic reader per session."""

    def create_session(resource_name: str) -> MeterSession:
        try:
            reader = PeriodicExportingMetricReader(
                make_exporter(),
                export_interval_millis=config.export_interval_ms,
            )
            return MeterSession(resource_name, reader, config)
        except Exception as e:
            raise ExporterSetupError(f"Cannot set up exporter for {resource_name}: {e}") from e

    return create_session


def otlp_session_factory(config: SimulatorConfig) -> SessionFactory:
    """Sessions exporting over OTLP to the configured endpoint."""
    return reader_session_factory(
        config,
        lambda: create_otlp_metric_exporter(
            endpoint=config.endpoint,
            protocol=config.protocol,
            insecure=config.insecure,
            headers=config.headers or None,
        ),
    )


def file_session_factory(
    config: SimulatorConfig, output_path: str | Path, append: bool = False
) -> SessionFactory:
    """Sessions writing JSONL to one file; the file is truncated once unless append."""
    path = Path(output_path)
    if not append and path.exists():
        path.unlink()
    return reader_session_factory(config, lambda: FileMetricExporter(path, append=True))


def console_session_factory(config: SimulatorConfig) -> SessionFactory:
    """Sessions printing metrics to stdout."""
    return reader_session_factory(config, create_console_metric_exporter)
