"""Metric exporters and per-resource export sessions."""

from .console_exporter import create_console_metric_exporter
from .file_exporter import FileMetricExporter
from .meter_session import (
    ExporterSetupError,
    InstrumentError,
    InstrumentHandle,
    MeterSession,
    SessionFactory,
    console_session_factory,
    file_session_factory,
    otlp_session_factory,
    reader_session_factory,
)
from .otlp_exporter import create_otlp_metric_exporter, grpc_target, http_metrics_url

__all__ = [
    "create_otlp_metric_exporter",
    "grpc_target",
    "http_metrics_url",
    "create_console_metric_exporter",
    "FileMetricExporter",
    "MeterSession",
    "InstrumentHandle",
    "SessionFactory",
    "ExporterSetupError",
    "InstrumentError",
    "reader_session_factory",
    "otlp_session_factory",
    "file_session_factory",
    "console_session_factory",
]
