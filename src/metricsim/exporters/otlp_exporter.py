"""
OTLP metric exporter factory.

gRPC (the default) takes a bare host:port; any scheme given is dropped and
transport security comes from the insecure flag. HTTP takes a full URL; a
bare host:port gets http:// or https:// from the same flag, and the
/v1/metrics path is appended when missing.
"""

from typing import Any

METRICS_PATH = "/v1/metrics"


def grpc_target(endpoint: str) -> str:
    """host:port form of an endpoint for the gRPC exporter."""
    for scheme in ("http://", "https://"):
        if endpoint.startswith(scheme):
            return endpoint[len(scheme) :]
    return endpoint


def http_metrics_url(endpoint: str, insecure: bool = True) -> str:
    """Full OTLP/HTTP metrics URL for an endpoint."""
    url = endpoint if "://" in endpoint else f"{'http' if insecure else 'https'}://{endpoint}"
    if not url.endswith(METRICS_PATH):
        url = url.rstrip("/") + METRICS_PATH
    return url


def create_otlp_metric_exporter(
    endpoint: str = "0.0.0.0:4317",
    protocol: str = "grpc",
    insecure: bool = True,
    headers: dict[str, str] | None = None,
    **kwargs: Any,
):
    """
    Create an OTLP metric exporter.

    Args:
        endpoint: Collector address (host:port, or a URL for HTTP)
        protocol: "grpc" or "http"
        insecure: Plaintext transport when True
        headers: Optional headers sent with every export
        **kwargs: Passed through to the exporter (timeout, compression, ...)

    Returns:
        Configured MetricExporter
    """
    if protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        return OTLPMetricExporter(
            endpoint=grpc_target(endpoint), insecure=insecure, headers=headers, **kwargs
        )
    if protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
            OTLPMetricExporter as HTTPMetricExporter,
        )

        return HTTPMetricExporter(
            endpoint=http_metrics_url(endpoint, insecure), headers=headers, **kwargs
        )
    raise ValueError(f"Unsupported OTLP protocol: {protocol!r}")
