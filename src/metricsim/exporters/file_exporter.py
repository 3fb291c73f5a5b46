"""
File-based metric exporter for offline analysis and debugging.

Writes one JSON object per metric per export to a JSONL file for:
- Offline inspection of what a run would have sent
- Test fixtures
- Pipeline debugging without a collector
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult, MetricsData

logger = logging.getLogger(__name__)

# Workers each own an exporter but may share the output file.
_write_lock = threading.Lock()


def _point_to_dict(dp: Any) -> dict[str, Any]:
    point: dict[str, Any] = {
        "attributes": dict(dp.attributes) if getattr(dp, "attributes", None) else {},
        "start_time": getattr(dp, "start_time_unix_nano", None),
        "time": getattr(dp, "time_unix_nano", None),
    }
    if hasattr(dp, "value"):
        point["value"] = dp.value
    if hasattr(dp, "count"):
        point["count"] = dp.count
    if hasattr(dp, "sum"):
        point["sum"] = dp.sum
    if hasattr(dp, "bucket_counts"):
        point["bucket_counts"] = list(dp.bucket_counts)
        point["explicit_bounds"] = list(dp.explicit_bounds)
    return point


class FileMetricExporter(MetricExporter):
    """Export metrics to a JSONL file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        """Initialize file exporter."""
        super().__init__()
        self.output_path = Path(output_path)
        self.append = append
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        if not append and self.output_path.exists():
            self.output_path.unlink()

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10000,
        **kwargs,
    ) -> MetricExportResult:
        """Export metrics to file."""
        metric_dicts = []
        for resource_metrics in metrics_data.resource_metrics:
            resource_attrs = (
                dict(resource_metrics.resource.attributes) if resource_metrics.resource else {}
            )
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    metric_dict: dict[str, Any] = {
                        "name": metric.name,
                        "description": metric.description,
                        "unit": metric.unit,
                        "kind": type(metric.data).__name__,
                        "resource": resource_attrs,
                        "timestamp": datetime.now().isoformat(),
                    }
                    if metric.data is not None:
                        metric_dict["data_points"] = [
                            _point_to_dict(dp) for dp in metric.data.data_points
                        ]
                    metric_dicts.append(metric_dict)

        try:
            with _write_lock, open(self.output_path, "a", encoding="utf-8") as f:
                for metric_dict in metric_dicts:
                    f.write(json.dumps(metric_dict, default=str) + "\n")
        except OSError:
            logger.exception("Failed to write metrics to %s", self.output_path)
            return MetricExportResult.FAILURE
        return MetricExportResult.SUCCESS

    def shutdown(self, timeout_millis: float = 30000, **kwargs) -> None:
        """Shutdown exporter."""
        pass

    def force_flush(self, timeout_millis: float = 10000) -> bool:
        """Force flush."""
        return True
