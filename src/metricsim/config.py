"""
Configuration for the metric simulator.

SimulatorConfig is built once at startup and handed to the supervisor; the
simulation core never reads process-wide state. Values are layered, lowest
precedence first:

1. Built-in defaults (defaults.py)
2. config/config.yaml under the resource root (or an explicit --config path)
3. Environment (METRICSIM_ENDPOINT, METRICSIM_RESOURCES, ...)
4. Command-line overrides applied by the CLI via SimulatorConfig.replace()

When running from source, resource/ at the project root is the resource
root. When the package is installed, set METRICSIM_ROOT to a directory
containing config/.
"""

import dataclasses
import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from . import defaults
from .generators.buckets import BucketBoundarySet
from .generators.catalog import ALL_KINDS, MetricKind
from .statistics.distributions import IntRange


class ConfigError(ValueError):
    """Raised when configuration values are missing or inconsistent."""

    pass


def get_resources_root() -> Path:
    """Return the root directory for config resources.

    Resolution order:
    1. METRICSIM_ROOT env var (must contain config/)
    2. resource/ under directory containing pyproject.toml (when running from source)
    3. metricsim/resources/ next to this package (when installed)
    """
    env_root = os.environ.get("METRICSIM_ROOT")
    if env_root:
        p = Path(env_root).resolve()
        if p.is_dir():
            return p
    here = Path(__file__).resolve().parent
    for candidate in [here, *here.parents]:
        if (candidate / "pyproject.toml").is_file():
            return candidate / "resource"
    return Path(__file__).resolve().parent / "resources"


def default_config_path() -> Path:
    return get_resources_root() / "config" / "config.yaml"


def load_yaml(path: Path, default: Any = None) -> Any:
    """Load YAML file; return default on missing file, raise ConfigError on bad YAML."""
    if default is None:
        default = {}
    if not path.exists():
        return default
    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return default
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


@dataclass(frozen=True)
class SimulatorConfig:
    """Immutable inputs to the simulation core."""

    endpoint: str = defaults.DEFAULT_ENDPOINT
    protocol: str = defaults.DEFAULT_PROTOCOL
    insecure: bool = True
    headers: dict[str, str] = field(default_factory=dict)
    resources: tuple[str, ...] = defaults.DEFAULT_RESOURCES
    service_name: str = defaults.DEFAULT_SERVICE_NAME
    service_version: str = defaults.DEFAULT_SERVICE_VERSION
    metric_count: IntRange = IntRange(*defaults.DEFAULT_METRIC_COUNT)
    data_point_count: IntRange = IntRange(*defaults.DEFAULT_DATA_POINT_COUNT)
    bucket_weight: IntRange = IntRange(*defaults.DEFAULT_BUCKET_WEIGHT)
    max_value: float = defaults.DEFAULT_MAX_VALUE
    value_precision: int = defaults.DEFAULT_VALUE_PRECISION
    boundaries: BucketBoundarySet = field(default_factory=BucketBoundarySet)
    archetypes: tuple[tuple[str, str], ...] = defaults.DEFAULT_ARCHETYPES
    instrument_kinds: tuple[MetricKind, ...] = ALL_KINDS
    sample_delay_seconds: float = defaults.DEFAULT_SAMPLE_DELAY_SECONDS
    cooldown_seconds: float = defaults.DEFAULT_COOLDOWN_SECONDS
    shutdown_grace_seconds: float = defaults.DEFAULT_SHUTDOWN_GRACE_SECONDS
    export_interval_ms: int = defaults.DEFAULT_EXPORT_INTERVAL_MS
    reuse_session: bool = False
    max_cycles: int | None = None
    duration_seconds: float | None = None
    random_seed: int | None = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.resources:
            raise ConfigError("At least one resource name is required")
        if len(set(self.resources)) != len(self.resources):
            raise ConfigError(f"Resource names must be unique: {', '.join(self.resources)}")
        if any(not r.strip() for r in self.resources):
            raise ConfigError("Resource names must be non-empty")
        if self.protocol not in ("grpc", "http"):
            raise ConfigError(f"protocol must be 'grpc' or 'http', got {self.protocol!r}")
        if not self.endpoint.strip():
            raise ConfigError("endpoint must be set")
        if not math.isfinite(self.max_value) or self.max_value < 0:
            raise ConfigError("max_value must be a finite, non-negative number")
        if self.value_precision < 0:
            raise ConfigError("value_precision must be non-negative")
        if self.metric_count.low < 1:
            raise ConfigError("metric_count must start at 1 or above")
        if self.data_point_count.low < 1:
            raise ConfigError("data_point_count must start at 1 or above")
        if self.bucket_weight.low < 1:
            raise ConfigError("bucket_weight must start at 1 or above")
        if not self.instrument_kinds:
            raise ConfigError("At least one instrument kind is required")
        for name in ("sample_delay_seconds", "cooldown_seconds", "shutdown_grace_seconds"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be non-negative")
        if self.export_interval_ms <= 0:
            raise ConfigError("export_interval_ms must be positive")
        if self.max_cycles is not None and self.max_cycles < 1:
            raise ConfigError("max_cycles must be at least 1 when set")
        if self.duration_seconds is not None and self.duration_seconds <= 0:
            raise ConfigError("duration_seconds must be positive when set")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ConfigError(f"Unknown log level: {self.log_level!r}")

    def replace(self, **changes: Any) -> "SimulatorConfig":
        """Return a copy with the given fields changed (None values are ignored)."""
        return dataclasses.replace(self, **{k: v for k, v in changes.items() if v is not None})

    def worker_seed(self, index: int) -> int | None:
        """Seed for the index-th worker's random source; None when unseeded."""
        if self.random_seed is None:
            return None
        return self.random_seed + index

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view in the config.yaml layout (loadable with from_mapping)."""
        return {
            "exporter": {
                "endpoint": self.endpoint,
                "protocol": self.protocol,
                "insecure": self.insecure,
                "headers": dict(self.headers),
                "export_interval_ms": self.export_interval_ms,
                "reuse_session": self.reuse_session,
            },
            "service": {"name": self.service_name, "version": self.service_version},
            "resources": list(self.resources),
            "archetypes": [{"pattern": p, "suffix": s} for p, s in self.archetypes],
            "generation": {
                "metric_count": [self.metric_count.low, self.metric_count.high],
                "data_point_count": [self.data_point_count.low, self.data_point_count.high],
                "bucket_weight": [self.bucket_weight.low, self.bucket_weight.high],
                "max_value": self.max_value,
                "value_precision": self.value_precision,
                "boundaries": list(self.boundaries.boundaries),
                "instrument_kinds": [k.value for k in self.instrument_kinds],
                "random_seed": self.random_seed,
            },
            "timing": {
                "sample_delay_seconds": self.sample_delay_seconds,
                "cooldown_seconds": self.cooldown_seconds,
                "shutdown_grace_seconds": self.shutdown_grace_seconds,
                "max_cycles": self.max_cycles,
                "duration_seconds": self.duration_seconds,
            },
            "log_level": self.log_level,
        }

    @classmethod
    def from_mapping(
        cls, data: dict[str, Any], base: "SimulatorConfig | None" = None
    ) -> "SimulatorConfig":
        """Overlay a config.yaml-shaped mapping onto base (or defaults)."""
        base = base or cls()
        try:
            changes = _changes_from_mapping(data)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e
        return dataclasses.replace(base, **changes)

    @classmethod
    def load(
        cls, path: Path | None = None, env: Mapping[str, str] | None = None
    ) -> "SimulatorConfig":
        """Defaults, then YAML (default path unless given), then environment."""
        config_path = path or default_config_path()
        if path is not None and not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        config = cls.from_mapping(load_yaml(config_path))
        return config.apply_env(os.environ if env is None else env)

    def apply_env(self, env: Mapping[str, str]) -> "SimulatorConfig":
        """Overlay METRICSIM_* environment variables."""
        changes: dict[str, Any] = {}
        endpoint = env.get("METRICSIM_ENDPOINT", "").strip() or env.get(
            "OTEL_EXPORTER_OTLP_ENDPOINT", ""
        ).strip()
        if endpoint:
            changes["endpoint"] = endpoint
        protocol = env.get("METRICSIM_PROTOCOL", "").strip().lower()
        if protocol:
            changes["protocol"] = protocol
        insecure = env.get("METRICSIM_INSECURE")
        if insecure is not None and insecure.strip():
            changes["insecure"] = _parse_bool(insecure)
        resources = env.get("METRICSIM_RESOURCES", "").strip()
        if resources:
            changes["resources"] = tuple(r.strip() for r in resources.split(",") if r.strip())
        seed = env.get("METRICSIM_RANDOM_SEED", "").strip()
        if seed:
            try:
                changes["random_seed"] = int(seed)
            except ValueError as e:
                raise ConfigError(f"Invalid integer for METRICSIM_RANDOM_SEED: {seed}") from e
        level = env.get("METRICSIM_LOG_LEVEL", "").strip()
        if level:
            changes["log_level"] = level.upper()
        return dataclasses.replace(self, **changes) if changes else self


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _parse_archetypes(raw: Any) -> tuple[tuple[str, str], ...]:
    """Accept a list of {pattern, suffix} mappings or a {pattern: suffix} mapping."""
    if isinstance(raw, dict):
        return tuple((str(p), str(s)) for p, s in raw.items())
    if isinstance(raw, list):
        result = []
        for item in raw:
            if not isinstance(item, dict) or "pattern" not in item or "suffix" not in item:
                raise ConfigError(f"archetype entries need pattern and suffix, got {item!r}")
            result.append((str(item["pattern"]), str(item["suffix"])))
        return tuple(result)
    raise ConfigError("archetypes must be a list or mapping")


def _changes_from_mapping(data: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    exporter = data.get("exporter") or {}
    if not isinstance(exporter, dict):
        raise ConfigError("exporter must be a mapping")
    if "endpoint" in exporter:
        changes["endpoint"] = str(exporter["endpoint"])
    if "protocol" in exporter:
        changes["protocol"] = str(exporter["protocol"]).lower()
    if "insecure" in exporter:
        changes["insecure"] = _parse_bool(exporter["insecure"])
    if "headers" in exporter:
        headers = exporter["headers"] or {}
        if not isinstance(headers, dict):
            raise ConfigError("exporter.headers must be a mapping")
        changes["headers"] = {str(k): str(v) for k, v in headers.items()}
    if "export_interval_ms" in exporter:
        changes["export_interval_ms"] = int(exporter["export_interval_ms"])
    if "reuse_session" in exporter:
        changes["reuse_session"] = _parse_bool(exporter["reuse_session"])

    service = data.get("service") or {}
    if not isinstance(service, dict):
        raise ConfigError("service must be a mapping")
    if "name" in service:
        changes["service_name"] = str(service["name"])
    if "version" in service:
        changes["service_version"] = str(service["version"])

    if "resources" in data:
        resources = data["resources"]
        if not isinstance(resources, list):
            raise ConfigError("resources must be a list of names")
        changes["resources"] = tuple(str(r).strip() for r in resources)
    if "archetypes" in data:
        changes["archetypes"] = _parse_archetypes(data["archetypes"])

    generation = data.get("generation") or {}
    if not isinstance(generation, dict):
        raise ConfigError("generation must be a mapping")
    for key in ("metric_count", "data_point_count", "bucket_weight"):
        if key in generation:
            changes[key] = IntRange.parse(generation[key])
    if "max_value" in generation:
        changes["max_value"] = float(generation["max_value"])
    if "value_precision" in generation:
        changes["value_precision"] = int(generation["value_precision"])
    if "boundaries" in generation:
        changes["boundaries"] = BucketBoundarySet(tuple(generation["boundaries"]))
    if "instrument_kinds" in generation:
        changes["instrument_kinds"] = tuple(
            MetricKind(str(k).lower()) for k in generation["instrument_kinds"]
        )
    if "random_seed" in generation and generation["random_seed"] is not None:
        changes["random_seed"] = int(generation["random_seed"])

    timing = data.get("timing") or {}
    if not isinstance(timing, dict):
        raise ConfigError("timing must be a mapping")
    for key in ("sample_delay_seconds", "cooldown_seconds", "shutdown_grace_seconds"):
        if key in timing:
            changes[key] = float(timing[key])
    if timing.get("max_cycles") is not None:
        changes["max_cycles"] = int(timing["max_cycles"])
    if timing.get("duration_seconds") is not None:
        changes["duration_seconds"] = float(timing["duration_seconds"])

    if "log_level" in data:
        changes["log_level"] = str(data["log_level"]).upper()
    return changes


def resource_attributes(resource_name: str, config: SimulatorConfig) -> dict[str, str]:
    """
    Build resource attributes per OTEL resource semantic conventions.

    Every instrument a worker creates carries the simulator's service identity
    plus the simulated resource as deployment.environment, so readings from
    different resources stay distinguishable at the collector.
    """
    return {
        "service.name": config.service_name,
        "service.version": config.service_version,
        "service.instance.id": resource_name,
        "deployment.environment": resource_name,
    }
