"""Shared fixtures: recording fake export sessions and a fast configuration."""

import threading
from collections.abc import Callable
from dataclasses import dataclass

import pytest

from metricsim.config import SimulatorConfig
from metricsim.exporters.meter_session import ExporterSetupError, InstrumentError
from metricsim.generators.catalog import MetricKind
from metricsim.statistics.distributions import IntRange


@dataclass(frozen=True)
class Record:
    resource: str
    kind: MetricKind
    name: str
    value: float


class FakeInstrument:
    def __init__(self, session: "FakeSession", kind: MetricKind, name: str):
        self.session = session
        self.kind = kind
        self.name = name

    def record(self, value, attributes=None):
        self.session.on_record(Record(self.session.resource_name, self.kind, self.name, value))


class FakeSession:
    """Stands in for MeterSession; appends every reading to a shared list."""

    def __init__(
        self,
        resource_name: str,
        records: list[Record],
        lock: threading.Lock,
        fail_metrics: frozenset[str] = frozenset(),
        after_record: Callable[[Record], None] | None = None,
    ):
        self.resource_name = resource_name
        self.records = records
        self.lock = lock
        self.fail_metrics = fail_metrics
        self.after_record = after_record
        self.closed = False
        self.created: list[tuple[MetricKind, str]] = []

    def create(self, kind: MetricKind, name: str) -> FakeInstrument:
        if name in self.fail_metrics:
            raise InstrumentError(f"rejected {name}")
        self.created.append((kind, name))
        return FakeInstrument(self, kind, name)

    def on_record(self, record: Record) -> None:
        with self.lock:
            self.records.append(record)
        if self.after_record is not None:
            self.after_record(record)

    def shutdown(self, timeout_millis: float = 10000) -> None:
        self.closed = True


class FakeSessionFactory:
    """Session factory that can refuse chosen resources or metric names."""

    def __init__(
        self,
        fail_resources: set[str] | None = None,
        fail_metrics: set[str] | None = None,
        fail_first_calls: int = 0,
        after_record: Callable[[Record], None] | None = None,
    ):
        self.fail_resources = fail_resources or set()
        self.fail_metrics = frozenset(fail_metrics or ())
        self.fail_first_calls = fail_first_calls
        self.after_record = after_record
        self.records: list[Record] = []
        self.sessions: list[FakeSession] = []
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, resource_name: str) -> FakeSession:
        with self._lock:
            self.calls += 1
            call_number = self.calls
        if resource_name in self.fail_resources or call_number <= self.fail_first_calls:
            raise ExporterSetupError(f"collector unreachable for {resource_name}")
        session = FakeSession(
            resource_name,
            self.records,
            self._lock,
            fail_metrics=self.fail_metrics,
            after_record=self.after_record,
        )
        with self._lock:
            self.sessions.append(session)
        return session

    def records_for(self, resource: str) -> list[Record]:
        with self._lock:
            return [r for r in self.records if r.resource == resource]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep tests independent of the developer's environment and project config."""
    for name in (
        "METRICSIM_ENDPOINT",
        "METRICSIM_PROTOCOL",
        "METRICSIM_INSECURE",
        "METRICSIM_RESOURCES",
        "METRICSIM_RANDOM_SEED",
        "METRICSIM_LOG_LEVEL",
        "OTEL_EXPORTER_OTLP_ENDPOINT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("METRICSIM_ROOT", str(tmp_path))


@pytest.fixture
def fast_config() -> SimulatorConfig:
    """Small, fast, seeded configuration for engine tests."""
    return SimulatorConfig(
        resources=("web-service-a", "order-service", "unknown-svc"),
        metric_count=IntRange(1, 3),
        data_point_count=IntRange(2, 4),
        sample_delay_seconds=0.0,
        cooldown_seconds=0.01,
        shutdown_grace_seconds=2.0,
        random_seed=7,
    )


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()
