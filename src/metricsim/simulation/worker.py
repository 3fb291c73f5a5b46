"""
Simulate one resource's metric stream.

A ResourceWorker loops through cycles until the shared cancellation token
fires:

    IDLE -> GENERATING -> EMITTING -> COOLING_DOWN -> GENERATING ... -> STOPPED

Each cycle opens an export session, draws a fresh catalog, emits every
sample of every metric as a gauge reading, a counter increment and a
histogram observation, logs the simulated bucket tally and then cools down.

Failures stay inside the worker: an exporter that cannot be set up abandons
the cycle, an instrument that cannot be created skips its metric. The token
is checked before every sample, so nothing generated after cancellation is
ever emitted.
"""

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..config import SimulatorConfig
from ..exporters.meter_session import (
    ExporterSetupError,
    InstrumentError,
    InstrumentHandle,
    MeterSession,
    SessionFactory,
)
from ..generators.buckets import BucketTally
from ..generators.catalog import MetricCatalogBuilder, MetricDescriptor, MetricKind
from ..statistics.distributions import UniformDistribution
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Lifecycle states of a resource worker."""

    IDLE = "idle"
    GENERATING = "generating"
    EMITTING = "emitting"
    COOLING_DOWN = "cooling_down"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class Sample:
    """A single simulated reading."""

    value: float
    timestamp_ns: int


@dataclass
class WorkerStats:
    """Running totals for one worker."""

    cycles_completed: int = 0
    cycles_failed: int = 0
    cycles_interrupted: int = 0
    samples_emitted: int = 0
    metrics_skipped: int = 0

    @property
    def cycles_attempted(self) -> int:
        return self.cycles_completed + self.cycles_failed + self.cycles_interrupted


class ResourceWorker:
    """Generate and emit metrics for one resource until cancelled."""

    def __init__(
        self,
        resource: str,
        config: SimulatorConfig,
        session_factory: SessionFactory,
        cancel: CancellationToken,
        rng: random.Random | None = None,
        clock: Callable[[], int] = time.time_ns,
    ):
        self.resource = resource
        self.config = config
        self.session_factory = session_factory
        self.cancel = cancel
        self.rng = rng or random.Random()
        self.clock = clock
        self.values = UniformDistribution(
            low=0.0,
            high=config.max_value,
            precision=config.value_precision,
            rng=self.rng,
        )
        self.catalog_builder = MetricCatalogBuilder(
            metric_count=config.metric_count,
            archetypes=config.archetypes,
            kinds=config.instrument_kinds,
            rng=self.rng,
        )
        self.state = WorkerState.IDLE
        self.stats = WorkerStats()
        self._session: MeterSession | None = None
        self._last_timestamp_ns = 0

    def __repr__(self) -> str:
        return f"ResourceWorker({self.resource!r}, state={self.state.value})"

    def _set_state(self, state: WorkerState) -> None:
        if state is not self.state:
            logger.debug("Resource %s: %s -> %s", self.resource, self.state.value, state.value)
            self.state = state

    def _cycles_exhausted(self) -> bool:
        max_cycles = self.config.max_cycles
        return max_cycles is not None and self.stats.cycles_attempted >= max_cycles

    def run(self) -> WorkerStats:
        """Run cycles until cancelled (or max_cycles reached); returns the final stats."""
        logger.info("Resource %s: starting metric generation", self.resource)
        try:
            while not self.cancel.is_cancelled and not self._cycles_exhausted():
                self.run_cycle()
                if self.cancel.is_cancelled or self._cycles_exhausted():
                    break
                self._set_state(WorkerState.COOLING_DOWN)
                if self.cancel.wait(self.config.cooldown_seconds):
                    break
        finally:
            self._release_session()
            self._set_state(WorkerState.STOPPED)
            logger.info(
                "Stopping metric generation for %s (cycles=%d failed=%d samples=%d)",
                self.resource,
                self.stats.cycles_completed,
                self.stats.cycles_failed,
                self.stats.samples_emitted,
            )
        return self.stats

    def run_cycle(self) -> bool:
        """Run one generation cycle; True if every metric was processed."""
        self._set_state(WorkerState.GENERATING)
        try:
            session = self._acquire_session()
        except ExporterSetupError as e:
            logger.error(
                "Resource %s: error creating exporter, skipping cycle: %s", self.resource, e
            )
            self.stats.cycles_failed += 1
            return False

        catalog = self.catalog_builder.build(self.resource)
        logger.info(
            "Resource %s: generating %d metric(s): %s",
            self.resource,
            len(catalog),
            ", ".join(sorted({d.name for d in catalog})),
        )

        self._set_state(WorkerState.EMITTING)
        completed = True
        try:
            for descriptor in catalog:
                if self.cancel.is_cancelled:
                    completed = False
                    break
                if not self.emit_metric(session, descriptor):
                    completed = completed and not self.cancel.is_cancelled
        finally:
            if not self.config.reuse_session:
                self._release_session()

        if completed:
            self.stats.cycles_completed += 1
        else:
            self.stats.cycles_interrupted += 1
        return completed

    def emit_metric(self, session: MeterSession, descriptor: MetricDescriptor) -> bool:
        """Emit all samples of one metric; False if skipped or cut short."""
        try:
            instruments = [session.create(kind, descriptor.name) for kind in descriptor.kinds]
        except InstrumentError as e:
            logger.warning("Resource %s: skipping metric %s: %s", self.resource, descriptor.name, e)
            self.stats.metrics_skipped += 1
            return False

        tally = BucketTally(
            boundaries=self.config.boundaries,
            weight=self.config.bucket_weight,
            rng=self.rng,
        )
        track_buckets = descriptor.reports(MetricKind.HISTOGRAM)
        count = self.config.data_point_count.draw(self.rng)
        finished = True

        for j in range(count):
            if self.cancel.is_cancelled:
                finished = False
                break
            sample = self.next_sample()
            try:
                self._record(instruments, descriptor, sample)
            except Exception:
                logger.exception(
                    "Resource %s: recording %s failed, skipping metric",
                    self.resource,
                    descriptor.name,
                )
                self.stats.metrics_skipped += 1
                finished = False
                break
            self.stats.samples_emitted += 1
            if track_buckets:
                tally.observe(sample.value)
            if j < count - 1 and self.cancel.wait(self.config.sample_delay_seconds):
                finished = False
                break

        for key, bucket_count in tally.items():
            logger.info(
                "Resource %s: Histogram %s, bucket %s (<= %s): count=%d",
                self.resource,
                descriptor.name,
                key,
                self.config.boundaries.upper_bound(key),
                bucket_count,
            )
        if tally.counts:
            logger.info(
                "Resource %s: Histogram %s, total simulated count=%d",
                self.resource,
                descriptor.name,
                tally.total(),
            )
        return finished

    def _record(
        self, instruments: list[InstrumentHandle], descriptor: MetricDescriptor, sample: Sample
    ) -> None:
        for instrument in instruments:
            instrument.record(sample.value)
            logger.debug(
                "Resource %s: Recorded %s %s=%.2f at %d",
                self.resource,
                instrument.kind.value,
                descriptor.name,
                sample.value,
                sample.timestamp_ns,
            )

    def next_sample(self) -> Sample:
        """Draw a value stamped strictly later than this worker's previous sample."""
        timestamp = max(self.clock(), self._last_timestamp_ns + 1)
        self._last_timestamp_ns = timestamp
        return Sample(value=self.values.next(), timestamp_ns=timestamp)

    def _acquire_session(self) -> MeterSession:
        if self._session is None:
            try:
                self._session = self.session_factory(self.resource)
            except ExporterSetupError:
                raise
            except Exception as e:
                raise ExporterSetupError(str(e)) from e
        return self._session

    def _release_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            session.shutdown()
        except Exception:
            logger.exception("Resource %s: error shutting down exporter", self.resource)
