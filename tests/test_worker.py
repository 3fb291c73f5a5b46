"""Tests for the per-resource worker state machine."""

import random
import threading
import time

from conftest import FakeSessionFactory, Record

from metricsim.config import SimulatorConfig
from metricsim.generators.catalog import MetricKind
from metricsim.simulation import CancellationToken, ResourceWorker, WorkerState
from metricsim.statistics.distributions import IntRange


def make_config(**overrides) -> SimulatorConfig:
    settings = dict(
        resources=("unknown-svc",),
        metric_count=IntRange(1, 1),
        data_point_count=IntRange(5, 5),
        sample_delay_seconds=0.0,
        cooldown_seconds=0.0,
        max_cycles=1,
    )
    settings.update(overrides)
    return SimulatorConfig(**settings)


def make_worker(config, factory, cancel=None, **kwargs) -> ResourceWorker:
    return ResourceWorker(
        resource=config.resources[0],
        config=config,
        session_factory=factory,
        cancel=cancel or CancellationToken(),
        rng=random.Random(1),
        **kwargs,
    )


def test_each_sample_is_reported_as_every_kind(session_factory: FakeSessionFactory) -> None:
    worker = make_worker(make_config(), session_factory)
    stats = worker.run()

    records = session_factory.records
    assert stats.samples_emitted == 5
    assert len(records) == 15
    for i in range(0, len(records), 3):
        triple = records[i : i + 3]
        assert [r.kind for r in triple] == [
            MetricKind.GAUGE,
            MetricKind.COUNTER,
            MetricKind.HISTOGRAM,
        ]
        assert len({r.value for r in triple}) == 1
        assert {r.name for r in triple} == {"unknown-svc-metric-1"}


def test_values_within_max(session_factory: FakeSessionFactory) -> None:
    config = make_config(
        max_value=10.0, data_point_count=IntRange(50, 50), metric_count=IntRange(3, 3)
    )
    make_worker(config, session_factory).run()
    assert all(0.0 <= r.value <= 10.0 for r in session_factory.records)


def test_sample_count_within_range() -> None:
    config = make_config(data_point_count=IntRange(2, 4))
    seen = set()
    for seed in range(40):
        factory = FakeSessionFactory()
        worker = ResourceWorker(
            "unknown-svc", config, factory, CancellationToken(), rng=random.Random(seed)
        )
        seen.add(worker.run().samples_emitted)
    assert seen == {2, 3, 4}


def test_fresh_session_per_cycle(session_factory: FakeSessionFactory) -> None:
    worker = make_worker(make_config(max_cycles=3), session_factory)
    stats = worker.run()
    assert stats.cycles_completed == 3
    assert session_factory.calls == 3
    assert all(s.closed for s in session_factory.sessions)
    assert {s.resource_name for s in session_factory.sessions} == {"unknown-svc"}


def test_reused_session_spans_cycles(session_factory: FakeSessionFactory) -> None:
    worker = make_worker(make_config(max_cycles=3, reuse_session=True), session_factory)
    worker.run()
    assert session_factory.calls == 1
    assert session_factory.sessions[0].closed


def test_exporter_failure_skips_cycle_and_continues() -> None:
    factory = FakeSessionFactory(fail_first_calls=1)
    worker = make_worker(make_config(max_cycles=3), factory)
    stats = worker.run()
    assert stats.cycles_failed == 1
    assert stats.cycles_completed == 2
    assert worker.state is WorkerState.STOPPED


def test_unexpected_factory_error_counts_as_setup_failure() -> None:
    def factory(resource_name):
        raise OSError("connection refused")

    worker = make_worker(make_config(max_cycles=2), factory)
    stats = worker.run()
    assert stats.cycles_failed == 2
    assert stats.samples_emitted == 0


def test_instrument_failure_skips_only_that_metric() -> None:
    factory = FakeSessionFactory(fail_metrics={"unknown-svc-metric-1"})
    config = make_config(metric_count=IntRange(3, 3))
    stats = make_worker(config, factory).run()
    assert stats.metrics_skipped == 1
    assert stats.cycles_completed == 1
    assert {r.name for r in factory.records} == {"unknown-svc-metric-2", "unknown-svc-metric-3"}


def test_record_failure_skips_rest_of_metric() -> None:
    def explode(record: Record) -> None:
        if record.name == "unknown-svc-metric-2":
            raise RuntimeError("export buffer full")

    factory = FakeSessionFactory(after_record=explode)
    config = make_config(metric_count=IntRange(3, 3))
    stats = make_worker(config, factory).run()
    assert stats.metrics_skipped == 1
    names = [r.name for r in factory.records]
    assert names.count("unknown-svc-metric-2") == 1
    assert names.count("unknown-svc-metric-3") == 15


def test_cancel_before_start_emits_nothing(session_factory: FakeSessionFactory) -> None:
    cancel = CancellationToken()
    cancel.cancel("test")
    worker = make_worker(make_config(max_cycles=None), session_factory, cancel=cancel)
    stats = worker.run()
    assert session_factory.calls == 0
    assert stats.samples_emitted == 0
    assert worker.state is WorkerState.STOPPED


def test_nothing_emitted_after_cancellation() -> None:
    cancel = CancellationToken()
    histograms = []

    def cancel_after_third_sample(record: Record) -> None:
        if record.kind is MetricKind.HISTOGRAM:
            histograms.append(record)
            if len(histograms) == 3:
                cancel.cancel("test")

    factory = FakeSessionFactory(after_record=cancel_after_third_sample)
    config = make_config(max_cycles=None, data_point_count=IntRange(10, 10))
    worker = make_worker(config, factory, cancel=cancel)
    stats = worker.run()

    assert len(factory.records) == 9
    assert stats.samples_emitted == 3
    assert stats.cycles_interrupted == 1
    assert worker.state is WorkerState.STOPPED
    assert all(s.closed for s in factory.sessions)


def test_cancel_interrupts_sample_delay(session_factory: FakeSessionFactory) -> None:
    cancel = CancellationToken()
    config = make_config(
        max_cycles=None, sample_delay_seconds=5.0, data_point_count=IntRange(10, 10)
    )
    worker = make_worker(config, session_factory, cancel=cancel)
    threading.Timer(0.1, cancel.cancel, args=("test",)).start()

    started = time.monotonic()
    stats = worker.run()
    assert time.monotonic() - started < 2.0
    assert stats.samples_emitted == 1


def test_cancel_interrupts_cooldown(session_factory: FakeSessionFactory) -> None:
    cancel = CancellationToken()
    config = make_config(max_cycles=None, cooldown_seconds=5.0)
    worker = make_worker(config, session_factory, cancel=cancel)
    threading.Timer(0.1, cancel.cancel, args=("test",)).start()

    started = time.monotonic()
    stats = worker.run()
    assert time.monotonic() - started < 2.0
    assert stats.cycles_completed == 1


def test_timestamps_strictly_increase_with_frozen_clock(
    session_factory: FakeSessionFactory,
) -> None:
    worker = make_worker(make_config(), session_factory, clock=lambda: 1_000)
    stamps = [worker.next_sample().timestamp_ns for _ in range(5)]
    assert stamps == [1_000, 1_001, 1_002, 1_003, 1_004]


def test_timestamps_survive_clock_going_backwards(session_factory: FakeSessionFactory) -> None:
    ticks = iter([5_000, 4_000, 6_000])
    worker = make_worker(make_config(), session_factory, clock=lambda: next(ticks))
    stamps = [worker.next_sample().timestamp_ns for _ in range(3)]
    assert stamps == [5_000, 5_001, 6_000]


def test_seeded_workers_repeat_their_values() -> None:
    first, second = FakeSessionFactory(), FakeSessionFactory()
    make_worker(make_config(), first).run()
    make_worker(make_config(), second).run()
    assert [r.value for r in first.records] == [r.value for r in second.records]


def test_histogram_tally_logged(session_factory: FakeSessionFactory, caplog) -> None:
    caplog.set_level("INFO", logger="metricsim")
    make_worker(make_config(), session_factory).run()
    assert "Histogram unknown-svc-metric-1, bucket" in caplog.text
    assert "Histogram unknown-svc-metric-1, total simulated count=" in caplog.text
    assert "Stopping metric generation for unknown-svc" in caplog.text


def test_gauge_only_metrics_skip_tally(caplog) -> None:
    factory = FakeSessionFactory()
    caplog.set_level("INFO", logger="metricsim")
    make_worker(make_config(instrument_kinds=(MetricKind.GAUGE,)), factory).run()
    assert {r.kind for r in factory.records} == {MetricKind.GAUGE}
    assert "bucket" not in caplog.text
