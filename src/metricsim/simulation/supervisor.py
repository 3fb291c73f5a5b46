"""
Run one worker thread per resource and coordinate shutdown.

The supervisor owns the cancellation token. It stops the simulation when:
- A termination signal arrives (SIGINT, SIGTERM, SIGHUP, SIGQUIT)
- The configured run duration elapses
- Every worker has exited on its own (e.g. max_cycles reached)
- request_shutdown() is called

After cancelling, it gives workers one shared grace period to reach STOPPED.
Threads still running after that are abandoned (they are daemons), so the
drain is best-effort.
"""

import logging
import random
import signal
import threading
import time
from collections.abc import Iterable

from ..config import SimulatorConfig
from ..exporters.meter_session import SessionFactory
from .cancellation import CancellationToken
from .worker import ResourceWorker, WorkerState

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT")
    if hasattr(signal, name)
)

# Upper bound on how long the supervisor sleeps between liveness checks.
_POLL_INTERVAL_SECONDS = 0.5


class SimulationSupervisor:
    """Start resource workers, wait for a stop condition and drain them."""

    def __init__(self, config: SimulatorConfig, session_factory: SessionFactory):
        self.config = config
        self.cancel = CancellationToken()
        self.workers = [
            ResourceWorker(
                resource=name,
                config=config,
                session_factory=session_factory,
                cancel=self.cancel,
                rng=random.Random(config.worker_seed(i)),
            )
            for i, name in enumerate(config.resources)
        ]
        self._threads: list[threading.Thread] = []
        self._wake = threading.Event()
        self._received_signal: signal.Signals | None = None

    def start(self) -> None:
        """Launch one daemon thread per worker."""
        if self._threads:
            raise RuntimeError("Supervisor already started")
        for worker in self.workers:
            thread = threading.Thread(
                target=self._run_worker,
                args=(worker,),
                name=f"metricsim-{worker.resource}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()
        logger.info("Started %d resource worker(s)", len(self._threads))

    def _run_worker(self, worker: ResourceWorker) -> None:
        try:
            worker.run()
        except Exception:
            logger.exception("Resource %s: worker failed unexpectedly", worker.resource)
            worker.state = WorkerState.FAILED
        finally:
            self._wake.set()

    def request_shutdown(self, reason: str = "shutdown requested") -> bool:
        """Cancel all workers; True for the first request only."""
        first = self.cancel.cancel(reason)
        if first:
            logger.info("Stopping simulation: %s", reason)
        self._wake.set()
        return first

    def _handle_signal(self, signum: int, frame) -> None:
        self._received_signal = signal.Signals(signum)
        self._wake.set()

    def _install_signal_handlers(self, signals: Iterable[signal.Signals]) -> dict:
        previous: dict = {}
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return previous
        for sig in signals:
            previous[sig] = signal.signal(sig, self._handle_signal)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict) -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    def alive_workers(self) -> list[ResourceWorker]:
        return [w for w, t in zip(self.workers, self._threads) if t.is_alive()]

    def wait_for_stop(self) -> str:
        """Block until a stop condition holds; returns the reason."""
        deadline = None
        if self.config.duration_seconds is not None:
            deadline = time.monotonic() + self.config.duration_seconds
        while True:
            if self._received_signal is not None:
                logger.info("Signal %s received, shutting down...", self._received_signal.name)
                return f"signal {self._received_signal.name}"
            if self.cancel.is_cancelled:
                return self.cancel.reason or "shutdown requested"
            if not self.alive_workers():
                return "all workers finished"
            timeout = _POLL_INTERVAL_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return f"run duration of {self.config.duration_seconds:g}s elapsed"
                timeout = min(timeout, remaining)
            self._wake.wait(timeout)
            self._wake.clear()

    def drain(self) -> list[ResourceWorker]:
        """Join workers within the grace period; returns the ones abandoned."""
        deadline = time.monotonic() + self.config.shutdown_grace_seconds
        for thread in self._threads:
            thread.join(max(0.0, deadline - time.monotonic()))
        abandoned = self.alive_workers()
        if abandoned:
            logger.warning(
                "Abandoning %d worker(s) still running after %.1fs grace period: %s",
                len(abandoned),
                self.config.shutdown_grace_seconds,
                ", ".join(w.resource for w in abandoned),
            )
        return abandoned

    def run(self, signals: Iterable[signal.Signals] = TERMINATION_SIGNALS) -> int:
        """Run the simulation until stopped; returns the process exit code."""
        previous = self._install_signal_handlers(signals)
        try:
            self.start()
            reason = self.wait_for_stop()
            self.request_shutdown(reason)
            self.drain()
        finally:
            self._restore_signal_handlers(previous)
        self._log_summary()
        logger.info("Application stopped.")
        return 0

    def _log_summary(self) -> None:
        for worker in self.workers:
            stats = worker.stats
            logger.info(
                "Resource %s: state=%s cycles=%d failed=%d interrupted=%d samples=%d "
                "skipped_metrics=%d",
                worker.resource,
                worker.state.value,
                stats.cycles_completed,
                stats.cycles_failed,
                stats.cycles_interrupted,
                stats.samples_emitted,
                stats.metrics_skipped,
            )
