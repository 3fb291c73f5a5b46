"""Concurrent simulation engine: resource workers and their supervisor."""

from .cancellation import CancellationToken
from .supervisor import TERMINATION_SIGNALS, SimulationSupervisor
from .worker import ResourceWorker, Sample, WorkerState, WorkerStats

__all__ = [
    "CancellationToken",
    "ResourceWorker",
    "Sample",
    "WorkerState",
    "WorkerStats",
    "SimulationSupervisor",
    "TERMINATION_SIGNALS",
]
