"""Write-once broadcast cancellation shared by the supervisor and its workers."""

import threading


class CancellationToken:
    """
    Single-writer, many-reader stop signal.

    The token moves from active to cancelled exactly once and never back.
    wait() doubles as an interruptible sleep: it returns True as soon as the
    token is cancelled, or False when the timeout elapses first.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> bool:
        """Cancel the token; True only for the call that made the transition."""
        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            return True

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to timeout seconds; True if cancelled."""
        if timeout is not None and timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = f"cancelled ({self.reason})" if self.is_cancelled else "active"
        return f"CancellationToken({state})"
