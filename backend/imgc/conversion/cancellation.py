"""Cooperative stop flag for conversion runs."""
import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger("imgc.cancellation")


class CancellationToken:
    """Set once to stop dispatching new tasks; running conversions always finish."""

    def __init__(self):
        self._event = threading.Event()
        # reentrant: a signal handler can interrupt the main thread inside request_stop
        self._lock = threading.RLock()
        self.extra_requests = 0

    def request_stop(self) -> bool:
        """Set the flag. Returns False when a stop was already requested."""
        with self._lock:
            if self._event.is_set():
                self.extra_requests += 1
                return False
            self._event.set()
            return True

    def is_stop_requested(self) -> bool:
        return self._event.is_set()

    def handle_signal(self, signum, frame) -> None:
        if self.request_stop():
            logger.warning("Received %s, stopping further queue processing!", signal.Signals(signum).name)
        else:
            logger.warning(
                "An encoding task is still active!%s Processing will end afterwards.",
                "!" * self.extra_requests,
            )

    @contextmanager
    def signal_handlers(self, signums=(signal.SIGINT, signal.SIGTERM)) -> Iterator["CancellationToken"]:
        """Route interrupt signals to this token, restoring the previous handlers on exit."""
        previous = {}
        if threading.current_thread() is threading.main_thread():
            for signum in signums:
                previous[signum] = signal.signal(signum, self.handle_signal)
        else:
            logger.debug("Not on the main thread, interrupt signals stay with the current handlers")
        try:
            yield self
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
