import threading
from contextlib import contextmanager

from .errors import BusyError


class InFlight:
    """Track running actions by key; a second start of the same key is rejected."""

    def __init__(self):
        self._lock = threading.Lock()
        self._running = set()

    def __contains__(self, action):
        with self._lock:
            return action in self._running

    @contextmanager
    def guard(self, action):
        with self._lock:
            if action in self._running:
                raise BusyError(action)
            self._running.add(action)
        try:
            yield
        finally:
            with self._lock:
                self._running.discard(action)
