"""
Completion barrier for one load episode

Counts workers returning from a dispatch. Unlike threading.Barrier the
dispatching thread never participates; it only waits for the count to reach
the number of workers it meant to start.
"""

import threading
from typing import Optional

from .exceptions import ConfigurationError


class ThreadBarrier:
    """Count-down barrier reached once every dispatched worker has returned"""

    def __init__(self, dispatched_count: int):
        if dispatched_count < 0:
            raise ConfigurationError(
                f"Dispatched thread count must be >= 0, got {dispatched_count}"
            )
        self.dispatched_count = dispatched_count
        self.returned_count = 0
        self._condition = threading.Condition()

    def on_completion(self, thread: Optional[threading.Thread] = None) -> None:
        """Record one returned worker; must be called exactly once per worker"""
        with self._condition:
            self.returned_count += 1
            if self._is_reached_locked():
                self._condition.notify_all()

    def cancel_threads(self, thread_count: int) -> None:
        """Count workers that will never be dispatched as already returned"""
        if thread_count < 0:
            raise ConfigurationError(
                f"Cancelled thread count must be >= 0, got {thread_count}"
            )
        with self._condition:
            self.returned_count += thread_count
            if self._is_reached_locked():
                self._condition.notify_all()

    def is_reached(self) -> bool:
        with self._condition:
            return self._is_reached_locked()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the barrier is reached; returns False if the timeout expired first"""
        with self._condition:
            return self._condition.wait_for(self._is_reached_locked, timeout)

    def _is_reached_locked(self) -> bool:
        return self.returned_count >= self.dispatched_count

    def __repr__(self) -> str:
        return (f"ThreadBarrier(returned={self.returned_count}, "
                f"dispatched={self.dispatched_count})")
