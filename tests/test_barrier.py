"""
Tests for ThreadBarrier

Covers counting, cancellation of undispatched workers, blocking waits and
concurrent completion from many threads.
"""

import threading
import time

import pytest

from loadharness.barrier import ThreadBarrier
from loadharness.exceptions import ConfigurationError


class TestThreadBarrier:
    """Test ThreadBarrier counting semantics"""

    def test_not_reached_initially(self):
        barrier = ThreadBarrier(2)
        assert not barrier.is_reached()
        assert barrier.returned_count == 0
        assert barrier.dispatched_count == 2

    def test_reached_after_all_completions(self):
        barrier = ThreadBarrier(2)
        barrier.on_completion()
        assert not barrier.is_reached()
        barrier.on_completion()
        assert barrier.is_reached()

    def test_cancel_counts_as_returned(self):
        barrier = ThreadBarrier(5)
        barrier.on_completion()
        barrier.cancel_threads(4)
        assert barrier.is_reached()

    def test_stays_reached(self):
        barrier = ThreadBarrier(1)
        observed = []
        for step in (barrier.on_completion, barrier.on_completion, lambda: barrier.cancel_threads(0)):
            observed.append(barrier.is_reached())
            step()
            observed.append(barrier.is_reached())
        assert observed == [False, True, True, True, True, True]

    def test_zero_dispatched_is_reached(self):
        barrier = ThreadBarrier(0)
        assert barrier.is_reached()
        assert barrier.wait(timeout=0.01)

    def test_negative_counts_rejected(self):
        with pytest.raises(ConfigurationError):
            ThreadBarrier(-1)
        with pytest.raises(ConfigurationError):
            ThreadBarrier(1).cancel_threads(-1)

    def test_wait_times_out(self):
        barrier = ThreadBarrier(1)
        start = time.time()
        assert barrier.wait(timeout=0.1) is False
        assert time.time() - start >= 0.09

    def test_wait_wakes_on_completion(self):
        barrier = ThreadBarrier(1)
        timer = threading.Timer(0.1, barrier.on_completion)
        timer.start()
        try:
            assert barrier.wait(timeout=2.0) is True
        finally:
            timer.cancel()

    def test_concurrent_completions(self):
        workers = 50
        barrier = ThreadBarrier(workers * 10)
        start = threading.Event()

        def complete():
            start.wait()
            for _ in range(10):
                barrier.on_completion()

        threads = [threading.Thread(target=complete) for _ in range(workers)]
        for t in threads:
            t.start()
        start.set()
        assert barrier.wait(timeout=5.0)
        for t in threads:
            t.join()
        assert barrier.returned_count == workers * 10
