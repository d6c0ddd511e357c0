"""
Timed race wrapper: enforce a maximum elapsed time on a decorated test

Two completion modes:
- WAITING (default): run the test to completion on the calling thread, then
  compare the elapsed time with the deadline. A slow test delays the verdict
  but its own outcome is always recorded.
- NON-WAITING: run the test on a race worker and wait at most the deadline.
  A worker still running at the deadline is abandoned, not cancelled; its
  eventual outcome is not part of the verdict, so a timeout and a failure the
  test would have reported later cannot be told apart.
"""

import logging
import sys
import time
import unittest
from typing import Any, Optional

from .config import get_config
from .exceptions import ConfigurationError, TimeoutFailure, to_milliseconds
from .extensions import TestDecorator
from .group import spawn_worker
from .structured_logging import TimingReporter, default_reporter

logger = logging.getLogger(__name__)


class TimedTest(TestDecorator):
    """
    Decorates a test with a maximum elapsed time in seconds

    A deadline overrun adds one failure against this wrapper, on top of
    anything the decorated test recorded itself.
    """

    def __init__(self, test: Any, max_elapsed_time: float,
                 wait_for_completion: Optional[bool] = None,
                 quiet: Optional[bool] = None,
                 reporter: Optional[TimingReporter] = None):
        if test is None:
            raise ConfigurationError("Decorated test is null")
        if max_elapsed_time < 0:
            raise ConfigurationError("Maximum elapsed time must be >= 0")
        super().__init__(test)

        timing = get_config().timing
        self.max_elapsed_time = max_elapsed_time
        self.wait_for_completion = (timing.wait_for_completion if wait_for_completion is None
                                    else bool(wait_for_completion))
        self.is_quiet = timing.quiet if quiet is None else bool(quiet)
        self.reporter = reporter or default_reporter
        self.max_elapsed_time_exceeded = False

    def set_quiet(self) -> None:
        self.is_quiet = True

    def out_of_time(self) -> bool:
        """True if the most recent run exceeded the maximum elapsed time"""
        return self.max_elapsed_time_exceeded

    def run(self, result: unittest.TestResult) -> unittest.TestResult:
        self.max_elapsed_time_exceeded = False
        if self.wait_for_completion:
            self._run_until_test_completion(result)
        else:
            self._run_until_time_expires(result)
        return result

    def _run_until_test_completion(self, result: unittest.TestResult) -> None:
        begin_time = time.time()
        self.basic_run(result)
        elapsed_time = time.time() - begin_time
        self._print_elapsed_time(elapsed_time)

        if elapsed_time > self.max_elapsed_time:
            self.max_elapsed_time_exceeded = True
            self._add_timeout_failure(
                result,
                f"Maximum elapsed time exceeded! Expected "
                f"{to_milliseconds(self.max_elapsed_time)}ms, but was "
                f"{to_milliseconds(elapsed_time)}ms.",
                elapsed_time
            )

    def _run_until_time_expires(self, result: unittest.TestResult) -> None:
        begin_time = time.time()
        race_worker = spawn_worker(self.basic_run, result, name=f"TimedTest-race-{id(self):x}")
        race_worker.join(self.max_elapsed_time)
        self._print_elapsed_time(time.time() - begin_time)

        if race_worker.is_alive():
            self.max_elapsed_time_exceeded = True
            logger.debug(f"Abandoning {race_worker.name} still running after deadline")
            self._add_timeout_failure(
                result,
                f"Maximum elapsed time ({to_milliseconds(self.max_elapsed_time)} ms) exceeded!"
            )

    def _add_timeout_failure(self, result: unittest.TestResult, message: str,
                             elapsed_time: Optional[float] = None) -> None:
        try:
            raise TimeoutFailure(message, self.max_elapsed_time, elapsed_time)
        except TimeoutFailure:
            result.addFailure(self, sys.exc_info())
        result.stopTest(self)

        logger.info(message, extra={"structured_data": {
            'event': 'deadline_exceeded',
            'max_elapsed_ms': to_milliseconds(self.max_elapsed_time),
            'waiting': self.wait_for_completion,
        }})

    def _print_elapsed_time(self, elapsed_time: float) -> None:
        elapsed_ms = to_milliseconds(elapsed_time)
        logger.debug(f"{self}: {elapsed_ms} ms", extra={"structured_data": {
            'event': 'elapsed_time',
            'elapsed_ms': elapsed_ms,
        }})
        if not self.is_quiet:
            self.reporter(f"{self}: {elapsed_ms} ms")

    def __str__(self) -> str:
        mode = "WAITING" if self.wait_for_completion else "NON-WAITING"
        return f"TimedTest ({mode}): {self.test}"
