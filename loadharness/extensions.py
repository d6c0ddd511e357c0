"""
unittest collaborators used by the load and timing decorators

Provides:
- TestDecorator base class for wrapping any unittest-protocol test
- RepeatedTest for sequential iteration of a wrapped test
- ConcurrentTestResult, a TestResult safe to share between worker threads
- ReusableTestSuite, a TestSuite that can be run repeatedly and concurrently
"""

import threading
import unittest
from typing import Any, Iterable, Optional

from .exceptions import ConfigurationError


class TestDecorator:
    """Base class for decorators wrapping an object with countTestCases() and run(result)"""

    __test__ = False

    # unittest.TestResult formats recorded failures using this attribute
    failureException = AssertionError

    def __init__(self, test: Any):
        self.test = test

    def get_test(self) -> Any:
        return self.test

    def countTestCases(self) -> int:
        return self.test.countTestCases()

    def basic_run(self, result: unittest.TestResult) -> None:
        self.test.run(result)

    def run(self, result: unittest.TestResult) -> unittest.TestResult:
        self.basic_run(result)
        return result

    def __call__(self, result: unittest.TestResult) -> unittest.TestResult:
        return self.run(result)

    def __str__(self) -> str:
        return str(self.test)


class RepeatedTest(TestDecorator):
    """Runs the wrapped test a fixed number of times on the calling thread"""

    def __init__(self, test: Any, repeat: int):
        super().__init__(test)
        if repeat < 0:
            raise ConfigurationError(f"Repetition count must be >= 0, got {repeat}")
        self.repeat = repeat

    def countTestCases(self) -> int:
        return super().countTestCases() * self.repeat

    def run(self, result: unittest.TestResult) -> unittest.TestResult:
        for _ in range(self.repeat):
            if result.shouldStop:
                break
            super().run(result)
        return result

    def __str__(self) -> str:
        return f"{super().__str__()}(repeated)"


class ReusableTestSuite(unittest.TestSuite):
    """TestSuite that keeps its tests after running so it can be run again"""

    _cleanup = False


def reusable_suite(tests: Iterable[Any] = ()) -> ReusableTestSuite:
    """Build a suite that survives repeated and concurrent runs"""
    return ReusableTestSuite(tests)


class ConcurrentTestResult(unittest.TestResult):
    """
    TestResult whose bookkeeping is serialized with a re-entrant lock

    Every virtual user reports into the same result, so counters and the
    failure/error lists are only mutated while holding the lock.
    """

    def __init__(self, stream=None, descriptions=None, verbosity=None):
        super().__init__(stream, descriptions, verbosity)
        self._lock = threading.RLock()

    def startTest(self, test):
        with self._lock:
            super().startTest(test)

    def stopTest(self, test):
        with self._lock:
            super().stopTest(test)

    def addSuccess(self, test):
        with self._lock:
            super().addSuccess(test)

    def addFailure(self, test, err):
        with self._lock:
            super().addFailure(test, err)

    def addError(self, test, err):
        with self._lock:
            super().addError(test, err)

    def addSkip(self, test, reason):
        with self._lock:
            super().addSkip(test, reason)

    def addExpectedFailure(self, test, err):
        with self._lock:
            super().addExpectedFailure(test, err)

    def addUnexpectedSuccess(self, test):
        with self._lock:
            super().addUnexpectedSuccess(test)

    def addSubTest(self, test, subtest, err):
        with self._lock:
            super().addSubTest(test, subtest, err)

    def stop(self):
        with self._lock:
            super().stop()

    def run_count(self) -> int:
        with self._lock:
            return self.testsRun

    def failure_count(self) -> int:
        with self._lock:
            return len(self.failures)

    def error_count(self) -> int:
        with self._lock:
            return len(self.errors)


def create_test_result(result: Optional[unittest.TestResult] = None) -> unittest.TestResult:
    """Return the given result, or a fresh ConcurrentTestResult"""
    return result if result is not None else ConcurrentTestResult()
