"""
Per-worker test factories for stateful test cases

A TestCase instance carries fixture state between setUp(), the test method
and tearDown(). Sharing one instance between concurrent users lets one user's
tearDown() clobber another user's fixture. A TestFactory hands each worker
thread its own suite, built lazily on the worker's first run and reused for
every later run on the same worker.
"""

import inspect
import logging
import threading
import traceback
import unittest
import weakref
from typing import Callable, Optional, Type

from .exceptions import ConfigurationError, ErrorCategory
from .extensions import ReusableTestSuite, reusable_suite

logger = logging.getLogger(__name__)


class TestCache:
    """Explicit map from worker thread to that worker's test suite"""

    __test__ = False

    def __init__(self, make_test: Callable[[], unittest.TestSuite]):
        self._make_test = make_test
        self._tests: 'weakref.WeakKeyDictionary[threading.Thread, unittest.TestSuite]' = (
            weakref.WeakKeyDictionary()
        )
        self._lock = threading.Lock()

    def get_test(self) -> unittest.TestSuite:
        worker = threading.current_thread()
        with self._lock:
            test = self._tests.get(worker)
        if test is None:
            # Only the worker itself ever fills its own slot
            test = self._make_test()
            with self._lock:
                self._tests[worker] = test
            logger.debug(f"Built test suite for {worker.name}")
        return test

    def __len__(self) -> int:
        with self._lock:
            return len(self._tests)


class TestFactory:
    """
    Runs every test method of a TestCase class on a suite private to the calling thread

    Args:
        test_class: unittest.TestCase subclass to build suites from
    """

    __test__ = False

    failureException = AssertionError

    def __init__(self, test_class: Type[unittest.TestCase]):
        if not (inspect.isclass(test_class) and issubclass(test_class, unittest.TestCase)):
            raise ConfigurationError("TestFactory must be constructed with a TestCase class.")
        self.test_class = test_class
        self._suite: Optional[unittest.TestSuite] = None
        self._suite_lock = threading.Lock()
        self._test_cache = TestCache(self.make_test_suite)

    def run(self, result: unittest.TestResult) -> unittest.TestResult:
        self.get_test().run(result)
        return result

    def __call__(self, result: unittest.TestResult) -> unittest.TestResult:
        return self.run(result)

    def countTestCases(self) -> int:
        return self.get_test_suite().countTestCases()

    def get_test(self) -> unittest.TestSuite:
        """Suite belonging to the calling thread"""
        return self._test_cache.get_test()

    def get_test_suite(self) -> unittest.TestSuite:
        """Representative suite used for counting and display"""
        with self._suite_lock:
            if self._suite is None:
                self._suite = self.make_test_suite()
            return self._suite

    def make_test_suite(self) -> unittest.TestSuite:
        loader = unittest.TestLoader()
        loader.suiteClass = ReusableTestSuite
        return loader.loadTestsFromTestCase(self.test_class)

    def __str__(self) -> str:
        return f"TestFactory: {self.get_test_suite()}"


class _WarningTestCase(unittest.TestCase):
    """Placeholder that fails with a diagnostic when a test cannot be built"""

    __test__ = False

    category = ErrorCategory.FACTORY

    def __init__(self, message: str):
        super().__init__('warning')
        self.message = message

    def warning(self):
        self.fail(self.message)


def warning(message: str) -> unittest.TestCase:
    logger.info(f"Substituting failing placeholder: {message}", extra={"structured_data": {
        'event': 'placeholder_test',
        'category': ErrorCategory.FACTORY.value,
    }})
    return _WarningTestCase(message)


class TestMethodFactory(TestFactory):
    """
    Runs a single test method of a TestCase class on a per-thread instance

    When the class cannot be instantiated with the method name, the suite
    holds one failing placeholder test describing why, instead of raising.
    """

    def __init__(self, test_class: Type[unittest.TestCase], test_method_name: str):
        super().__init__(test_class)
        self.test_method_name = test_method_name

    def make_test_suite(self) -> unittest.TestSuite:
        suite = reusable_suite()
        class_name = self.test_class.__qualname__

        try:
            inspect.signature(self.test_class).bind(self.test_method_name)
        except (TypeError, ValueError):
            suite.addTest(warning(f"Class {class_name} has no public constructor "
                                  f"TestCase(methodName)"))
            return suite

        if inspect.isabstract(self.test_class):
            suite.addTest(warning(f"Class {class_name} is not constructible"))
            return suite

        self._add_test_method(suite, self.test_method_name)

        if suite.countTestCases() == 0:
            suite.addTest(warning(f"No tests found in {class_name}"))
        return suite

    def _add_test_method(self, suite: unittest.TestSuite, method_name: str) -> None:
        try:
            suite.addTest(self.test_class(method_name))
        except Exception:
            logger.debug(f"Cannot build {self.test_class.__qualname__}.{method_name}", exc_info=True)
            suite.addTest(warning(f"Exception in constructor: {method_name} "
                                  f"({traceback.format_exc()})"))
