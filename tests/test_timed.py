"""
Tests for TimedTest

Covers waiting and non-waiting deadlines, deadlines around load tests, the
timeout failure record and the timing diagnostics channel.
"""

import time

import pytest

from loadharness.config import HarnessConfig, TimingConfig, set_config
from loadharness.exceptions import ConfigurationError
from loadharness.extensions import ConcurrentTestResult
from loadharness.load import LoadTest
from loadharness.timed import TimedTest
from loadharness.timers import ConstantTimer
from tests.fixtures import mock_tests

TOLERANCE = 0.1


class TestTimedTest:
    """Test TimedTest deadlines"""

    @pytest.fixture
    def one_second_test(self):
        return mock_tests.MockTest("test_one_second_execution_time")

    @pytest.fixture
    def one_second_failed_test(self):
        return mock_tests.MockTest("test_one_second_execution_time_with_failure")

    @pytest.fixture
    def lines(self):
        return []

    @pytest.fixture
    def result(self):
        return ConcurrentTestResult()

    def test_one_second_response_default(self, one_second_test, result, lines):
        test = TimedTest(one_second_test, 1.0 + TOLERANCE, reporter=lines.append)
        assert test.countTestCases() == 1

        test.run(result)

        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 0
        assert not test.out_of_time()

    def test_one_second_response_no_wait_for_completion(self, one_second_test, result, lines):
        test = TimedTest(one_second_test, 1.0 + TOLERANCE, False, reporter=lines.append)

        test.run(result)

        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 0
        assert not test.out_of_time()

    def test_one_second_response_wait_for_completion(self, one_second_test, result, lines):
        test = TimedTest(one_second_test, 1.0 + TOLERANCE, True, reporter=lines.append)

        test.run(result)

        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 0

    def test_one_second_response_failure(self, one_second_test, result, lines):
        test = TimedTest(one_second_test, 0.9, reporter=lines.append)

        test.run(result)

        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 1
        assert test.out_of_time()
        recorded, trace = result.failures[0]
        assert recorded is test
        assert "Maximum elapsed time exceeded! Expected 900ms, but was" in trace

    def test_one_second_response_no_wait_returns_at_deadline(self, one_second_test, result, lines):
        test = TimedTest(one_second_test, 0.9, False, reporter=lines.append)

        start = time.time()
        test.run(result)
        elapsed = time.time() - start

        assert elapsed < 1.0
        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 1
        assert test.out_of_time()
        assert "Maximum elapsed time (900 ms) exceeded!" in result.failures[0][1]

    def test_one_second_response_failure_waiting(self, one_second_failed_test, result, lines):
        test = TimedTest(one_second_failed_test, 0.9, True, reporter=lines.append)

        test.run(result)

        # The test's own failure plus the deadline failure
        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 2

    def test_one_second_response_non_waiting_with_ambiguous_failure(
            self, one_second_failed_test, result, lines):
        test = TimedTest(one_second_failed_test, 0.9, False, reporter=lines.append)

        test.run(result)

        # Only the deadline failure; the abandoned worker's failure comes later
        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 1
        assert test.out_of_time()

    def test_one_second_response_non_waiting_with_test_failure(
            self, one_second_failed_test, result, lines):
        test = TimedTest(one_second_failed_test, 1.0 + TOLERANCE, False, reporter=lines.append)

        test.run(result)

        assert not test.out_of_time()
        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 1

    def test_long_response_no_wait_for_completion(self, result, lines):
        test = TimedTest(mock_tests.MockTest("test_long_execution_time"), 0.5, False,
                         reporter=lines.append)

        start = time.time()
        test.run(result)

        assert time.time() - start < 2.0
        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 1

    def test_out_of_time_reflects_most_recent_run(self, result, lines):
        test = TimedTest(mock_tests.MockTest("test_success"), 0.0, reporter=lines.append)
        test.max_elapsed_time = 0.0
        test.run(result)
        test.max_elapsed_time = 10.0
        test.run(result)
        assert not test.out_of_time()


class TestTimedLoadTest:
    """Test deadlines around load tests"""

    @pytest.fixture
    def one_second_test(self):
        return mock_tests.MockTest("test_one_second_execution_time")

    @pytest.fixture
    def result(self):
        return ConcurrentTestResult()

    def test_one_second_response_one_user_load_success(self, one_second_test, result):
        test = TimedTest(LoadTest(one_second_test, 1), 1.0 + TOLERANCE, quiet=True)
        assert test.countTestCases() == 1

        test.run(result)

        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 0

    def test_one_second_response_one_user_load_failure(self, one_second_test, result):
        test = TimedTest(LoadTest(one_second_test, 1), 0.9, quiet=True)

        test.run(result)

        assert result.testsRun == 1
        assert len(result.errors) == 0
        assert len(result.failures) == 1

    def test_one_second_response_multi_user_load_success(self, one_second_test, result):
        test = TimedTest(LoadTest(one_second_test, 2), 1.5, quiet=True)
        assert test.countTestCases() == 2

        test.run(result)

        assert result.testsRun == 2
        assert len(result.errors) == 0
        assert len(result.failures) == 0

    def test_one_second_response_multi_user_load_failure(self, one_second_test, result):
        test = TimedTest(LoadTest(one_second_test, 2), 0.9, quiet=True)

        test.run(result)

        assert result.testsRun == 2
        assert len(result.errors) == 0
        assert len(result.failures) == 1

    def test_one_second_response_multi_user_load_two_second_delay_success(
            self, one_second_test, result):
        load_test = LoadTest(one_second_test, 2, timer=ConstantTimer(2.0))
        test = TimedTest(load_test, 4.0 + TOLERANCE, quiet=True)

        test.run(result)

        assert result.testsRun == 2
        assert len(result.errors) == 0
        assert len(result.failures) == 0

    def test_one_second_response_multi_user_load_two_second_delay_failure(
            self, one_second_test, result):
        load_test = LoadTest(one_second_test, 2, timer=ConstantTimer(2.0))
        test = TimedTest(load_test, 3.7 + TOLERANCE, quiet=True)

        test.run(result)

        assert result.testsRun == 2
        assert len(result.errors) == 0
        assert len(result.failures) == 1

    def test_timed_test_under_load(self, one_second_test, result):
        # Response time per user, measured inside each worker
        test = LoadTest(TimedTest(one_second_test, 1.0 + TOLERANCE, quiet=True), 3)
        assert test.countTestCases() == 3

        test.run(result)

        assert result.testsRun == 3
        assert len(result.failures) == 0


class TestTimedTestConfiguration:
    """Test TimedTest construction, diagnostics and defaults"""

    @pytest.fixture
    def success_test(self):
        return mock_tests.MockTest("test_success")

    def test_null_test(self):
        with pytest.raises(ConfigurationError):
            TimedTest(None, 1.0)

    def test_negative_deadline(self, success_test):
        with pytest.raises(ConfigurationError):
            TimedTest(success_test, -1.0)

    def test_reports_elapsed_time(self, success_test):
        lines = []
        test = TimedTest(success_test, 1.0, reporter=lines.append)

        test.run(ConcurrentTestResult())

        assert len(lines) == 1
        assert lines[0].startswith("TimedTest (WAITING): ")
        assert lines[0].endswith(" ms")

    def test_non_waiting_reports_elapsed_time(self, success_test):
        lines = []
        test = TimedTest(success_test, 1.0, wait_for_completion=False, reporter=lines.append)

        test.run(ConcurrentTestResult())

        assert len(lines) == 1
        assert lines[0].startswith("TimedTest (NON-WAITING): ")

    def test_quiet_suppresses_report(self, success_test):
        lines = []
        test = TimedTest(success_test, 1.0, reporter=lines.append)
        test.set_quiet()

        test.run(ConcurrentTestResult())

        assert lines == []

    def test_default_reporter_writes_stdout(self, success_test, capsys):
        TimedTest(success_test, 1.0).run(ConcurrentTestResult())
        assert "TimedTest (WAITING): " in capsys.readouterr().out

    def test_defaults_from_config(self, success_test):
        test = TimedTest(success_test, 1.0)
        assert test.wait_for_completion is True
        assert test.is_quiet is False

        set_config(HarnessConfig(timing=TimingConfig(quiet=True, wait_for_completion=False)))
        test = TimedTest(success_test, 1.0)
        assert test.wait_for_completion is False
        assert test.is_quiet is True

    def test_str(self, success_test):
        assert str(TimedTest(success_test, 1.0)) == f"TimedTest (WAITING): {success_test}"
        assert str(TimedTest(success_test, 1.0, False)) == f"TimedTest (NON-WAITING): {success_test}"
