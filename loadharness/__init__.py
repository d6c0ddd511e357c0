"""
Load Harness

Decorators that run existing unittest tests under simulated load and time
constraints without changing the tests themselves:
- LoadTest: concurrent virtual users with ramp-up delay and iterations
- TimedTest: maximum elapsed time, waiting or non-waiting
- TestFactory / TestMethodFactory: per-worker instances for stateful tests
- ConstantTimer / RandomTimer: delay policies between user admissions
"""

__version__ = "0.1.0"

from .barrier import ThreadBarrier
from .config import (
    ConfigManager, HarnessConfig, LoadConfig, TimingConfig, LoggingConfig,
    get_config, set_config, reset_config
)
from .exceptions import (
    ErrorCategory, HarnessException, ConfigurationError, WorkerInterrupted,
    TimeoutFailure, classify_exception
)
from .extensions import (
    TestDecorator, RepeatedTest, ConcurrentTestResult, ReusableTestSuite,
    reusable_suite, create_test_result
)
from .factory import TestFactory, TestMethodFactory
from .group import (
    GroupThread, ThreadedTestGroup, current_group, spawn_worker, interruptible_sleep
)
from .load import LoadTest, EpisodeState, create_load_test
from .structured_logging import (
    StructuredFormatter, ColoredConsoleFormatter, StreamReporter, configure_logging
)
from .threaded import ThreadedTest
from .timed import TimedTest
from .timers import Timer, ConstantTimer, RandomTimer
from .aio import run_async

__all__ = [
    'ThreadBarrier',
    'ConfigManager', 'HarnessConfig', 'LoadConfig', 'TimingConfig', 'LoggingConfig',
    'get_config', 'set_config', 'reset_config',
    'ErrorCategory', 'HarnessException', 'ConfigurationError', 'WorkerInterrupted',
    'TimeoutFailure', 'classify_exception',
    'TestDecorator', 'RepeatedTest', 'ConcurrentTestResult', 'ReusableTestSuite',
    'reusable_suite', 'create_test_result',
    'TestFactory', 'TestMethodFactory',
    'GroupThread', 'ThreadedTestGroup', 'current_group', 'spawn_worker', 'interruptible_sleep',
    'LoadTest', 'EpisodeState', 'create_load_test',
    'StructuredFormatter', 'ColoredConsoleFormatter', 'StreamReporter', 'configure_logging',
    'ThreadedTest',
    'TimedTest',
    'Timer', 'ConstantTimer', 'RandomTimer',
    'run_async',
]
