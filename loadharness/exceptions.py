"""
Error taxonomy for the load and timing harness

Separates the failure classes a load or timed episode has to tell apart:
- Configuration errors raised to the constructing caller
- Assertion failures recorded as test failures
- Uncaught worker errors recorded as test errors
- Deadline overruns recorded as additional failures
- Interruption signals used for cooperative worker cancellation
"""

import time
from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Structured error categories used when routing worker outcomes"""
    CONFIGURATION = "configuration"  # Invalid construction arguments, never recorded
    ASSERTION = "assertion"          # Expected condition violated, recorded as failure
    UNCAUGHT = "uncaught"            # Anything else escaping a worker, recorded as error
    TIMEOUT = "timeout"              # Deadline exceeded, recorded as failure
    FACTORY = "factory"              # Per-worker test could not be built
    INTERRUPTED = "interrupted"      # Worker torn down or interrupted, ignored


class HarnessException(Exception):
    """Base exception for harness operations"""

    def __init__(self, message: str, category: ErrorCategory,
                 original_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.category = category
        self.original_exception = original_exception
        self.timestamp = time.time()


class ConfigurationError(HarnessException, ValueError):
    """Raised when a decorator or config section is built with invalid arguments"""

    def __init__(self, message: str, original_exception: Optional[BaseException] = None):
        super().__init__(message, ErrorCategory.CONFIGURATION, original_exception)


class WorkerInterrupted(HarnessException):
    """Raised inside a group worker at an interruption point after cancellation"""

    def __init__(self, message: str = "Worker interrupted"):
        super().__init__(message, ErrorCategory.INTERRUPTED)


class TimeoutFailure(AssertionError):
    """Failure recorded when a timed test exceeds its maximum elapsed time"""

    def __init__(self, message: str, max_elapsed: float, elapsed: Optional[float] = None):
        super().__init__(message)
        self.category = ErrorCategory.TIMEOUT
        self.max_elapsed = max_elapsed
        self.elapsed = elapsed


def classify_exception(exc: BaseException) -> ErrorCategory:
    """Map an exception escaping a worker onto the recording policy"""
    if isinstance(exc, WorkerInterrupted):
        return ErrorCategory.INTERRUPTED
    if isinstance(exc, TimeoutFailure):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, AssertionError):
        return ErrorCategory.ASSERTION
    if isinstance(exc, ConfigurationError):
        return ErrorCategory.CONFIGURATION
    return ErrorCategory.UNCAUGHT


def to_milliseconds(seconds: float) -> int:
    """Render a duration in whole milliseconds for failure and timing messages"""
    return int(round(seconds * 1000))
