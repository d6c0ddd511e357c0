"""
asyncio adapter for thread-based load and timed episodes

Episodes block the calling thread while users run and deadlines elapse, so
async callers run them in an executor instead of on the event loop.
"""

import asyncio
import logging
import unittest
from concurrent.futures import Executor
from typing import Any, Optional

from .extensions import create_test_result

logger = logging.getLogger(__name__)


async def run_async(test: Any, result: Optional[unittest.TestResult] = None,
                    executor: Optional[Executor] = None) -> unittest.TestResult:
    """
    Run a decorated test without blocking the event loop

    Args:
        test: Any object with countTestCases() and run(result)
        result: Shared result; a ConcurrentTestResult is created when omitted
        executor: Executor for the blocking run; the loop default when omitted

    Returns:
        The result the test reported into
    """
    result = create_test_result(result)
    loop = asyncio.get_running_loop()
    logger.debug(f"Running {test} in executor")
    await loop.run_in_executor(executor, test.run, result)
    return result
