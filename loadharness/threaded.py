"""
Threaded execution wrapper: runs a decorated test on its own worker thread
"""

import logging
import threading
import unittest
from typing import Any, Optional

from .barrier import ThreadBarrier
from .extensions import TestDecorator
from .group import GroupThread, ThreadedTestGroup

logger = logging.getLogger(__name__)


class ThreadedTest(TestDecorator):
    """
    Starts one worker per run() call and returns immediately

    The worker runs the decorated test against the shared result and then
    signals the barrier exactly once, whatever the outcome. Synchronization
    with the dispatcher happens only through the barrier.
    """

    def __init__(self, test: Any, group: Optional[ThreadedTestGroup] = None,
                 barrier: Optional[ThreadBarrier] = None):
        super().__init__(test)
        self.group = group
        self.barrier = barrier if barrier is not None else ThreadBarrier(1)

    def run(self, result: unittest.TestResult) -> unittest.TestResult:
        if self.group is not None:
            thread = GroupThread(self.group, self._run_worker, args=(result,))
        else:
            thread = threading.Thread(target=self._run_worker, args=(result,), daemon=True)
        thread.start()
        logger.debug(f"Dispatched {thread.name} for {self.test}")
        return result

    def _run_worker(self, result: unittest.TestResult) -> None:
        # Escaping failures are recorded before the barrier is signalled
        try:
            self.test.run(result)
        except BaseException as e:
            if self.group is None:
                raise
            self.group.uncaught_exception(threading.current_thread(), e)
        finally:
            self.barrier.on_completion(threading.current_thread())

    def __str__(self) -> str:
        return f"ThreadedTest: {self.test}"
