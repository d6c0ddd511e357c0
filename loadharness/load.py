"""
Load orchestration: simulate concurrent virtual users running a decorated test

A LoadTest dispatches one worker per user, staggered by a delay policy, then
waits for the episode to complete in one of two modes:
- NON-ATOMIC (default): until every directly dispatched worker has returned
- ATOMIC: until every member of the episode's execution group has exited,
  including helper threads the decorated test started through spawn_worker()
"""

import logging
import time
import unittest
from enum import Enum
from typing import Any, Optional

from .barrier import ThreadBarrier
from .config import get_config
from .exceptions import ConfigurationError
from .extensions import RepeatedTest, TestDecorator
from .group import ThreadedTestGroup
from .threaded import ThreadedTest
from .timers import ConstantTimer, RandomTimer, Timer

logger = logging.getLogger(__name__)

NO_DELAY = ConstantTimer(0)


class EpisodeState(Enum):
    """Lifecycle of one LoadTest.run() call"""
    IDLE = "idle"
    DISPATCHING = "dispatching"
    WAITING_FOR_COMPLETION = "waiting_for_completion"
    TORN_DOWN = "torn_down"


class LoadTest(TestDecorator):
    """
    Runs a decorated test as `users` concurrent virtual users

    Args:
        test: Any object with countTestCases() and run(result)
        users: Number of concurrent users, at least 1
        iterations: Sequential repetitions per user (wraps the test in RepeatedTest)
        timer: Delay policy queried after each user is dispatched
        enforce_atomicity: Wait for every group thread instead of only the
            dispatched workers. None takes the configured default.

    `state` is diagnostic and tracks the episode that last changed it. A
    LoadTest nested inside another runs one episode per outer user at the
    same time, so its `state` reflects whichever of them moved last.
    """

    def __init__(self, test: Any, users: int, iterations: int = 1,
                 timer: Timer = NO_DELAY, enforce_atomicity: Optional[bool] = None):
        if users < 1:
            raise ConfigurationError("Number of users must be > 0")
        elif timer is None:
            raise ConfigurationError("Delay timer is null")
        elif test is None:
            raise ConfigurationError("Decorated test is null")
        if not callable(getattr(timer, 'get_delay', None)):
            raise ConfigurationError(f"Delay timer {timer!r} does not provide get_delay()")
        if iterations < 1:
            raise ConfigurationError("Number of iterations must be > 0")

        if iterations > 1:
            test = RepeatedTest(test, iterations)
        super().__init__(test)

        self.users = users
        self.iterations = iterations
        self.timer = timer
        if enforce_atomicity is None:
            enforce_atomicity = get_config().load.enforce_atomicity
        self.enforce_test_atomicity = bool(enforce_atomicity)
        self.state = EpisodeState.IDLE

    def set_enforce_test_atomicity(self, is_atomic: bool) -> None:
        self.enforce_test_atomicity = bool(is_atomic)

    def countTestCases(self) -> int:
        return super().countTestCases() * self.users

    def run(self, result: unittest.TestResult) -> unittest.TestResult:
        barrier = ThreadBarrier(self.users)
        group = ThreadedTestGroup(self)
        threaded_test = ThreadedTest(self.test, group, barrier)
        group.set_test_result(result)

        self.state = EpisodeState.DISPATCHING
        logger.debug(f"Starting {self}", extra={"structured_data": {
            'event': 'episode_start',
            'users': self.users,
            'atomic': self.enforce_test_atomicity,
        }})

        for i in range(self.users):
            if result.shouldStop:
                barrier.cancel_threads(self.users - i)
                logger.info(f"Stop requested, cancelled {self.users - i} of {self.users} user(s)",
                            extra={"structured_data": {
                                'event': 'users_cancelled',
                                'users': self.users,
                                'cancelled': self.users - i,
                            }})
                break
            threaded_test.run(result)
            self._sleep(self.get_delay())

        self.state = EpisodeState.WAITING_FOR_COMPLETION
        self._wait_for_test_completion(barrier, group)
        self._cleanup(group)
        self.state = EpisodeState.TORN_DOWN
        return result

    def _wait_for_test_completion(self, barrier: ThreadBarrier, group: ThreadedTestGroup) -> None:
        if self.enforce_test_atomicity:
            logger.debug(f"Waiting for {group!r} to become idle")
            group.wait_for_idle()
        else:
            logger.debug(f"Waiting for {barrier!r}")
            barrier.wait()

    def _sleep(self, delay: float) -> None:
        if delay > 0:
            time.sleep(delay)

    def _cleanup(self, group: ThreadedTestGroup) -> None:
        try:
            group.destroy()
        except Exception:
            logger.debug("Ignoring failure during execution group teardown", exc_info=True)

    def get_delay(self) -> float:
        return self.timer.get_delay()

    def __str__(self) -> str:
        mode = "ATOMIC" if self.enforce_test_atomicity else "NON-ATOMIC"
        return f"LoadTest ({mode}): ThreadedTest: {self.test}"


def create_load_test(test: Any, users: int, iterations: int = 1,
                     delay: float = 0.0, variation: Optional[float] = None,
                     enforce_atomicity: Optional[bool] = None) -> LoadTest:
    """Build a LoadTest with a constant delay, or a random one when variation is given"""
    timer: Timer = RandomTimer(delay, variation) if variation is not None else ConstantTimer(delay)
    return LoadTest(test, users, iterations=iterations, timer=timer,
                    enforce_atomicity=enforce_atomicity)
