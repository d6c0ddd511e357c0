"""
Execution group for the worker threads of one load episode

Python has no thread groups, so membership is an explicit registry:
- GroupThread registers itself before starting and deregisters on exit
- Uncaught exceptions from any member are routed to the owning group
- Interruption is cooperative: interrupt() sets the stop event of every
  member registered at that moment, and members observe their own event at
  interruption points (sleep / check_interrupted). Members started later
  are not affected.
- Decorated tests that start helper threads through spawn_worker() make
  those helpers members too, so atomic completion can wait for them
"""

import itertools
import logging
import threading
import time
import unittest
from typing import Any, Callable, Optional, Set

from .exceptions import ErrorCategory, WorkerInterrupted, classify_exception

logger = logging.getLogger(__name__)


class GroupThread(threading.Thread):
    """Worker thread that belongs to a ThreadedTestGroup"""

    def __init__(self, group: 'ThreadedTestGroup', target: Callable[..., Any],
                 args: tuple = (), kwargs: Optional[dict] = None,
                 name: Optional[str] = None, daemon: bool = True):
        super().__init__(target=target, args=args, kwargs=kwargs or {},
                         name=name or group.next_thread_name(), daemon=daemon)
        self.execution_group = group
        self.interrupted = threading.Event()

    def start(self) -> None:
        self.execution_group._register(self)
        try:
            super().start()
        except BaseException:
            self.execution_group._deregister(self)
            raise

    def run(self) -> None:
        try:
            super().run()
        except BaseException as e:
            self.execution_group.uncaught_exception(self, e)
        finally:
            self.execution_group._deregister(self)


class ThreadedTestGroup:
    """
    Owns the worker threads of one load episode

    Failures escaping a member are recorded against the outer test in the
    shared result (AssertionError as a failure, anything else as an error)
    and then every member is asked to stop at its next interruption point.
    """

    def __init__(self, test: Any, name: str = "ThreadedTestGroup"):
        self.test = test
        self.name = name
        self._result: Optional[unittest.TestResult] = None
        self._threads: Set[GroupThread] = set()
        self._condition = threading.Condition()
        self._failure_lock = threading.Lock()
        self._interrupted = threading.Event()
        self._destroyed = False
        self._counter = itertools.count(1)

    def set_test_result(self, result: unittest.TestResult) -> None:
        """Bind the shared result; must happen before any member starts"""
        self._result = result

    @property
    def test_result(self) -> Optional[unittest.TestResult]:
        return self._result

    def next_thread_name(self) -> str:
        return f"{self.name}-{next(self._counter)}"

    def spawn(self, target: Callable[..., Any], *args, name: Optional[str] = None,
              daemon: bool = True, **kwargs) -> GroupThread:
        """Start a new member thread running target(*args, **kwargs)"""
        thread = GroupThread(self, target, args=args, kwargs=kwargs, name=name, daemon=daemon)
        thread.start()
        return thread

    def uncaught_exception(self, thread: threading.Thread, exc: BaseException) -> None:
        """Record a failure that escaped a member thread and interrupt the group"""
        category = classify_exception(exc)
        if category is ErrorCategory.INTERRUPTED:
            logger.debug(f"{thread.name} stopped after interruption")
            return

        exc_info = (type(exc), exc, exc.__traceback__)
        with self._failure_lock:
            if self._result is None:
                logger.error(f"Uncaught exception in {thread.name} with no test result bound",
                             exc_info=exc_info)
            elif category in (ErrorCategory.ASSERTION, ErrorCategory.TIMEOUT):
                self._result.addFailure(self.test, exc_info)
            else:
                self._result.addError(self.test, exc_info)

        logger.warning(
            f"Uncaught {type(exc).__name__} in {thread.name}, interrupting {self.name}",
            extra={"structured_data": {
                'event': 'uncaught_exception',
                'thread': thread.name,
                'category': category.value,
                'error_message': str(exc),
            }}
        )
        self.interrupt()

    def interrupt(self) -> None:
        """Signal every current member to stop at its next interruption point"""
        with self._condition:
            self._interrupted.set()
            members = list(self._threads)
        for thread in members:
            thread.interrupted.set()

    def is_interrupted(self) -> bool:
        """True once interrupt() has been called on this group"""
        return self._interrupted.is_set()

    def _interrupt_event(self) -> threading.Event:
        thread = threading.current_thread()
        if isinstance(thread, GroupThread) and thread.execution_group is self:
            return thread.interrupted
        # Non-members observe the group-wide flag
        return self._interrupted

    def check_interrupted(self) -> None:
        if self._interrupt_event().is_set():
            raise WorkerInterrupted(f"{self.name} was interrupted")

    def sleep(self, seconds: float) -> None:
        """Sleep that ends early with WorkerInterrupted when the calling member is interrupted"""
        if self._interrupt_event().wait(max(0.0, seconds)):
            raise WorkerInterrupted(f"{self.name} was interrupted")

    def active_count(self) -> int:
        with self._condition:
            return len(self._threads)

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no member is running; returns False if the timeout expired first"""
        with self._condition:
            return self._condition.wait_for(lambda: not self._threads, timeout)

    def destroy(self) -> None:
        """Tear down the group; members still running are interrupted, not joined"""
        with self._condition:
            self._destroyed = True
        self.interrupt()
        remaining = self.active_count()
        if remaining:
            logger.debug(f"{self.name} destroyed with {remaining} active thread(s)")

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _register(self, thread: GroupThread) -> None:
        with self._condition:
            if self._destroyed:
                raise WorkerInterrupted(f"{self.name} has been destroyed")
            self._threads.add(thread)

    def _deregister(self, thread: GroupThread) -> None:
        with self._condition:
            self._threads.discard(thread)
            if not self._threads:
                self._condition.notify_all()

    def __repr__(self) -> str:
        return f"ThreadedTestGroup(name={self.name!r}, active={self.active_count()})"


def current_group() -> Optional[ThreadedTestGroup]:
    """Return the group of the calling worker thread, or None outside a group"""
    return getattr(threading.current_thread(), 'execution_group', None)


def spawn_worker(target: Callable[..., Any], *args, name: Optional[str] = None,
                 **kwargs) -> threading.Thread:
    """
    Start a helper thread from inside a decorated test

    Inside a load episode the helper joins the caller's group, so atomic
    completion waits for it and its uncaught failures are recorded. Outside
    one it is a plain daemon thread.
    """
    group = current_group()
    if group is not None:
        return group.spawn(target, *args, name=name, **kwargs)
    thread = threading.Thread(target=target, args=args, kwargs=kwargs, name=name, daemon=True)
    thread.start()
    return thread


def interruptible_sleep(seconds: float) -> None:
    """Sleep that honors group interruption when called from a group member"""
    group = current_group()
    if group is not None:
        group.sleep(seconds)
    else:
        time.sleep(seconds)
