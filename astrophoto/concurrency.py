"""
AstroPhoto Stream Concurrency

Building blocks for running recomputations in the background while the
event loop stays responsive:

- CancellationToken: cooperative cancellation flag checked by computations
  between their expensive steps.
- PublishedValue: versioned single-writer cell holding the latest result,
  with subscriber callbacks for the presentation layer.
- StreamCoordinator: keeps at most one in-flight job per logical stream.
  Submitting a new job cancels the previous one, and only a job that
  finishes uncancelled while still current may publish.

Job lifecycle:

    IDLE --submit--> RUNNING --+--> PUBLISHED
                               +--> CANCELLED   (superseded or cancel())
                               +--> FAILED      (error logged, nothing published)

Usage:
    executor = ThreadPoolExecutor(max_workers=2)
    stream = StreamCoordinator("daily", executor, PublishedValue("daily", DailySnapshot()))

    stream.submit(calculator.calculate, day, location)
    await stream.wait()
    print(stream.result.value)
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
import threading
from concurrent.futures import Executor
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar

from astrophoto.exceptions import ComputationCancelled
from astrophoto.logging_config import job_context, log_exception, log_timing

logger = logging.getLogger("astrophoto.concurrency")

__all__ = [
    "CancellationToken",
    "PublishedValue",
    "StreamState",
    "StreamCoordinator",
]

T = TypeVar("T")


class CancellationToken:
    """Thread-safe cooperative cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Checkpoint: raise ComputationCancelled once cancel() was called."""
        if self._event.is_set():
            raise ComputationCancelled()


class PublishedValue(Generic[T]):
    """Latest-value cell with a version counter.

    Writes replace the whole value under a lock, so a reader always sees
    either the previous complete value or the new one.
    """

    def __init__(self, name: str, initial: T):
        self.name = name
        self._lock = threading.Lock()
        self._value = initial
        self._version = 0
        self._subscribers: List[Callable[[T], Any]] = []

    @property
    def value(self) -> T:
        with self._lock:
            return self._value

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def snapshot(self) -> tuple[int, T]:
        """Version and value read together."""
        with self._lock:
            return self._version, self._value

    def publish(self, value: T) -> int:
        """Replace the value and notify subscribers. Returns the new version."""
        with self._lock:
            self._value = value
            self._version += 1
            version = self._version
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Subscriber error on {self.name}: {e}")
        return version

    def subscribe(self, callback: Callable[[T], Any]) -> Callable[[], None]:
        """Register a callback for new values. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe


class StreamState(Enum):
    """State of the most recent job of a stream."""

    IDLE = "idle"
    RUNNING = "running"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    FAILED = "failed"


class StreamCoordinator(Generic[T]):
    """Serializes one logical stream of recomputations.

    Jobs are callables ``fn(*args, token=token)`` run on the executor. The
    arguments are captured when submit() is called, never re-read later.

    Must be driven from the event loop thread.
    """

    def __init__(
        self,
        name: str,
        executor: Executor,
        result: PublishedValue[T],
        loading: Optional[PublishedValue[bool]] = None,
        warn_threshold_sec: Optional[float] = None,
    ):
        self.name = name
        self.result = result
        self.loading = loading
        self._executor = executor
        self._warn_threshold_sec = warn_threshold_sec
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancellationToken] = None
        self._generation = 0
        self.state = StreamState.IDLE
        self.last_error: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def generation(self) -> int:
        """Number of jobs submitted so far."""
        return self._generation

    def submit(self, fn: Callable[..., T], *args: Any) -> asyncio.Task:
        """Cancel the in-flight job, if any, and start a new one.

        Args:
            fn: Computation called as ``fn(*args, token=token)`` on a worker thread
            *args: Request parameters, captured now

        Returns:
            The asyncio task running the job
        """
        self._cancel_in_flight()

        self._generation += 1
        generation = self._generation
        token = CancellationToken()
        self._token = token
        self.state = StreamState.RUNNING
        self.last_error = None
        if self.loading is not None:
            self.loading.publish(True)

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._run(generation, token, fn, args),
            name=f"{self.name}-{generation}",
        )
        return self._task

    def cancel(self) -> None:
        """Cancel the in-flight job without starting another one."""
        if self._cancel_in_flight():
            self.state = StreamState.CANCELLED
        if self.loading is not None and self.loading.value:
            self.loading.publish(False)

    async def wait(self) -> None:
        """Wait until the stream has no in-flight job.

        Never raises for cancelled or failed jobs.
        """
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def _cancel_in_flight(self) -> bool:
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug(f"{self.name}: cancelled job {self._generation}")
            return True
        return False

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _run(
        self,
        generation: int,
        token: CancellationToken,
        fn: Callable[..., T],
        args: tuple,
    ) -> None:
        loop = asyncio.get_running_loop()
        with job_context(stream=self.name):
            ctx = contextvars.copy_context()
            try:
                with log_timing(logger, f"{self.name} job {generation}",
                                warn_threshold_sec=self._warn_threshold_sec):
                    value = await loop.run_in_executor(
                        self._executor, ctx.run, functools.partial(fn, *args, token=token)
                    )
                token.raise_if_cancelled()
                if not self._is_current(generation):
                    raise ComputationCancelled()

                version = self.result.publish(value)
                self.state = StreamState.PUBLISHED
                logger.debug(f"{self.name}: published version {version}")

            except asyncio.CancelledError:
                token.cancel()
                self._mark_cancelled(generation)
                raise
            except ComputationCancelled:
                self._mark_cancelled(generation)
                raise asyncio.CancelledError(f"{self.name} job {generation} superseded") from None
            except Exception as e:
                if self._is_current(generation):
                    self.state = StreamState.FAILED
                    self.last_error = e
                log_exception(logger, f"{self.name} computation failed", e)
            finally:
                # A superseded job leaves the flag to its successor
                if (
                    self.loading is not None
                    and self._is_current(generation)
                    and self.loading.value
                ):
                    self.loading.publish(False)

    def _mark_cancelled(self, generation: int) -> None:
        logger.debug(f"{self.name}: job {generation} cancelled before publishing")
        if self._is_current(generation):
            self.state = StreamState.CANCELLED
