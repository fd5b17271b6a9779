"""
Request rate limiting for the completion endpoint.

Operations are queued and started one at a time, never closer together than
``1 / rps`` seconds. Spacing is measured between starts: a slow request does
not delay the next one beyond the interval.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Set, Tuple, TypeVar

from pagetranslate.config import RATE_LIMITER_TICK, REQUESTS_PER_SECOND
from pagetranslate.core.exceptions import ConfigurationError, RequestCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[Any]]


class RateLimiter:
    """
    FIFO queue that releases at most one operation per interval.

    A pump task runs while the queue is non-empty. On each pass it starts
    the head of the queue if the interval since the previous start has
    elapsed, otherwise it sleeps for a short tick.
    """

    def __init__(
        self,
        rps: float = REQUESTS_PER_SECOND,
        tick: float = RATE_LIMITER_TICK,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            rps: Requests per second (fractional values allowed)
            tick: Poll interval of the pump in seconds
            clock: Monotonic time source in seconds
        """
        self._check_rps(rps)
        self._rps = rps
        self._tick = tick
        self._clock = clock
        self._queue: Deque[Tuple[Operation, asyncio.Future]] = deque()
        self._last_dispatch: Optional[float] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def rps(self) -> float:
        return self._rps

    @property
    def interval(self) -> float:
        """Minimum seconds between two dispatches."""
        return 1.0 / self._rps

    @property
    def pending(self) -> int:
        """Number of queued operations not yet started."""
        return len(self._queue)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Queue an operation and wait for its result.

        Args:
            operation: Zero-argument coroutine function

        Returns:
            Whatever the operation returns; its exceptions propagate

        Raises:
            RequestCancelledError: The queue was cleared before the operation started
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((operation, future))
        self._ensure_pump()
        return await future

    def update_rps(self, rps: float) -> None:
        """Change the rate for all subsequent dispatches."""
        self._check_rps(rps)
        logger.debug(f"Rate limit changed from {self._rps} to {rps} requests/second")
        self._rps = rps

    def clear_queue(self) -> int:
        """
        Drop every operation that has not started yet and stop the pump.

        Callers waiting on dropped operations receive RequestCancelledError.
        Operations already started keep running.

        Returns:
            Number of operations dropped
        """
        dropped = 0
        while self._queue:
            _, future = self._queue.popleft()
            if not future.done():
                future.set_exception(RequestCancelledError())
            dropped += 1

        if self._pump_task is not None:
            self._pump_task.cancel()
            self._pump_task = None

        if dropped:
            logger.info(f"Rate limiter queue cleared, {dropped} pending request(s) cancelled")
        return dropped

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.ensure_future(self._pump())

    async def _pump(self) -> None:
        try:
            while self._queue:
                now = self._clock()
                if self._last_dispatch is not None:
                    remaining = self.interval - (now - self._last_dispatch)
                    if remaining > 0:
                        await asyncio.sleep(min(self._tick, remaining))
                        continue

                operation, future = self._queue.popleft()
                if future.done():
                    # caller stopped waiting
                    continue
                self._last_dispatch = now
                self._dispatch(operation, future)
        finally:
            if self._pump_task is asyncio.current_task():
                self._pump_task = None

    def _dispatch(self, operation: Operation, future: asyncio.Future) -> None:
        task = asyncio.ensure_future(self._run(operation, future))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    @staticmethod
    async def _run(operation: Operation, future: asyncio.Future) -> None:
        try:
            result = await operation()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)

    @staticmethod
    def _check_rps(rps: float) -> None:
        if rps is None or rps <= 0:
            raise ConfigurationError(f"Requests per second must be positive, got {rps}")
