"""
rate_limiter.py - Process-wide throttle for outbound validation requests.

Every scheduled task runs one at a time, in submission order, with at least
``min_interval`` seconds between the start of consecutive tasks. The limiter
knows nothing about URLs; it only spaces out coroutines.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]

DEFAULT_MIN_INTERVAL = 0.1


class RateLimiter:
    """FIFO queue that enforces a minimum spacing between task starts."""

    def __init__(self, min_interval: float = DEFAULT_MIN_INTERVAL):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.min_interval = min_interval
        self._queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self._processing = False
        self._last_start: Optional[float] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        """Number of tasks waiting for their turn."""
        return len(self._queue)

    async def schedule(self, task: Task) -> Any:
        """
        Queues ``task`` and waits for its result.

        The task's exception, if any, is raised here and nowhere else; the
        queue keeps draining for everyone else.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((task, future))

        if not self._processing:
            self._processing = True
            self._worker = loop.create_task(self._process_queue())

        return await future

    async def _process_queue(self) -> None:
        try:
            while self._queue:
                task, future = self._queue.popleft()
                if future.cancelled():
                    # Caller gave up before its turn came.
                    continue

                await self._wait_for_turn()
                self._last_start = time.monotonic()

                try:
                    result = await task()
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            self._processing = False
            if self._queue:
                logger.warning("Rate limiter stopped with %d task(s) still queued", len(self._queue))

    async def _wait_for_turn(self) -> None:
        if self._last_start is None:
            return
        elapsed = time.monotonic() - self._last_start
        delay = max(0.0, self.min_interval - elapsed)
        if delay > 0:
            await asyncio.sleep(delay)
