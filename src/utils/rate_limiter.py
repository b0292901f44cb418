"""Serialized, rate-limited dispatch queue for outbound LLM requests."""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MIN_INTERVAL_SECONDS = 1.0


class RateWindow:
    """Sliding-window accounting of dispatches.

    Only :class:`RateLimitedQueue` touches an instance; nothing else reads or
    mutates it.
    """

    def __init__(self, limit: int, window_seconds: float = DEFAULT_WINDOW_SECONDS):
        if limit < 1:
            raise ValueError("rate limit must be at least 1 request per window")
        self.limit = limit
        self.window_seconds = window_seconds
        self._dispatches: deque[float] = deque()

    def _prune(self, now: float) -> None:
        """Forget dispatches that have left the window."""
        while self._dispatches and now - self._dispatches[0] >= self.window_seconds:
            self._dispatches.popleft()

    def wait_time(self, now: float) -> float:
        """Seconds until another dispatch fits in the window (0 if it fits now)."""
        self._prune(now)
        if len(self._dispatches) < self.limit:
            return 0.0
        return max(0.0, self.window_seconds - (now - self._dispatches[0]))

    def record(self, now: float) -> None:
        self._dispatches.append(now)

    def window_start(self, now: float) -> Optional[float]:
        self._prune(now)
        return self._dispatches[0] if self._dispatches else None

    def requests_in_window(self, now: float) -> int:
        self._prune(now)
        return len(self._dispatches)


class ItemState(str, Enum):
    QUEUED = "queued"
    DISPATCHING = "dispatching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class QueueItem:
    """A unit of work waiting for its turn on the wire."""
    invoke: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    state: ItemState = field(default=ItemState.QUEUED)

    def succeed(self, value: Any) -> None:
        self.state = ItemState.SUCCEEDED
        # The caller may have stopped waiting; its result is then discarded.
        if not self.future.done():
            self.future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        self.state = ItemState.FAILED
        if not self.future.done():
            self.future.set_exception(exc)

    def cancel(self) -> None:
        self.state = ItemState.FAILED
        if not self.future.done():
            self.future.cancel()


class RateLimitedQueue:
    """FIFO queue drained by a single dispatcher under a per-window cap.

    At most ``requests_per_minute`` items are dispatched in any rolling
    window, and the dispatcher pauses ``min_interval`` seconds after every
    dispatch. Items never run concurrently. Failures are delivered to the
    submitting caller only and do not affect later items; nothing is retried.

    Usage::

        queue = RateLimitedQueue(requests_per_minute=60)
        text = await queue.submit(lambda: client.create_completion(system, prompt))
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._window = RateWindow(requests_per_minute, window_seconds)
        self._min_interval = min_interval
        self._name = name
        self._clock = clock
        self._sleep = sleep
        self._items: deque[QueueItem] = deque()
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.dispatched = 0

    async def submit(self, invoke: Callable[[], Awaitable[Any]]) -> Any:
        """Enqueue *invoke* and wait for its result (or exception)."""
        loop = asyncio.get_running_loop()
        item = QueueItem(invoke=invoke, future=loop.create_future())
        self._items.append(item)
        logger.debug("Queue(%s) enqueued item (pending=%d)", self._name, len(self._items))
        self._ensure_dispatching(loop)
        return await item.future

    def _ensure_dispatching(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._running:
            return
        self._running = True
        self._task = loop.create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        try:
            while self._items:
                wait = self._window.wait_time(self._clock())
                if wait > 0:
                    logger.info(
                        "Queue(%s) rate limit of %d/window reached, sleeping %.2fs",
                        self._name, self._window.limit, wait,
                    )
                    await self._sleep(wait)
                    continue

                item = self._items.popleft()
                item.state = ItemState.DISPATCHING
                self._window.record(self._clock())
                self.dispatched += 1
                try:
                    result = await item.invoke()
                except asyncio.CancelledError:
                    # Dispatcher stopped mid-request; release the waiting caller.
                    item.cancel()
                    raise
                except Exception as exc:
                    logger.warning("Queue(%s) request failed: %s", self._name, exc)
                    item.fail(exc)
                else:
                    item.succeed(result)

                if self._min_interval > 0:
                    await self._sleep(self._min_interval)
        finally:
            self._running = False

    async def wait_idle(self) -> None:
        """Wait until the dispatcher has drained every queued item."""
        while self._running and self._task is not None:
            await asyncio.shield(self._task)

    @property
    def pending(self) -> int:
        """Number of items waiting to be dispatched."""
        return len(self._items)

    @property
    def is_dispatching(self) -> bool:
        return self._running

    @property
    def limit(self) -> int:
        return self._window.limit

    @property
    def requests_in_window(self) -> int:
        """Number of dispatches inside the current rolling window."""
        return self._window.requests_in_window(self._clock())
