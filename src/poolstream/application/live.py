from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Callable, Generic, TypeVar

from ..domain.errors import PoolStreamError, SubscriptionError

log = logging.getLogger(__name__)

T = TypeVar("T")


class EndOfStream(PoolStreamError):
    """The source was closed and every buffered item has been consumed."""


class LiveEventSource(Generic[T]):
    """
    Unbounded FIFO between a push-based subscription and a pulling consumer.

    `push` may be called from any thread or task and never blocks. `next` polls
    every `poll_interval_s` while empty, so latency is bounded by the interval.
    """

    def __init__(self, poll_interval_s: float = 1.0) -> None:
        self.poll_interval_s = poll_interval_s
        self._buf: deque[T] = deque()
        self._lock = threading.Lock()
        self._closed = False
        self._error: BaseException | None = None
        self._detach: Callable[[], None] | None = None
        self.dropped = 0

    def attach(self, detach: Callable[[], None]) -> None:
        self._detach = detach

    def push(self, item: T) -> bool:
        with self._lock:
            if self._closed or self._error is not None:
                self.dropped += 1
                return False
            self._buf.append(item)
            return True

    def fail(self, exc: BaseException) -> None:
        """Mark the feed as broken; buffered items are still delivered first."""
        with self._lock:
            if self._error is None and not self._closed:
                self._error = exc

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            detach, self._detach = self._detach, None
        if detach is not None:
            detach()

    async def next(self) -> T:
        while True:
            with self._lock:
                if self._buf:
                    return self._buf.popleft()
                if self._error is not None:
                    raise SubscriptionError(str(self._error)) from self._error
                if self._closed:
                    raise EndOfStream()
            await asyncio.sleep(self.poll_interval_s)

    def __aiter__(self) -> LiveEventSource[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.next()
        except EndOfStream:
            raise StopAsyncIteration
