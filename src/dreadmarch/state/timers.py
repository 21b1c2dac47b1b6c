"""Timer abstraction for deferred callbacks.

The notification scheduler and the worker coordinator never sleep; they
ask a :class:`Timer` to call them back later.  :class:`LoopTimer` uses the
asyncio event loop, :class:`ManualTimer` runs on a virtual clock that is
advanced explicitly (deterministic tests, hosts with their own frame loop).
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopTimer:
    """Schedule callbacks on an asyncio event loop.

    Without an explicit *loop* the running loop is used, so ``call_later``
    must then be called from inside a coroutine or loop callback.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop if self._loop is not None else asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ManualHandle:
    __slots__ = ("deadline", "callback", "cancelled")

    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimer:
    """Virtual-time timer; nothing fires until :meth:`advance` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, ManualHandle]] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _deadline, _seq, handle in self._queue if not handle.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.deadline, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in deadline order.

        Callbacks scheduled while advancing fire too if they fall due within
        the same step.  Returns the number of callbacks run.
        """

        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            deadline, _seq, handle = heapq.heappop(self._queue)
            self._now = max(self._now, deadline)
            if handle.cancelled:
                continue
            handle.cancelled = True
            handle.callback()
            fired += 1
        self._now = target
        return fired
