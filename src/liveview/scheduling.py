"""Deferred schedulers — "run this on the next turn" for the coalescer.

KeyObserverSet never calls its callback synchronously with the mutation
that triggered it. It hands a function to a scheduler instead. Two are
provided:

- TickScheduler: an explicit queue drained by tick(). Deterministic, used by
  tests and by hosts that own their own main loop.
- asyncio_scheduler(): loop.call_soon_threadsafe on the running (or given)
  event loop.

Both accept work from other threads.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable

Scheduler = Callable[[Callable[[], None]], None]


class TickScheduler:
    """Manual next-turn queue.

    Usage:
        ticks = TickScheduler()
        ticks.schedule(lambda: print("later"))
        ticks.tick()   # prints "later"
    """

    def __init__(self) -> None:
        self._queue: deque[Callable[[], None]] = deque()

    @property
    def pending(self) -> int:
        """Number of functions waiting for the next tick."""
        return len(self._queue)

    def schedule(self, fn: Callable[[], None]) -> None:
        self._queue.append(fn)

    __call__ = schedule

    def tick(self) -> int:
        """Run everything queued before this turn. Returns how many ran.

        Functions scheduled while the turn runs wait for the next tick.
        """
        # Only what is queued now; appends from other threads land behind it.
        count = len(self._queue)
        for _ in range(count):
            self._queue.popleft()()
        return count

    def run_until_idle(self, limit: int = 100) -> int:
        """Tick until nothing is queued. Returns the number of turns taken."""
        turns = 0
        while self._queue:
            if turns >= limit:
                raise RuntimeError(f"Scheduler still busy after {limit} ticks")
            self.tick()
            turns += 1
        return turns


def asyncio_scheduler(loop: asyncio.AbstractEventLoop | None = None) -> Scheduler:
    """Return a scheduler that defers through the loop's call_soon_threadsafe.

    Without an explicit loop, the running loop is looked up on the first call
    and remembered, so the scheduler can be created before the loop starts
    and later be called from other threads (file observers).
    """
    bound = [loop]

    def schedule(fn: Callable[[], None]) -> None:
        if bound[0] is None:
            bound[0] = asyncio.get_running_loop()
        bound[0].call_soon_threadsafe(fn)

    return schedule
