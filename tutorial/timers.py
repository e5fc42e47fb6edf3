"""Tick-driven timers for the tutorial loop.

Nothing here sleeps. The owner of the game loop calls :meth:`HintScheduler.advance`
once per frame and due callbacks run on that same call stack.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancel token returned by :meth:`HintScheduler.schedule_after`."""

    __slots__ = ("due_at", "callback", "_cancelled", "_fired")

    def __init__(self, due_at: float, callback: Callable[[], None]) -> None:
        self.due_at = due_at
        self.callback = callback
        self._cancelled = False
        self._fired = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        return not self._cancelled and not self._fired

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"TimerHandle(due_at={self.due_at:.3f}, pending={self.pending})"


class HintScheduler:
    """Single-threaded timer queue with its own clock."""

    def __init__(self, start_time: float = 0.0) -> None:
        self._now = float(start_time)
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self._now

    def schedule_after(self, seconds: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._now + max(0.0, float(seconds)), callback)
        heapq.heappush(self._queue, (handle.due_at, next(self._sequence), handle))
        return handle

    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._queue if handle.pending)

    def advance(self, delta: float) -> int:
        """Move the clock forward by ``delta`` seconds and run due timers.

        Callbacks see the clock at their own due time, so a callback that
        schedules a follow-up timer gets an exact offset. Returns how many
        callbacks ran.
        """
        if delta < 0:
            raise ValueError("delta must be non-negative")
        target = self._now + delta
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due_at, _, handle = heapq.heappop(self._queue)
            if not handle.pending:
                continue
            self._now = max(self._now, due_at)
            handle._fired = True
            fired += 1
            try:
                handle.callback()
            except Exception:
                logger.exception("Timer callback %r failed", handle.callback)
        self._now = target
        return fired


__all__ = ["HintScheduler", "TimerHandle"]
