from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class ScheduledCall:
    """Handle for a delayed callback. Cancelling twice is harmless."""

    __slots__ = ("_callback", "_due_at_s", "_cancelled", "_fired")

    def __init__(self, callback: Callable[[], None], due_at_s: float) -> None:
        self._callback = callback
        self._due_at_s = float(due_at_s)
        self._cancelled = False
        self._fired = False

    @property
    def due_at_s(self) -> float:
        return self._due_at_s

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def live(self) -> bool:
        return not (self._cancelled or self._fired)

    def cancel(self) -> None:
        self._cancelled = True

    def _fire(self) -> None:
        self._fired = True
        self._callback()


class Scheduler(Protocol):
    def schedule(self, callback: Callable[[], None], delay_s: float) -> ScheduledCall: ...


class ClockScheduler:
    """Delayed callbacks driven by an injected Clock.

    Nothing runs in the background: the owner calls ``run_due()`` (once per frame in
    the UI, after advancing a fake clock in tests) and every call whose due time has
    been reached fires, earliest first, ties in scheduling order.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._heap: list[tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()

    def schedule(self, callback: Callable[[], None], delay_s: float) -> ScheduledCall:
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        call = ScheduledCall(callback, self._clock.now() + float(delay_s))
        heapq.heappush(self._heap, (call.due_at_s, next(self._seq), call))
        return call

    def pending(self) -> int:
        return sum(1 for _, _, call in self._heap if call.live)

    def run_due(self) -> int:
        now = self._clock.now()
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, call = heapq.heappop(self._heap)
            if not call.live:
                continue
            call._fire()
            fired += 1
        return fired
