"""
Cooperative timing primitives.

Everything runs on one logical thread: the host calls
:meth:`CooperativeScheduler.run_pending` from its own loop (UI idle hook,
frame callback, test) and due callbacks fire synchronously.  Time comes
from an injectable monotonic clock so tests can drive it by hand.

Data flow
─────────
  viewport change ─► Debouncer.trigger(viewport)   (latest wins)
  run_pending()
    → Debouncer.poll()        resolution pass with the final viewport
    → PeriodicTimer.poll()    score decay      (catch-up: one step per interval)
    → PeriodicTimer.poll()    rank recompute   (coalesced)
"""

import time
from typing import Any, Callable, List, Optional, Union

from common.logging.logger import get_logger

logger = get_logger("declutter.scheduling")

Clock = Callable[[], float]

_UNSET = object()


class Debouncer:
    """
    Collapses bursts of triggers into one callback with the latest payload.

    Each trigger pushes the due time out to ``now + delay_s``.  There is no
    cancellation token: a newer trigger simply supersedes the pending one.
    """

    def __init__(self, delay_s: float, callback: Callable[[Any], Any], clock: Clock = time.monotonic):
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self.delay_s = delay_s
        self._callback = callback
        self._clock = clock
        self._payload: Any = _UNSET
        self._due: Optional[float] = None
        self.superseded = 0

    @property
    def pending(self) -> bool:
        return self._due is not None

    def trigger(self, payload: Any = None) -> None:
        if self.pending:
            self.superseded += 1
        self._payload = payload
        self._due = self._clock() + self.delay_s

    def cancel(self) -> None:
        self._payload = _UNSET
        self._due = None

    def poll(self) -> bool:
        """Fire if due; returns True when the callback ran."""
        if self._due is None or self._clock() < self._due:
            return False
        return self.flush()

    def flush(self) -> bool:
        """Fire now if anything is pending."""
        if self._due is None:
            return False
        payload = self._payload
        self.cancel()
        self._callback(payload)
        return True


class PeriodicTimer:
    """
    Fixed-interval tick.

    With ``catch_up`` the callback fires once per elapsed interval, so a
    late poll still applies every missed step.  Without it, a late poll
    fires once and the schedule restarts from now.
    """

    def __init__(
        self,
        interval_s: float,
        callback: Callable[[], Any],
        clock: Clock = time.monotonic,
        catch_up: bool = False,
        name: str = "timer",
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.interval_s = interval_s
        self.name = name
        self.catch_up = catch_up
        self._callback = callback
        self._clock = clock
        self._next_due = clock() + interval_s

    @property
    def next_due(self) -> float:
        return self._next_due

    def reset(self) -> None:
        self._next_due = self._clock() + self.interval_s

    def poll(self) -> int:
        """Fire any due ticks; returns how many fired."""
        now = self._clock()
        fired = 0
        while now >= self._next_due:
            self._callback()
            fired += 1
            if self.catch_up:
                self._next_due += self.interval_s
            else:
                self._next_due = now + self.interval_s
        if fired > 1:
            logger.debug(f"{self.name}: caught up {fired} ticks")
        return fired


class CooperativeScheduler:
    """Polls registered debouncers and timers in registration order."""

    def __init__(self, clock: Clock = time.monotonic):
        self.clock = clock
        self._tasks: List[Union[Debouncer, PeriodicTimer]] = []

    def debouncer(self, delay_s: float, callback: Callable[[Any], Any]) -> Debouncer:
        task = Debouncer(delay_s, callback, clock=self.clock)
        self._tasks.append(task)
        return task

    def every(self, interval_s: float, callback: Callable[[], Any], catch_up: bool = False, name: str = "timer") -> PeriodicTimer:
        task = PeriodicTimer(interval_s, callback, clock=self.clock, catch_up=catch_up, name=name)
        self._tasks.append(task)
        return task

    def run_pending(self) -> int:
        """Run everything that is due; returns the number of callbacks fired."""
        fired = 0
        for task in self._tasks:
            result = task.poll()
            fired += int(result)
        return fired
