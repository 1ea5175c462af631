"""A headless stand-in for the Tk ``after`` timer API."""

import heapq
import itertools
import logging
import time

logger = logging.getLogger(__name__)


class TickLoop:
    """Single-threaded timer loop with Tk's ``after``/``after_cancel`` interface.

    The engine only needs those two calls, so a ``tkinter.Tk`` root can be used
    instead when a GUI owns the main loop.
    """

    def __init__(self, clock=time.monotonic, sleep=time.sleep):
        self._clock = clock
        self._sleep = sleep
        self._timers = []
        self._cancelled = set()
        self._ids = itertools.count(1)
        self._stopped = False

    def after(self, delay_ms, callback, *args):
        timer_id = next(self._ids)
        due = self._clock() + max(0, delay_ms) / 1000.0
        heapq.heappush(self._timers, (due, timer_id, callback, args))
        return timer_id

    def after_cancel(self, timer_id):
        self._cancelled.add(timer_id)

    def pending(self) -> int:
        return sum(1 for t in self._timers if t[1] not in self._cancelled)

    def stop(self):
        self._stopped = True

    def run(self, until=None, timeout: float | None = None) -> bool:
        """Fire timers as they fall due.

        Returns True once ``until()`` holds, ``stop()`` is called or no timers
        remain, and False when ``timeout`` seconds pass first.
        """
        self._stopped = False
        deadline = None if timeout is None else self._clock() + timeout
        while not self._stopped and not (until and until()):
            if not self._timers:
                return True
            due, timer_id, callback, args = self._timers[0]
            if timer_id in self._cancelled:
                heapq.heappop(self._timers)
                self._cancelled.discard(timer_id)
                continue
            now = self._clock()
            if deadline is not None and now >= deadline:
                return False
            if due > now:
                wait = due - now if deadline is None else min(due - now, deadline - now)
                self._sleep(wait)
                continue
            heapq.heappop(self._timers)
            callback(*args)
        return True
