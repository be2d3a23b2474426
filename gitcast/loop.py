"""Headless control loop used by the CLI and tests."""

import queue
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _Timer:
    interval: float
    due: float
    callback: Callable[[], None]
    active: bool = True


class SimpleLoop:
    """FIFO of callbacks plus interval timers, drained by one thread.

    `schedule` is safe to call from any thread. Everything else, including
    the callbacks themselves, runs on the thread calling `run_until`.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._queue: queue.Queue[Callable[[], None]] = queue.Queue()
        self._timers: list[_Timer] = []

    def schedule(self, callback: Callable[[], None]) -> None:
        self._queue.put(callback)

    def set_interval(self, interval: float, callback: Callable[[], None]) -> Callable[[], None]:
        timer = _Timer(interval=interval, due=self.clock() + interval, callback=callback)
        self._timers.append(timer)

        def cancel() -> None:
            timer.active = False

        return cancel

    def run_pending(self) -> int:
        """Run queued callbacks and due timers without blocking."""
        ran = 0
        while True:
            try:
                callback = self._queue.get_nowait()
            except queue.Empty:
                break
            callback()
            ran += 1
        return ran + self._fire_timers()

    def run_until(self, predicate: Callable[[], bool], timeout: float | None = None) -> bool:
        """Drain the loop until `predicate()` holds; False on timeout."""
        deadline = None if timeout is None else self.clock() + timeout
        while not predicate():
            now = self.clock()
            if deadline is not None and now >= deadline:
                return False
            wait = 0.05
            live = [timer.due for timer in self._timers if timer.active]
            if live:
                wait = max(0.0, min(wait, min(live) - now))
            try:
                callback = self._queue.get(timeout=wait)
            except queue.Empty:
                pass
            else:
                callback()
            self._fire_timers()
        return True

    def _fire_timers(self) -> int:
        fired = 0
        now = self.clock()
        self._timers = [timer for timer in self._timers if timer.active]
        for timer in list(self._timers):
            if timer.active and timer.due <= now:
                timer.due = now + timer.interval
                timer.callback()
                fired += 1
        return fired
