"""Timer scheduler for the reminder session.

Holds one-shot and recurring callbacks and runs them in due order on a
single background thread, so callbacks never overlap. Every timer can be
cancelled explicitly through the handle returned when it was scheduled.
``run_pending`` can also be driven by hand with an explicit time.
"""
from threading import Thread, Event, Lock
import heapq
import itertools
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from config import get_logger

logger = get_logger("scheduler")


def wall_clock() -> datetime:
    """Local time truncated to the whole second."""
    return datetime.now().replace(microsecond=0)


class TimerHandle:
    def __init__(self, due: datetime, callback: Callable[[datetime], None],
                 interval: Optional[float] = None, name: str = ""):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.name = name or getattr(callback, "__name__", "timer")
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        return f"TimerHandle({self.name!r}, due={self.due.isoformat()}, cancelled={self.cancelled})"


class Scheduler:
    def __init__(self, clock: Callable[[], datetime] = wall_clock):
        self.clock = clock
        self._heap = []
        self._seq = itertools.count()
        self._lock = Lock()
        self._stop = Event()
        self._thread = None

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _push(self, handle: TimerHandle) -> TimerHandle:
        with self._lock:
            heapq.heappush(self._heap, (handle.due, next(self._seq), handle))
        return handle

    def call_later(self, delay: float, callback: Callable[[datetime], None], name: str = "",
                   now: Optional[datetime] = None) -> TimerHandle:
        """Run ``callback`` once, ``delay`` seconds after ``now`` (default: the clock)."""
        due = (now or self.clock()) + timedelta(seconds=delay)
        return self._push(TimerHandle(due, callback, name=name))

    def call_every(self, interval: float, callback: Callable[[datetime], None], name: str = "",
                   now: Optional[datetime] = None) -> TimerHandle:
        due = (now or self.clock()) + timedelta(seconds=interval)
        return self._push(TimerHandle(due, callback, interval=interval, name=name))

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def pending(self) -> List[TimerHandle]:
        with self._lock:
            return sorted((h for _, _, h in self._heap if not h.cancelled), key=lambda h: h.due)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run_pending(self, now: Optional[datetime] = None) -> int:
        """Run every callback due at ``now``, earliest first. Returns how many ran."""
        now = now or self.clock()
        ran = 0
        while True:
            with self._lock:
                if not self._heap or self._heap[0][0] > now:
                    break
                _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            try:
                handle.callback(now)
            except Exception:
                logger.exception(f"Timer {handle.name} failed")
            ran += 1
            if handle.interval and not handle.cancelled:
                handle.due = handle.due + timedelta(seconds=handle.interval)
                if handle.due <= now:
                    handle.due = now + timedelta(seconds=handle.interval)
                self._push(handle)
        return ran

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)

    def _run(self):
        while not self._stop.is_set():
            self.run_pending(self.clock())
            # sleep until the next whole second
            now = datetime.now()
            self._stop.wait(1.0 - now.microsecond / 1_000_000)
