import heapq
import itertools
from typing import Callable, List, Tuple


class TimerHandle:
    def __init__(self, delay: float):
        self.delay = delay
        self.cancelled = False
        self.fired = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True


class SocketIOScheduler:
    """Arms one-shot timers as Socket.IO background tasks.

    ``socketio.sleep`` and ``start_background_task`` pick the right primitive
    for the async mode in use (threading, eventlet or gevent).
    """

    def __init__(self, socketio, logger=None):
        self.socketio = socketio
        self.logger = logger

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(delay)

        def _worker():
            if delay > 0:
                self.socketio.sleep(delay)
            if handle.cancelled:
                return
            handle.fired = True
            try:
                callback()
            except Exception:
                if self.logger is not None:
                    self.logger.exception(f"[timer-error] callback failed after {delay}s")
                raise

        self.socketio.start_background_task(_worker)
        return handle


class VirtualScheduler:
    """Deterministic scheduler driven by an explicit virtual clock.

    Time is kept in whole milliseconds so a hundred 100 ms ticks land
    exactly on the ten second mark.
    """

    def __init__(self):
        self.now_ms = 0
        self._seq = itertools.count()
        self._queue: List[Tuple[int, int, TimerHandle, Callable[[], None]]] = []

    @property
    def now(self) -> float:
        return self.now_ms / 1000.0

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(delay)
        due = self.now_ms + int(round(delay * 1000))
        heapq.heappush(self._queue, (due, next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> List[TimerHandle]:
        return [entry[2] for entry in self._queue if entry[2].pending]

    def _pop_live(self):
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0] if self._queue else None

    def step(self) -> bool:
        """Jump to the next live timer and fire it. Returns False when idle."""
        head = self._pop_live()
        if head is None:
            return False
        due, _, handle, callback = heapq.heappop(self._queue)
        self.now_ms = max(self.now_ms, due)
        handle.fired = True
        callback()
        return True

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every timer that falls due."""
        target = self.now_ms + int(round(seconds * 1000))
        fired = 0
        while True:
            head = self._pop_live()
            if head is None or head[0] > target:
                break
            self.step()
            fired += 1
        self.now_ms = target
        return fired

    def run_until(self, predicate: Callable[[], bool], max_steps: int = 100000) -> bool:
        for _ in range(max_steps):
            if predicate():
                return True
            if not self.step():
                break
        return predicate()
