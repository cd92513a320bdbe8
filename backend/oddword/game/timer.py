from __future__ import annotations

import logging
import threading
import time
from typing import Callable


log = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def time_left(now: int, start_time: int, duration_sec: int) -> int:
    """Seconds remaining in a round anchored at ``start_time`` (epoch ms)."""
    elapsed = (now - start_time) // 1000
    return max(0, duration_sec - elapsed)


class CountdownTimer:
    """Countdown derived from a shared start time.

    The remaining time is recomputed from ``clock()`` on every evaluation, so
    ticks can be late, skipped or doubled without drifting. ``on_expire`` fires
    once, the first time an evaluation sees zero.
    """

    def __init__(
        self,
        start_time: int,
        duration_sec: int,
        on_tick: Callable[[int], None] | None = None,
        on_expire: Callable[[], None] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.start_time = start_time
        self.duration_sec = duration_sec
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._clock = clock
        self._lock = threading.Lock()
        self._expired = False
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def evaluate(self, now: int | None = None) -> int:
        if now is None:
            now = self._clock()
        remaining = time_left(now, self.start_time, self.duration_sec)

        fire = False
        with self._lock:
            if remaining <= 0 and not self._expired and not self._cancelled.is_set():
                self._expired = True
                fire = True

        if self._on_tick and not self._cancelled.is_set():
            self._on_tick(remaining)
        if fire:
            log.debug("countdown expired start=%s duration=%ss", self.start_time, self.duration_sec)
            if self._on_expire:
                self._on_expire()
        return remaining

    def start(self, interval: float = 1.0) -> None:
        if self._thread is not None:
            return
        # Update immediately, then on every tick.
        self.evaluate()
        if self._expired:
            return

        def _runner() -> None:
            while not self._cancelled.wait(interval):
                self.evaluate()
                if self._expired:
                    break

        self._thread = threading.Thread(target=_runner, name="countdown-timer", daemon=True)
        self._thread.start()

    def cancel(self, wait: bool = True) -> None:
        """Stops the countdown. With ``wait`` the runner thread is joined briefly."""
        self._cancelled.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
