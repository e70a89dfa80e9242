"""Fixed-interval sweep loop.

Sweeps run on a single daemon thread. A sweep is never interrupted, and a
second one never starts while the first is still running: ``run_once``
skips instead of queueing, and ticks missed because a sweep overran are
dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PollingScheduler:
    def __init__(self, job: Callable[[], object], interval_seconds: float, name: str = "sweep") -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.job = job
        self.interval_seconds = float(interval_seconds)
        self.name = name
        self._state_lock = threading.Lock()
        self._sweep_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._stop_event is not None and not self._stop_event.is_set()

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_lock.locked()

    def start(self) -> bool:
        """Start the loop; returns False if it was already running."""
        with self._state_lock:
            if self._stop_event is not None and not self._stop_event.is_set():
                return False
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._loop, args=(stop_event,), name=self.name, daemon=True,
            )
            self._thread.start()
        logger.info("Monitoring started (every %ss)", _fmt(self.interval_seconds))
        return True

    def stop(self) -> bool:
        """Prevent future sweeps. A sweep already running is left to finish."""
        with self._state_lock:
            if self._stop_event is None or self._stop_event.is_set():
                return False
            self._stop_event.set()
            self._stop_event = None
        logger.info("Monitoring stopped")
        return True

    def run_once(self) -> bool:
        """Run the job now unless a sweep is already in progress."""
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("Previous sweep still running; skipping this tick")
            return False
        try:
            self.job()
        except Exception:
            logger.exception("Unexpected error during sweep")
        finally:
            self._sweep_lock.release()
        return True

    def _loop(self, stop_event: threading.Event) -> None:
        next_tick = time.monotonic() + self.interval_seconds
        while not stop_event.wait(max(0.0, next_tick - time.monotonic())):
            self.run_once()
            next_tick += self.interval_seconds
            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                logger.warning("Sweep overran the interval; skipping %d tick(s)", missed)
                next_tick += missed * self.interval_seconds


def _fmt(seconds: float) -> str:
    return f"{seconds:g}"


__all__ = ["PollingScheduler"]
