"""
Countdown timer bound to an exam's duration.

Remaining time is always recomputed from the absolute start timestamp and
the clock, never accumulated from ticks, so it survives reloads and
suspended processes. The timer is the only thing that forces submission.
"""

import threading
from datetime import datetime
from typing import Callable, Optional

from .clock import Clock, SystemClock


class CountdownTimer:
    """Monotonic decrementing clock that fires a single expiry signal."""

    def __init__(
        self,
        duration_minutes: int,
        clock: Optional[Clock] = None,
        on_expire: Optional[Callable[[], None]] = None,
        tick_interval: float = 1.0
    ):
        self.duration_seconds = int(duration_minutes) * 60
        self.clock = clock or SystemClock()
        self.on_expire = on_expire
        self.tick_interval = tick_interval

        self.started_at: Optional[datetime] = None
        self.running = False
        self.expired = False

        # Lowest value ever reported; remaining time never goes back up
        self._floor = self.duration_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self, started_at: Optional[datetime]):
        """
        Start (or resume) counting down from an absolute start time.

        A missing start time means the real one cannot be trusted, so the
        exam is treated as already over.
        """
        with self._lock:
            if self.running or self.expired:
                return
            self.started_at = started_at
            self.running = True
            if started_at is None:
                self._floor = 0
        self.tick()

    def _compute_remaining(self) -> int:
        if self.started_at is None:
            return 0
        elapsed = (self.clock.now() - self.started_at).total_seconds()
        return max(0, int(self.duration_seconds - elapsed))

    @property
    def remaining_seconds(self) -> int:
        """Remaining whole seconds; frozen while the timer is not running."""
        with self._lock:
            if self.running:
                self._floor = min(self._floor, self._compute_remaining())
            return self._floor

    @property
    def elapsed_seconds(self) -> int:
        return self.duration_seconds - self.remaining_seconds

    def tick(self) -> int:
        """
        Refresh the remaining time and fire expiry once it reaches zero.

        Returns:
            The remaining seconds after the refresh
        """
        remaining = self.remaining_seconds
        fire = False
        with self._lock:
            if self.running and remaining == 0 and not self.expired:
                self.expired = True
                self.running = False
                fire = True

        if fire:
            self._stop_event.set()
            if self.on_expire:
                self.on_expire()
        return remaining

    def stop(self, wait: bool = True):
        """Freeze the timer and cancel the background ticker."""
        # Take a final reading before freezing
        _ = self.remaining_seconds
        with self._lock:
            self.running = False
        self._stop_event.set()
        if wait:
            self.join()

    def join(self):
        """Wait for the background ticker to exit (no-op from the ticker itself)."""
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.tick_interval + 1.0)

    def start_background(self):
        """Tick once per interval on a daemon thread until stopped or expired."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_background,
            name="exam-timer",
            daemon=True
        )
        self._thread.start()

    def _run_background(self):
        while not self._stop_event.wait(self.tick_interval):
            if not self.running:
                break
            self.tick()

    def format_remaining(self) -> str:
        """Format remaining time as HH:MM:SS."""
        total_seconds = self.remaining_seconds
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_duration(minutes: int) -> str:
    """Format a duration in minutes as '45m', '2h' or '1h 05m'."""
    if minutes < 60:
        return f"{minutes}m"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    if remaining_minutes == 0:
        return f"{hours}h"
    return f"{hours}h {remaining_minutes:02d}m"
