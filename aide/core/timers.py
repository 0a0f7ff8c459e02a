"""
Cancellable timers for debounced and periodic work.

ThreadingScheduler wraps threading.Timer and background threads. TimerSlot
holds at most one outstanding timer of a given kind: scheduling a new one
cancels the old one first. A token check keeps a timer that was cancelled
after it had already started from running its callback.
"""

import threading
import time
from typing import Callable, Optional


class ThreadingScheduler:
    """Wall-clock scheduler backed by threading.Timer."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]):
        timer = threading.Timer(max(0, delay_ms) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer

    def submit(self, fn: Callable[[], None]) -> None:
        """Run fn on a background thread without waiting for it."""
        thread = threading.Thread(target=fn, daemon=True)
        thread.start()


class TimerSlot:
    """At most one pending timer; schedule() supersedes the previous one."""

    def __init__(self, scheduler, name: str = 'timer'):
        self.scheduler = scheduler
        self.name = name
        self._lock = threading.Lock()
        self._handle = None
        self._token: Optional[object] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._token is not None

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> None:
        token = object()

        def fire():
            with self._lock:
                if self._token is not token:
                    return
                self._token = None
                self._handle = None
            callback()

        with self._lock:
            self._cancel_locked()
            self._token = token
            self._handle = self.scheduler.call_later(delay_ms, fire)

    def schedule_repeating(self, interval_ms: int, callback: Callable[[], None]) -> None:
        """Run callback every interval_ms until cancel() is called."""
        token = object()

        def fire():
            with self._lock:
                if self._token is not token:
                    return
            try:
                callback()
            finally:
                with self._lock:
                    if self._token is token:
                        self._handle = self.scheduler.call_later(interval_ms, fire)

        with self._lock:
            self._cancel_locked()
            self._token = token
            self._handle = self.scheduler.call_later(interval_ms, fire)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._token = None
