"""
Client-side debounce for advice requests.

At most one advice call per cooldown window. A request inside the window is
not dropped: it replaces any pending deferred call and fires once the window
has elapsed, so the latest observation is the one that gets sent.
"""

import threading
from typing import Callable, Optional

from aide.core.timers import TimerSlot

FIRED = 'fired'
DEFERRED = 'deferred'


class AdviceRateLimiter:
    """Per-session advice gate with a single deferred retry."""

    def __init__(self, scheduler, fire: Callable[[str, Optional[str]], None], cooldown_ms: int = 8000):
        """
        Args:
            scheduler: Scheduler providing now_ms() and call_later()
            fire: Called with (observation, session_id) when a request goes out
            cooldown_ms: Minimum spacing between fired requests
        """
        self.scheduler = scheduler
        self.fire = fire
        self.cooldown_ms = max(0, int(cooldown_ms))
        self.last_call_ms: Optional[int] = None
        self._lock = threading.Lock()
        self._deferred = TimerSlot(scheduler, name='advice')

    @property
    def pending(self) -> bool:
        return self._deferred.pending

    def request_advice(self, observation: str, session_id: str = None, now_ms: int = None) -> str:
        """
        Fire now if the cooldown has elapsed, otherwise (re)schedule.

        Returns:
            'fired' or 'deferred'
        """
        if now_ms is None:
            now_ms = self.scheduler.now_ms()

        with self._lock:
            elapsed = None if self.last_call_ms is None else now_ms - self.last_call_ms
            if elapsed is None or elapsed >= self.cooldown_ms:
                # Claim the window before the call starts
                self.last_call_ms = now_ms
                self._deferred.cancel()
                immediate = True
            else:
                immediate = False
                delay_ms = self.cooldown_ms - elapsed

        if immediate:
            self.fire(observation, session_id)
            return FIRED

        self._deferred.schedule(delay_ms, lambda: self._fire_deferred(observation, session_id))
        return DEFERRED

    def _fire_deferred(self, observation: str, session_id: Optional[str]) -> None:
        with self._lock:
            self.last_call_ms = self.scheduler.now_ms()
        self.fire(observation, session_id)

    def cancel(self) -> None:
        self._deferred.cancel()

    def reset(self) -> None:
        self.cancel()
        with self._lock:
            self.last_call_ms = None
