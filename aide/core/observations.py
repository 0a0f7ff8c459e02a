"""
Sliding window of recent vision observations.

Newest observations come first; once the window is full, appending evicts
the oldest entry.
"""

from collections import deque
from typing import List

DEFAULT_CAPACITY = 10


class ObservationBuffer:
    """Bounded, newest-first buffer of observation strings."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items = deque(maxlen=capacity)

    def append(self, observation: str) -> None:
        text = str(observation or '').strip()
        if not text:
            return
        # appendleft on a full deque drops from the right, i.e. the oldest
        self._items.appendleft(text)

    def snapshot(self) -> List[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
