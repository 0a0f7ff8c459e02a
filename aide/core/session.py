"""
Session identity and per-session storage.

A Session is the unit that gets thrown away on every mode switch, source
switch or stop. SessionStore keeps per-session maps (conversation history,
last call timestamps) keyed by session id, with explicit eviction.
"""

import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .checklist import Checklist, utc_timestamp


class Mode(str, Enum):
    COOKING = 'cooking'
    MATH = 'math'

    @classmethod
    def parse(cls, value, default: 'Mode' = None) -> 'Mode':
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        for mode in cls:
            if mode.value == text:
                return mode
        if default is not None:
            return default
        raise ValueError(f"Unknown mode: {value!r}")


class SessionState(str, Enum):
    IDLE = 'idle'
    READY = 'ready'
    RUNNING = 'running'


def new_session_id() -> str:
    return str(uuid.uuid4())[:12]


@dataclass
class Session:
    """Mutable state of one orchestrated session."""
    mode: Mode = Mode.COOKING
    session_id: str = field(default_factory=new_session_id)
    last_advice_request_at: int = 0
    checklist: Optional[Checklist] = None
    created_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'mode': self.mode.value,
            'lastAdviceRequestAt': self.last_advice_request_at,
            'checklist': self.checklist.to_dict() if self.checklist else None,
            'createdAt': self.created_at,
        }


class SessionStore:
    """Thread-safe map of session id -> dict of per-session values."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def get(self, session_id: str, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._sessions.get(session_id, {}).get(key, default)

    def set(self, session_id: str, key: str, value: Any) -> None:
        with self._lock:
            self._sessions.setdefault(session_id, {})[key] = value

    def setdefault(self, session_id: str, key: str, factory: Callable[[], Any]) -> Any:
        with self._lock:
            values = self._sessions.setdefault(session_id, {})
            if key not in values:
                values[key] = factory()
            return values[key]

    def update(self, session_id: str, fn: Callable[[Dict[str, Any]], Any]) -> Any:
        """Run fn on the session's value dict while holding the store lock."""
        with self._lock:
            return fn(self._sessions.setdefault(session_id, {}))

    def evict(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
