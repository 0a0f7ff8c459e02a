"""
Advice backend for Cooking Aide.

Turns a single vision observation into short, contextual advice. Keeps a
bounded conversation history per session id and enforces the advice cooldown
per session: a call inside the window is answered with a rate-limited result
instead of reaching the model.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from aide.core.checklist import utc_timestamp
from aide.core.session import Mode, SessionStore
from aide.prompts.advice import get_advice_system_prompt, build_advice_user_message

DEFAULT_COOLDOWN_MS = 8000
DEFAULT_HISTORY_MESSAGES = 10


@dataclass
class AdviceResult:
    """Result of an advice request."""
    advice: Optional[str] = None
    rate_limited: bool = False
    timestamp: str = field(default_factory=utc_timestamp)
    retry_after_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if self.rate_limited:
            return {
                'error': 'Rate limited',
                'details': 'Please wait before requesting more advice',
                'retryAfterMs': self.retry_after_ms,
            }
        return {'advice': self.advice, 'timestamp': self.timestamp}


class AdviceService:
    """Per-session advice with cooldown and trimmed history."""

    def __init__(self, llm, store: SessionStore = None, config: dict = None, clock=None):
        """
        Initialize advice service.

        Args:
            llm: LLMClient (anything with complete(messages, ...))
            store: SessionStore for history and last-call timestamps
            config: Optional 'advice' config section
            clock: Callable returning milliseconds (defaults to wall clock)
        """
        self.llm = llm
        self.store = store or SessionStore()
        self.config = config or {}
        self.cooldown_ms = max(0, int(self.config.get('cooldown_ms', DEFAULT_COOLDOWN_MS)))
        self.history_messages = max(2, int(self.config.get('history_messages', DEFAULT_HISTORY_MESSAGES)))
        self.model = self.config.get('model')
        self.max_tokens = int(self.config.get('max_tokens', 1000))
        self._clock = clock or (lambda: int(time.time() * 1000))

    def get_advice(self, observation: str, session_id: str = 'default',
                   context_hint: str = '', mode: str = 'cooking') -> AdviceResult:
        """
        Request advice for one observation.

        Raises:
            ValueError: observation is empty
            RuntimeError: LLM credentials missing
        """
        observation = str(observation or '').strip()
        if not observation:
            raise ValueError("Vision result is required")

        mode = Mode.parse(mode, default=Mode.COOKING).value
        session_id = session_id or 'default'
        now_ms = self._clock()

        # Check-and-set is atomic per session
        allowed, retry_after = self._claim_slot(session_id, now_ms)
        if not allowed:
            print(f"[advisor] rate limited session={session_id} retry_after={retry_after}ms")
            return AdviceResult(rate_limited=True, retry_after_ms=retry_after)

        history = self.store.setdefault(
            session_id, 'history',
            lambda: [{'role': 'system', 'content': get_advice_system_prompt(mode)}],
        )
        history.append({
            'role': 'user',
            'content': build_advice_user_message(observation, mode=mode, context_hint=context_hint),
        })
        self._trim(history)

        advice = self.llm.complete(list(history), model=self.model, max_tokens=self.max_tokens)
        advice = (advice or '').strip() or 'No advice generated'

        history.append({'role': 'assistant', 'content': advice})
        self._trim(history)

        print(f"[advisor] session={session_id} advice={advice[:80]!r}")
        return AdviceResult(advice=advice)

    def _claim_slot(self, session_id: str, now_ms: int):
        def claim(values):
            last_call = values.get('last_call_ms')
            if last_call is not None and now_ms - last_call < self.cooldown_ms:
                return False, self.cooldown_ms - (now_ms - last_call)
            values['last_call_ms'] = now_ms
            return True, 0

        return self.store.update(session_id, claim)

    def _trim(self, history: list) -> None:
        # System prompt stays at index 0; evict the oldest turns after it
        limit = self.history_messages + 1
        if len(history) > limit:
            del history[1:len(history) - self.history_messages]

    def get_history(self, session_id: str) -> list:
        return list(self.store.get(session_id, 'history', []))

    def end_session(self, session_id: str) -> bool:
        """Forget history and cooldown state for a session."""
        removed = self.store.evict(session_id)
        if removed:
            print(f"[advisor] ended session={session_id}")
        return removed
