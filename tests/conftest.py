"""
Shared test helpers: a manual scheduler with a fake clock, a scripted LLM
and a scripted orchestrator backend.
"""
import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aide.core.checklist import Checklist, ChecklistDelta, ChecklistItem
from aide.processing.advisor import AdviceResult


class _ManualTimer:
    def __init__(self, due_ms, callback, seq):
        self.due_ms = due_ms
        self.callback = callback
        self.seq = seq
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler: time only moves on advance()."""

    def __init__(self, start_ms=1000, inline=True):
        self.now = start_ms
        self.inline = inline
        self.submitted = []
        self._timers = []
        self._seq = 0

    def now_ms(self):
        return self.now

    def call_later(self, delay_ms, callback):
        self._seq += 1
        timer = _ManualTimer(self.now + max(0, delay_ms), callback, self._seq)
        self._timers.append(timer)
        return timer

    def submit(self, fn):
        if self.inline:
            fn()
        else:
            self.submitted.append(fn)

    def run_submitted(self):
        while self.submitted:
            self.submitted.pop(0)()

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due_ms, t.seq))
            self._timers.remove(timer)
            self.now = timer.due_ms
            timer.callback()
        self.now = target

    @property
    def active_timers(self):
        return [t for t in self._timers if not t.cancelled]


class FakeLLM:
    """Returns scripted replies in order; an Exception entry is raised."""

    def __init__(self, responses=None, default=''):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    def complete(self, messages, model=None, max_tokens=None, temperature=None):
        self.calls.append({
            'messages': [dict(m) for m in messages],
            'model': model,
            'max_tokens': max_tokens,
            'temperature': temperature,
        })
        reply = self.responses.pop(0) if self.responses else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


class ScriptedBackend:
    """Orchestrator backend with canned results and call recording."""

    def __init__(self):
        self.advice_calls = []
        self.generate_calls = []
        self.update_calls = []
        self.ended = []
        self.advice_result = AdviceResult(advice='Keep stirring.')
        self.checklist = Checklist(title='Pasta', items=[
            ChecklistItem('1', 'Boil water'),
            ChecklistItem('2', 'Add pasta'),
            ChecklistItem('3', 'Drain pasta'),
        ])
        self.deltas = []
        self.generate_error = None
        self.update_error = None

    def advice(self, observation, session_id, context_hint='', mode='cooking'):
        self.advice_calls.append({'observation': observation, 'session_id': session_id,
                                  'context_hint': context_hint, 'mode': mode})
        return self.advice_result

    def generate_checklist(self, observations, context_hint='', mode='cooking'):
        self.generate_calls.append({'observations': list(observations), 'context_hint': context_hint,
                                    'mode': mode})
        if self.generate_error:
            raise self.generate_error
        return self.checklist

    def update_checklist(self, checklist, observations, mode='cooking'):
        self.update_calls.append({'checklist': checklist, 'observations': list(observations), 'mode': mode})
        if self.update_error:
            raise self.update_error
        return self.deltas.pop(0) if self.deltas else ChecklistDelta()

    def end_session(self, session_id):
        self.ended.append(session_id)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def backend():
    return ScriptedBackend()
