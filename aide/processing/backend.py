"""
Backend adapters used by the session orchestrator.

LocalBackend calls the advice/checklist services in-process. HttpBackend
talks to the same services through the Flask routes. Both expose:

- advice(observation, session_id, context_hint, mode) -> AdviceResult
- generate_checklist(observations, context_hint, mode) -> Checklist
- update_checklist(checklist, observations, mode) -> ChecklistDelta
- end_session(session_id)

Failures surface as exceptions; the orchestrator catches them at the call
site. A rate-limited advice request is a normal AdviceResult, not an error.
"""

from typing import List

import requests

from aide.core.checklist import Checklist, ChecklistDelta, ChecklistItem
from .advisor import AdviceResult


class BackendError(Exception):
    """Raised when a remote backend call fails or returns garbage."""


class LocalBackend:
    """In-process backend wired to the service objects."""

    def __init__(self, advisor, generator, reconciler):
        self.advisor = advisor
        self.generator = generator
        self.reconciler = reconciler

    def advice(self, observation: str, session_id: str, context_hint: str = '', mode: str = 'cooking') -> AdviceResult:
        return self.advisor.get_advice(observation, session_id=session_id, context_hint=context_hint, mode=mode)

    def generate_checklist(self, observations: List[str], context_hint: str = '', mode: str = 'cooking') -> Checklist:
        return self.generator.generate(observations, context_hint=context_hint, mode=mode)

    def update_checklist(self, checklist: Checklist, observations: List[str], mode: str = 'cooking') -> ChecklistDelta:
        return self.reconciler.reconcile(checklist, observations, mode=mode)

    def end_session(self, session_id: str) -> None:
        self.advisor.end_session(session_id)


class HttpBackend:
    """Backend reached over HTTP (JSON in, JSON out)."""

    def __init__(self, base_url: str, timeout: float = 30.0, session: requests.Session = None):
        self.base_url = str(base_url or '').rstrip('/')
        self.timeout = float(timeout)
        self.http = session or requests.Session()

    def _post(self, path: str, payload: dict) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.http.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(f"POST {path} failed: {e}") from e

    @staticmethod
    def _json(response: requests.Response, path: str) -> dict:
        if response.status_code != 200:
            raise BackendError(f"POST {path} returned {response.status_code}: {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"POST {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BackendError(f"POST {path} returned {type(data).__name__}, expected object")
        return data

    def advice(self, observation: str, session_id: str, context_hint: str = '', mode: str = 'cooking') -> AdviceResult:
        path = '/api/chatgpt/advice'
        response = self._post(path, {
            'visionResult': observation,
            'sessionId': session_id,
            'recipeContext': context_hint,
            'mode': mode,
        })
        if response.status_code == 429:
            return AdviceResult(rate_limited=True)
        data = self._json(response, path)
        return AdviceResult(advice=data.get('advice'), timestamp=data.get('timestamp') or '')

    def generate_checklist(self, observations: List[str], context_hint: str = '', mode: str = 'cooking') -> Checklist:
        path = '/api/chatgpt/checklist'
        data = self._json(self._post(path, {
            'videoDescriptions': list(observations),
            'recipeContext': context_hint,
            'mode': mode,
        }), path)
        checklist = Checklist.from_dict(data)
        if not checklist.items:
            raise BackendError(f"POST {path} returned an empty checklist")
        return checklist

    def update_checklist(self, checklist: Checklist, observations: List[str], mode: str = 'cooking') -> ChecklistDelta:
        path = '/api/chatgpt/checklist-update'
        data = self._json(self._post(path, {
            'currentChecklist': [item.to_dict() for item in checklist.items],
            'videoDescriptions': list(observations),
            'mode': mode,
        }), path)
        new_items = [
            ChecklistItem.from_dict(raw)
            for raw in (data.get('newItems') or [])
            if isinstance(raw, dict) and raw.get('id')
        ]
        return ChecklistDelta(
            completed_ids=[str(i) for i in (data.get('completedIds') or [])],
            new_items=new_items,
        )

    def end_session(self, session_id: str) -> None:
        path = '/api/chatgpt/session/end'
        self._json(self._post(path, {'sessionId': session_id}), path)
