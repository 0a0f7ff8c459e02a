"""
Session orchestrator for Cooking Aide.

Drives one client's session:
- observations go into the sliding window and through the advice debounce
- the first observation arms a one-shot checklist generation timer
- once a checklist exists, a polling interval reconciles it against the
  window, checking each newly completed step for skipped predecessors

States: idle -> ready (source selected) -> running (start) -> ready (stop).
Stopping, switching mode or switching source throws the session away:
timers are cancelled, buffer and checklist cleared, and a fresh session id
allocated. Results that come back for an old session id are discarded.

Backend calls run through scheduler.submit() outside the lock. Each kind
(generate, reconcile) has at most one call in flight per session.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

from aide.core.checklist import (
    ChecklistDelta,
    check_out_of_order,
    first_out_of_order,
    merge_delta,
)
from aide.core.observations import ObservationBuffer, DEFAULT_CAPACITY
from aide.core.session import Mode, Session, SessionState
from aide.core.timers import ThreadingScheduler, TimerSlot
from aide.voice.speech import WarningGuard, build_skip_warning
from .rate_limiter import AdviceRateLimiter

DEFAULT_GENERATE_DELAY_MS = 10000
DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_COOLDOWN_MS = 8000


class SessionOrchestrator:
    """
    Owns one session and wires buffer, limiter, generator and reconciler.

    Example usage:
        orchestrator = SessionOrchestrator(backend, config)
        orchestrator.on('checklist', lambda d: print(d['checklist']['title']))

        orchestrator.select_source('camera')
        orchestrator.start()
        orchestrator.on_observation("Chopping onions on a wooden board")
    """

    def __init__(self, backend, config: Dict[str, Any] = None, scheduler=None, speaker=None,
                 mode: str = 'cooking'):
        """
        Initialize orchestrator.

        Args:
            backend: LocalBackend / HttpBackend (advice, generate_checklist,
                     update_checklist, end_session)
            config: Full app config; reads 'advice', 'checklist', 'observations'
            scheduler: Timer/submit provider (default: ThreadingScheduler)
            speaker: Optional TextToSpeech used to voice skip warnings
            mode: Initial mode ('cooking' or 'math')
        """
        config = config or {}
        advice_cfg = config.get('advice', {}) or {}
        checklist_cfg = config.get('checklist', {}) or {}
        observations_cfg = config.get('observations', {}) or {}

        self.backend = backend
        self.scheduler = scheduler or ThreadingScheduler()
        self.speaker = speaker
        self.cooldown_ms = max(0, int(advice_cfg.get('cooldown_ms', DEFAULT_COOLDOWN_MS)))
        self.generate_delay_ms = max(0, int(checklist_cfg.get('generate_delay_ms', DEFAULT_GENERATE_DELAY_MS)))
        self.poll_interval_ms = max(500, int(checklist_cfg.get('poll_interval_ms', DEFAULT_POLL_INTERVAL_MS)))

        self.hooks: Dict[str, List[Callable]] = {}
        self._lock = threading.RLock()
        self._events: List[tuple] = []

        self.state = SessionState.IDLE
        self.source: Optional[str] = None
        self.context_hint = ''
        self.session = Session(mode=Mode.parse(mode, default=Mode.COOKING))
        self.buffer = ObservationBuffer(int(observations_cfg.get('capacity', DEFAULT_CAPACITY)))
        self.limiter = AdviceRateLimiter(self.scheduler, fire=self._dispatch_advice, cooldown_ms=self.cooldown_ms)
        self.warning_guard = WarningGuard()

        self._generation_timer = TimerSlot(self.scheduler, name='generation')
        self._poll_timer = TimerSlot(self.scheduler, name='poll')
        self._generating = False
        self._reconciling = False

        self.latest_advice: Optional[Dict[str, Any]] = None
        self.last_warning: Optional[Dict[str, Any]] = None

    # ─────────────────────────────────────────────────────────────
    # Hook System
    # ─────────────────────────────────────────────────────────────

    def on(self, event: str, callback: Callable) -> None:
        """
        Register a callback for an event.

        Events:
        - state_changed: {from, to, session_id}
        - session_reset: {old_session_id, session_id, reason}
        - advice: {advice, observation, timestamp, session_id}
        - checklist: {checklist, session_id}
        - checklist_updated: {checklist, delta, source, session_id}
        - out_of_order: {message, skipped_steps, audio, session_id}
        - error: {operation, error, session_id}
        """
        self.hooks.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable) -> None:
        """Unregister a callback."""
        if event in self.hooks and callback in self.hooks[event]:
            self.hooks[event].remove(callback)

    def _queue(self, event: str, data: Dict[str, Any]) -> None:
        self._events.append((event, data))

    def _flush(self) -> None:
        """Emit queued events outside the lock. Hook errors are logged, not raised."""
        with self._lock:
            events, self._events = self._events, []
        for event, data in events:
            for callback in list(self.hooks.get(event, [])):
                try:
                    callback(data)
                except Exception as e:
                    print(f"[orchestrator] hook error ({event}): {e}")

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def mode(self) -> str:
        return self.session.mode.value

    def select_source(self, source: str) -> dict:
        """Select a capture source (camera id, file name). Always starts a fresh session."""
        source = str(source or '').strip()
        if not source:
            return {'success': False, 'error': 'source is required'}

        with self._lock:
            self._reset_locked('source switch')
            self.source = source
            self._set_state_locked(SessionState.READY)
            result = {'success': True, 'session_id': self.session_id, 'state': self.state.value}
        self._flush()
        return result

    def start(self) -> dict:
        with self._lock:
            if self.state == SessionState.IDLE:
                return {'success': False, 'error': 'no source selected'}
            if self.state == SessionState.RUNNING:
                return {'success': False, 'error': 'session already running'}
            self._set_state_locked(SessionState.RUNNING)
            if self.session.checklist is not None:
                self._start_polling_locked()
            result = {'success': True, 'session_id': self.session_id, 'state': self.state.value}
        self._flush()
        return result

    def stop(self) -> dict:
        with self._lock:
            if self.state != SessionState.RUNNING:
                return {'success': False, 'error': 'session not running'}
            self._reset_locked('stop')
            self._set_state_locked(SessionState.READY)
            result = {'success': True, 'session_id': self.session_id, 'state': self.state.value}
        self._flush()
        return result

    def set_mode(self, mode: str) -> dict:
        try:
            new_mode = Mode.parse(mode)
        except ValueError as e:
            return {'success': False, 'error': str(e)}

        with self._lock:
            if new_mode == self.session.mode:
                return {'success': True, 'session_id': self.session_id, 'state': self.state.value,
                        'mode': new_mode.value}
            self._reset_locked('mode switch', mode=new_mode)
            self._set_state_locked(SessionState.READY if self.source else SessionState.IDLE)
            result = {'success': True, 'session_id': self.session_id, 'state': self.state.value,
                      'mode': new_mode.value}
        self._flush()
        return result

    def set_context_hint(self, context_hint: str) -> None:
        with self._lock:
            self.context_hint = str(context_hint or '').strip()

    def shutdown(self) -> None:
        """Cancel all timers and end the backend session; used when the client or process goes away."""
        with self._lock:
            self._cancel_timers_locked()
            self.buffer.clear()
            self._generating = False
            self._reconciling = False
            self.latest_advice = None
            self.last_warning = None
            self.source = None
            self._set_state_locked(SessionState.IDLE)
            session_id = self.session_id
            # Late results for this id are discarded
            self.session = Session(mode=self.session.mode)
        self._flush()
        self._end_backend_session(session_id)

    def _set_state_locked(self, new_state: SessionState) -> None:
        if new_state == self.state:
            return
        old_state = self.state
        self.state = new_state
        print(f"[orchestrator] {old_state.value} -> {new_state.value} (session {self.session_id})")
        self._queue('state_changed', {
            'from': old_state.value,
            'to': new_state.value,
            'session_id': self.session_id,
        })

    def _cancel_timers_locked(self) -> None:
        self._generation_timer.cancel()
        self._poll_timer.cancel()
        self.limiter.reset()

    def _reset_locked(self, reason: str, mode: Mode = None) -> None:
        old_id = self.session_id
        self._cancel_timers_locked()
        self.buffer.clear()
        self._generating = False
        self._reconciling = False
        self.latest_advice = None
        self.last_warning = None
        self._set_state_locked(SessionState.IDLE)

        self.session = Session(mode=mode or self.session.mode)
        print(f"[orchestrator] session reset ({reason}): {old_id} -> {self.session_id}")
        self._queue('session_reset', {
            'old_session_id': old_id,
            'session_id': self.session_id,
            'reason': reason,
        })
        self.scheduler.submit(lambda: self._end_backend_session(old_id))

    def _end_backend_session(self, session_id: str) -> None:
        try:
            self.backend.end_session(session_id)
        except Exception as e:
            print(f"[orchestrator] end_session failed for {session_id}: {e}")

    # ─────────────────────────────────────────────────────────────
    # Observations and advice
    # ─────────────────────────────────────────────────────────────

    def on_observation(self, text: str) -> bool:
        """
        Feed one vision observation.

        Returns:
            True if accepted (session running and text non-empty)
        """
        text = str(text or '').strip()
        if not text:
            return False

        with self._lock:
            if self.state != SessionState.RUNNING:
                return False
            self.buffer.append(text)
            session_id = self.session_id

            if (self.session.checklist is None and not self._generation_timer.pending
                    and not self._generating):
                self._generation_timer.schedule(
                    self.generate_delay_ms,
                    lambda: self._on_generation_timer(session_id),
                )

        self.limiter.request_advice(text, session_id=session_id)
        return True

    def _dispatch_advice(self, observation: str, session_id: str) -> None:
        with self._lock:
            # The session may have been reset since the observation arrived
            if session_id != self.session_id or self.state != SessionState.RUNNING:
                print(f"[orchestrator] dropping advice request for stale session {session_id}")
                return
            mode = self.mode
            context_hint = self.context_hint
            self.session.last_advice_request_at = self.scheduler.now_ms()
        self.scheduler.submit(lambda: self._run_advice(session_id, observation, context_hint, mode))

    def _run_advice(self, session_id: str, observation: str, context_hint: str, mode: str) -> None:
        try:
            result = self.backend.advice(observation, session_id=session_id, context_hint=context_hint, mode=mode)
        except Exception as e:
            self._report_error('advice', session_id, e)
            return

        if result.rate_limited:
            print(f"[orchestrator] advice rate limited for {session_id}, skipping")
            return

        with self._lock:
            if session_id != self.session_id:
                return
            self.latest_advice = {
                'advice': result.advice,
                'observation': observation,
                'timestamp': result.timestamp,
                'session_id': session_id,
            }
            self._queue('advice', dict(self.latest_advice))
        self._flush()

    # ─────────────────────────────────────────────────────────────
    # Checklist generation
    # ─────────────────────────────────────────────────────────────

    def _chronological_observations(self) -> List[str]:
        return list(reversed(self.buffer.snapshot()))

    def _on_generation_timer(self, session_id: str) -> None:
        with self._lock:
            if session_id != self.session_id or self.state != SessionState.RUNNING:
                return
            if self.session.checklist is not None or self._generating:
                return
            observations = self._chronological_observations()
            if not observations:
                return
            self._generating = True
            mode = self.mode
            context_hint = self.context_hint

        self.scheduler.submit(lambda: self._run_generation(session_id, observations, context_hint, mode))

    def _run_generation(self, session_id: str, observations: List[str], context_hint: str, mode: str) -> None:
        checklist = None
        try:
            checklist = self.backend.generate_checklist(observations, context_hint=context_hint, mode=mode)
        except Exception as e:
            self._report_error('generate_checklist', session_id, e)

        with self._lock:
            if session_id != self.session_id:
                return
            self._generating = False
            if checklist is None:
                return
            self.session.checklist = checklist
            if self.state == SessionState.RUNNING:
                self._start_polling_locked()
            self._queue('checklist', {'checklist': checklist.to_dict(), 'session_id': session_id})
        self._flush()

    # ─────────────────────────────────────────────────────────────
    # Reconciliation
    # ─────────────────────────────────────────────────────────────

    def _start_polling_locked(self) -> None:
        session_id = self.session_id
        self._poll_timer.schedule_repeating(self.poll_interval_ms, lambda: self._on_poll_tick(session_id))

    def _on_poll_tick(self, session_id: str) -> None:
        with self._lock:
            if session_id != self.session_id or self.state != SessionState.RUNNING:
                self._poll_timer.cancel()
                return
            checklist = self.session.checklist
            if checklist is None or not self.buffer or self._reconciling:
                return
            self._reconciling = True
            observations = self._chronological_observations()
            mode = self.mode

        self.scheduler.submit(lambda: self._run_reconcile(session_id, checklist, observations, mode))

    def _run_reconcile(self, session_id: str, checklist, observations: List[str], mode: str) -> None:
        delta = None
        try:
            delta = self.backend.update_checklist(checklist, observations, mode=mode)
        except Exception as e:
            self._report_error('update_checklist', session_id, e)

        warning = None
        with self._lock:
            if session_id != self.session_id:
                return
            self._reconciling = False
            current = self.session.checklist
            if delta is None or current is None:
                return

            # Deltas are computed against a possibly older snapshot
            completed_ids = [
                item_id for item_id in delta.completed_ids
                if current.get(item_id) is not None and not current.get(item_id).completed
            ]
            delta = ChecklistDelta(completed_ids=completed_ids, new_items=delta.new_items)
            if not delta:
                return

            warning = first_out_of_order(current, delta.completed_ids)
            merged = merge_delta(current, delta)
            self.session.checklist = merged
            print(f"[orchestrator] checklist {merged.completed_count}/{len(merged.items)} done"
                  f"{' (complete)' if merged.is_complete else ''}")
            self._queue('checklist_updated', {
                'checklist': self.session.checklist.to_dict(),
                'delta': delta.to_dict(),
                'source': 'reconcile',
                'session_id': session_id,
            })
        self._flush()

        if warning is not None:
            self._raise_warning(session_id, warning.skipped_steps)

    def toggle_item(self, item_id: str) -> dict:
        """Manually flip one item; completing it runs the out-of-order check."""
        item_id = str(item_id or '')
        with self._lock:
            checklist = self.session.checklist
            item = checklist.get(item_id) if checklist is not None else None
            if item is None:
                return {'success': False, 'error': 'item not found'}

            completing = not item.completed
            warning = check_out_of_order(checklist, item_id) if completing else None
            self.session.checklist = checklist.with_item_completed(item_id, completing)
            session_id = self.session_id
            payload = self.session.checklist.to_dict()
            self._queue('checklist_updated', {
                'checklist': payload,
                'delta': {'completedIds': [item_id] if completing else [], 'newItems': []},
                'source': 'manual',
                'session_id': session_id,
            })
        self._flush()

        warned = False
        if warning is not None and warning.is_out_of_order:
            warned = self._raise_warning(session_id, warning.skipped_steps)
        return {'success': True, 'checklist': payload, 'warning': warned}

    # ─────────────────────────────────────────────────────────────
    # Warnings and errors
    # ─────────────────────────────────────────────────────────────

    def _raise_warning(self, session_id: str, skipped_steps) -> bool:
        """Present a skip warning unless one is already being presented."""
        if not self.warning_guard.acquire():
            print(f"[orchestrator] warning already active, dropping skip warning for {list(skipped_steps)}")
            return False

        with self._lock:
            message = build_skip_warning(skipped_steps, self.mode)
            self.last_warning = {
                'message': message,
                'skipped_steps': list(skipped_steps),
                'session_id': session_id,
            }
            payload = dict(self.last_warning)

        def present():
            try:
                audio = None
                if self.speaker is not None:
                    try:
                        audio = self.speaker.synthesize(message)
                    except Exception as e:
                        print(f"[orchestrator] warning speech failed, sending text only: {e}")
                with self._lock:
                    if session_id != self.session_id:
                        return
                    self._queue('out_of_order', dict(payload, audio=audio))
                self._flush()
            except Exception as e:
                print(f"[orchestrator] warning presentation failed: {e}")
            finally:
                self.warning_guard.release()

        print(f"[orchestrator] out-of-order completion, skipped: {list(skipped_steps)}")
        self.scheduler.submit(present)
        return True

    def _report_error(self, operation: str, session_id: str, error: Exception) -> None:
        print(f"[orchestrator] {operation} failed for {session_id}: {error}")
        with self._lock:
            if session_id != self.session_id:
                return
            self._queue('error', {'operation': operation, 'error': str(error), 'session_id': session_id})
        self._flush()

    # ─────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        with self._lock:
            checklist = self.session.checklist
            return {
                'state': self.state.value,
                'source': self.source,
                'context_hint': self.context_hint,
                'session': self.session.to_dict(),
                'checklist': checklist.to_dict() if checklist else None,
                'progress': {
                    'completed': checklist.completed_count,
                    'total': len(checklist.items),
                    'complete': checklist.is_complete,
                } if checklist else None,
                'observations': self.buffer.snapshot(),
                'advice': dict(self.latest_advice) if self.latest_advice else None,
                'warning': dict(self.last_warning) if self.last_warning else None,
                'pending': {
                    'advice': self.limiter.pending,
                    'generation': self._generation_timer.pending,
                    'polling': self._poll_timer.pending,
                    'generating': self._generating,
                    'reconciling': self._reconciling,
                },
            }
