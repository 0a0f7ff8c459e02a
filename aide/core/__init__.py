"""
Core data model for Cooking Aide.

This package contains the checklist types and merge rules, the observation
window, session identity and storage, and cancellable timers.
"""

from .checklist import (
    ChecklistItem,
    Checklist,
    ChecklistDelta,
    OutOfOrderResult,
    merge_delta,
    check_out_of_order,
    first_out_of_order,
    utc_timestamp,
)
from .observations import ObservationBuffer
from .session import Mode, Session, SessionState, SessionStore, new_session_id
from .timers import ThreadingScheduler, TimerSlot

__all__ = [
    'ChecklistItem',
    'Checklist',
    'ChecklistDelta',
    'OutOfOrderResult',
    'merge_delta',
    'check_out_of_order',
    'first_out_of_order',
    'utc_timestamp',
    'ObservationBuffer',
    'Mode',
    'Session',
    'SessionState',
    'SessionStore',
    'new_session_id',
    'ThreadingScheduler',
    'TimerSlot',
]
