"""
Cooking Aide - vision-driven advice and checklist tracking.

The aide package provides:
- Checklist data model with monotonic merge and out-of-order detection
- Observation window, sessions, cancellable timers
- LLM-backed advice, checklist generation and reconciliation
- SessionOrchestrator tying them together per client

Example usage:
    from aide import build_services, SessionOrchestrator

    services = build_services(config)
    orchestrator = SessionOrchestrator(services['backend'], config)
    orchestrator.select_source('camera')
    orchestrator.start()
    orchestrator.on_observation("A pot of water on the stove, not boiling yet")
"""

from .core import (
    ChecklistItem,
    Checklist,
    ChecklistDelta,
    OutOfOrderResult,
    merge_delta,
    check_out_of_order,
    ObservationBuffer,
    Mode,
    Session,
    SessionState,
    SessionStore,
    ThreadingScheduler,
    TimerSlot,
)
from .processing import (
    LLMClient,
    AdviceService,
    AdviceResult,
    AdviceRateLimiter,
    ChecklistGenerator,
    ChecklistReconciler,
    LocalBackend,
    HttpBackend,
    BackendError,
    VisionRuntime,
    SessionOrchestrator,
)
from .services import build_services

__version__ = '0.1.0'

__all__ = [
    # Core
    'ChecklistItem',
    'Checklist',
    'ChecklistDelta',
    'OutOfOrderResult',
    'merge_delta',
    'check_out_of_order',
    'ObservationBuffer',
    'Mode',
    'Session',
    'SessionState',
    'SessionStore',
    'ThreadingScheduler',
    'TimerSlot',

    # Processing
    'LLMClient',
    'AdviceService',
    'AdviceResult',
    'AdviceRateLimiter',
    'ChecklistGenerator',
    'ChecklistReconciler',
    'LocalBackend',
    'HttpBackend',
    'BackendError',
    'VisionRuntime',
    'SessionOrchestrator',

    # Wiring
    'build_services',
]
