"""
Processing module for Cooking Aide.

Contains the LLM-backed services (advice, checklist generation and
reconciliation), the backend adapters, the vision runtime and the session
orchestrator that ties them together.
"""

from .llm_client import LLMClient
from .advisor import AdviceService, AdviceResult
from .rate_limiter import AdviceRateLimiter
from .checklist_generator import ChecklistGenerator, fallback_checklist
from .checklist_reconciler import ChecklistReconciler
from .backend import LocalBackend, HttpBackend, BackendError
from .vision_runtime import VisionRuntime
from .orchestrator import SessionOrchestrator

__all__ = [
    'LLMClient',
    'AdviceService',
    'AdviceResult',
    'AdviceRateLimiter',
    'ChecklistGenerator',
    'fallback_checklist',
    'ChecklistReconciler',
    'LocalBackend',
    'HttpBackend',
    'BackendError',
    'VisionRuntime',
    'SessionOrchestrator',
]
