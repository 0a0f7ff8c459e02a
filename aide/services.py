"""
Service wiring for Cooking Aide.

Builds the LLM client, services and backend from the app config dict so the
web app, tests and scripts all assemble them the same way.
"""

from typing import Any, Dict

from aide.core.session import SessionStore
from aide.processing.advisor import AdviceService
from aide.processing.backend import HttpBackend, LocalBackend
from aide.processing.checklist_generator import ChecklistGenerator
from aide.processing.checklist_reconciler import ChecklistReconciler
from aide.processing.llm_client import LLMClient
from aide.processing.vision_runtime import VisionRuntime
from aide.voice.speech import TextToSpeech


def build_llm(config: Dict[str, Any]) -> LLMClient:
    llm_cfg = config.get('llm', {}) or {}
    provider = str(llm_cfg.get('provider', 'openai')).lower()
    api_key = (config.get(provider, {}) or {}).get('api_key')
    return LLMClient(
        provider=provider,
        api_key=api_key,
        model=llm_cfg.get('model'),
        max_tokens=int(llm_cfg.get('max_tokens', 1000)),
    )


def build_services(config: Dict[str, Any], llm=None, speaker=None, store: SessionStore = None) -> Dict[str, Any]:
    """
    Assemble services from config.

    Args:
        config: Loaded app config
        llm: Optional pre-built LLM client (tests inject a fake)
        speaker: Optional pre-built TTS
        store: Optional SessionStore shared with other components

    Returns:
        Dict with llm, store, advisor, generator, reconciler, backend,
        vision, speaker
    """
    config = config or {}
    llm = llm or build_llm(config)
    store = store or SessionStore()
    openai_key = (config.get('openai', {}) or {}).get('api_key')

    advisor = AdviceService(llm, store=store, config=config.get('advice', {}))
    generator = ChecklistGenerator(llm, config=config.get('checklist', {}))
    reconciler = ChecklistReconciler(llm, config=config.get('checklist', {}))

    orchestrator_cfg = config.get('orchestrator', {}) or {}
    if str(orchestrator_cfg.get('backend', 'local')).lower() == 'http':
        backend = HttpBackend(
            base_url=orchestrator_cfg.get('backend_url', 'http://localhost:3001'),
            timeout=float(orchestrator_cfg.get('timeout', 30.0)),
        )
    else:
        backend = LocalBackend(advisor, generator, reconciler)

    speech_cfg = config.get('speech', {}) or {}
    if speaker is None and speech_cfg.get('enabled', False):
        speaker = TextToSpeech(
            api_key=openai_key,
            model=speech_cfg.get('model', 'tts-1'),
            voice=speech_cfg.get('voice', 'nova'),
        )

    vision = VisionRuntime(config=config.get('vision', {}), openai_api_key=openai_key)

    return {
        'llm': llm,
        'store': store,
        'advisor': advisor,
        'generator': generator,
        'reconciler': reconciler,
        'backend': backend,
        'vision': vision,
        'speaker': speaker,
    }
