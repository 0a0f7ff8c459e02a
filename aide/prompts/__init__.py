"""Prompt templates for advice and checklist tracking."""

from .advice import get_advice_system_prompt, build_advice_user_message
from .checklist import (
    get_generation_system_prompt,
    build_generation_user_message,
    get_update_system_prompt,
    build_update_user_message,
    format_checklist_for_prompt,
)

__all__ = [
    'get_advice_system_prompt',
    'build_advice_user_message',
    'get_generation_system_prompt',
    'build_generation_user_message',
    'get_update_system_prompt',
    'build_update_user_message',
    'format_checklist_for_prompt',
]
