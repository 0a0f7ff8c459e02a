"""
Voice output for Cooking Aide.

Text-to-speech for spoken warnings and the single-flight warning guard.
"""

from .speech import TextToSpeech, WarningGuard, build_skip_warning

__all__ = ['TextToSpeech', 'WarningGuard', 'build_skip_warning']
