"""
Spoken warnings for Cooking Aide.

Synthesizes short warning messages (e.g. a skipped step) with OpenAI TTS.
WarningGuard is the single-flight flag that keeps more than one warning from
being presented at a time.
"""

import threading

DEFAULT_MODEL = 'tts-1'
DEFAULT_VOICE = 'nova'  # Options: alloy, echo, fable, onyx, nova, shimmer


class WarningGuard:
    """Single-flight flag: acquire() fails while a warning is active."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active = False

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    def acquire(self) -> bool:
        with self._lock:
            if self._active:
                return False
            self._active = True
            return True

    def release(self) -> None:
        with self._lock:
            self._active = False


class TextToSpeech:
    """OpenAI text-to-speech returning audio bytes."""

    def __init__(self, api_key: str = None, model: str = DEFAULT_MODEL, voice: str = DEFAULT_VOICE,
                 response_format: str = 'mp3'):
        """
        Initialize TTS.

        Args:
            api_key: OpenAI API key
            model: TTS model name
            voice: Voice name
            response_format: Audio container returned by synthesize()
        """
        self.api_key = (api_key or '').strip() or None
        self.model = model or DEFAULT_MODEL
        self.voice = voice or DEFAULT_VOICE
        self.response_format = response_format
        self._client = None

    @property
    def mimetype(self) -> str:
        return {'mp3': 'audio/mpeg', 'wav': 'audio/wav', 'opus': 'audio/ogg'}.get(
            self.response_format, 'application/octet-stream')

    def _get_client(self):
        if self._client is not None:
            return self._client

        if not self.api_key:
            raise RuntimeError("OpenAI API key is not configured")

        from openai import OpenAI
        self._client = OpenAI(api_key=self.api_key)
        return self._client

    def synthesize(self, text: str) -> bytes:
        """
        Convert text to audio.

        Raises:
            ValueError: text is empty
            RuntimeError: API key missing
        """
        text = str(text or '').strip()
        if not text:
            raise ValueError("Text is required")

        client = self._get_client()
        response = client.audio.speech.create(
            model=self.model,
            voice=self.voice,
            input=text,
            response_format=self.response_format,
        )
        audio = response.content
        print(f"[speech] synthesized {len(audio)} bytes for {text[:60]!r}")
        return audio


def build_skip_warning(skipped_steps, mode: str = 'cooking') -> str:
    """Warning text for completing a step ahead of unfinished ones."""
    steps = [str(step) for step in skipped_steps if str(step).strip()]
    if not steps:
        return ''
    noun = 'that step' if len(steps) == 1 else 'those steps'
    if mode == 'math':
        return f"Hold on! It looks like you skipped: {', '.join(steps)}. Try working through {noun} first."
    return f"Wait! It looks like you skipped: {', '.join(steps)}. Make sure to complete {noun} first."
