"""
Chat completion client for Cooking Aide.

Wraps either OpenAI chat completions or Anthropic messages behind one
complete(messages) call. The SDK client is created lazily so a missing key
only fails when a request is actually made.
"""

from typing import Dict, List, Optional

DEFAULT_MODELS = {
    'openai': 'gpt-4o-mini',
    'anthropic': 'claude-haiku-4-5',
}


class LLMClient:
    """Provider-agnostic chat completion."""

    def __init__(self, provider: str = 'openai', api_key: str = None, model: str = None,
                 max_tokens: int = 1000, temperature: Optional[float] = None):
        """
        Initialize the client.

        Args:
            provider: 'openai' or 'anthropic'
            api_key: API key for the provider
            model: Default model name (per-call override allowed)
            max_tokens: Default completion budget
            temperature: Default sampling temperature (None = provider default)
        """
        provider = str(provider or 'openai').lower()
        if provider not in DEFAULT_MODELS:
            raise ValueError(f"Unsupported LLM provider: {provider}")

        self.provider = provider
        self.api_key = (api_key or '').strip() or None
        self.model = model or DEFAULT_MODELS[provider]
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client

        if not self.api_key:
            name = 'OpenAI' if self.provider == 'openai' else 'Anthropic'
            raise RuntimeError(f"{name} API key is not configured")

        if self.provider == 'anthropic':
            from anthropic import Anthropic
            self._client = Anthropic(api_key=self.api_key)
        else:
            from openai import OpenAI
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def complete(self, messages: List[Dict[str, str]], model: str = None,
                 max_tokens: int = None, temperature: Optional[float] = None) -> str:
        """
        Run a chat completion and return the reply text ('' if none).

        Args:
            messages: OpenAI-style [{role, content}] list; a leading system
                      message is moved to Anthropic's system parameter
            model: Model override
            max_tokens: Completion budget override
            temperature: Temperature override
        """
        client = self._get_client()
        model = model or self.model
        max_tokens = max_tokens or self.max_tokens
        if temperature is None:
            temperature = self.temperature

        if self.provider == 'anthropic':
            system = "\n\n".join(m['content'] for m in messages if m.get('role') == 'system')
            chat = [m for m in messages if m.get('role') != 'system']
            kwargs = {'model': model, 'max_tokens': max_tokens, 'messages': chat}
            if system:
                kwargs['system'] = system
            if temperature is not None:
                kwargs['temperature'] = temperature
            response = client.messages.create(**kwargs)
            return "".join(
                getattr(block, 'text', '') for block in (response.content or [])
                if getattr(block, 'type', '') == 'text'
            )

        kwargs = {'model': model, 'messages': messages, 'max_completion_tokens': max_tokens}
        if temperature is not None:
            kwargs['temperature'] = temperature
        completion = client.chat.completions.create(**kwargs)
        if not completion.choices:
            return ''
        return completion.choices[0].message.content or ''
