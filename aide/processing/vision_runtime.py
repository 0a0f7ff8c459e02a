"""
Vision runtime for Cooking Aide.

Turns a camera frame (data URL) into a one-paragraph text observation with
an OpenAI vision model. Browser clients that run their own real-time vision
SDK can skip this and post observation text directly.
"""

from aide.core.session import Mode

COOKING_VISION_PROMPT = (
    "Describe what the person is doing in the kitchen right now: ingredients, "
    "tools, cooking stage and anything that looks unsafe. Two sentences max."
)
MATH_VISION_PROMPT = (
    "Read the math problem and the student's written work. Describe the problem "
    "and how far the solution has progressed. Two sentences max."
)


class VisionRuntime:
    """Camera frame -> observation text via OpenAI responses API."""

    def __init__(self, config: dict = None, openai_api_key: str = None):
        self.config = config or {}
        self.enabled = bool(self.config.get('enabled', False))
        self.default_model = self.config.get('model', 'gpt-4o-mini')
        self.max_output_tokens = int(self.config.get('max_output_tokens', 180))
        self.max_image_chars = int(self.config.get('max_image_chars', 2_500_000))
        self.prompts = {
            Mode.COOKING.value: self.config.get('cooking_prompt', COOKING_VISION_PROMPT),
            Mode.MATH.value: self.config.get('math_prompt', MATH_VISION_PROMPT),
        }

        self._openai_api_key = (openai_api_key or '').strip() or None
        self._openai_client = None

    def _get_client(self):
        if self._openai_client is not None:
            return self._openai_client

        if not self._openai_api_key:
            raise RuntimeError("OPENAI_API_KEY missing for vision runtime")

        from openai import OpenAI
        self._openai_client = OpenAI(api_key=self._openai_api_key)
        return self._openai_client

    def validate_frame(self, image_data_url: str):
        """Return an error string for an unusable frame, else None."""
        if not self.enabled:
            return 'vision runtime disabled'
        if not image_data_url or not isinstance(image_data_url, str):
            return 'image is required'
        if not image_data_url.startswith('data:image/'):
            return 'image must be a data URL'
        if len(image_data_url) > self.max_image_chars:
            return 'image payload too large'
        return None

    def describe_frame(self, image_data_url: str, mode: str = 'cooking', prompt: str = None) -> dict:
        """
        Describe one frame.

        Returns:
            {'success': True, 'text': str} or {'success': False, 'error': str}
        """
        error = self.validate_frame(image_data_url)
        if error:
            return {'success': False, 'error': error}

        mode = Mode.parse(mode, default=Mode.COOKING).value
        instruction = prompt or self.prompts[mode]

        try:
            client = self._get_client()
            response = client.responses.create(
                model=self.default_model,
                max_output_tokens=self.max_output_tokens,
                input=[
                    {
                        'role': 'user',
                        'content': [
                            {'type': 'input_text', 'text': instruction},
                            {'type': 'input_image', 'image_url': image_data_url},
                        ],
                    },
                ],
            )
            text = self._extract_output_text(response).strip()
        except Exception as e:
            print(f"[vision_runtime] describe failed: {e}")
            return {'success': False, 'error': str(e)}

        if not text:
            return {'success': False, 'error': 'empty vision result'}

        print(f"[vision_runtime] observation: {text[:80]!r}")
        return {'success': True, 'text': text}

    def _extract_output_text(self, response) -> str:
        text = getattr(response, 'output_text', None)
        if text:
            return text

        text = ''
        for item in getattr(response, 'output', []) or []:
            for content in getattr(item, 'content', []) or []:
                if getattr(content, 'type', '') in ('output_text', 'text'):
                    text += getattr(content, 'text', '')
        return text
