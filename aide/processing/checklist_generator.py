"""
One-shot checklist synthesis.

Builds a titled, ordered checklist from a batch of observations. A reply
that cannot be parsed into the expected shape yields a single-item fallback
checklist; parsing problems never raise.
"""

from typing import List

from aide.core.checklist import Checklist, ChecklistItem
from aide.core.session import Mode
from aide.prompts.checklist import get_generation_system_prompt, build_generation_user_message
from .parsing import parse_json_object

DEFAULT_MAX_ITEMS = 10
FALLBACK_TEXT = 'Unable to generate checklist. Please try again.'
FALLBACK_TITLES = {
    'cooking': 'Cooking Steps',
    'math': 'Math Problem Steps',
}


def fallback_checklist(mode: str = 'cooking') -> Checklist:
    return Checklist(
        title=FALLBACK_TITLES.get(mode, FALLBACK_TITLES['cooking']),
        items=(ChecklistItem(id='1', text=FALLBACK_TEXT, completed=False),),
    )


class ChecklistGenerator:
    """Generate a checklist from accumulated observations."""

    def __init__(self, llm, config: dict = None):
        self.llm = llm
        self.config = config or {}
        self.max_items = max(1, int(self.config.get('max_items', DEFAULT_MAX_ITEMS)))
        self.model = self.config.get('generate_model')
        self.max_tokens = int(self.config.get('generate_max_tokens', 1500))
        self.temperature = float(self.config.get('generate_temperature', 0.7))

    def generate(self, observations: List[str], context_hint: str = '', mode: str = 'cooking') -> Checklist:
        """
        Generate a checklist.

        Args:
            observations: Observation texts (any order; newest first is typical)
            context_hint: Free-text hint such as the dish or topic
            mode: 'cooking' or 'math'

        Raises:
            ValueError: no observations were given
        """
        observations = [str(o).strip() for o in (observations or []) if str(o or '').strip()]
        if not observations:
            raise ValueError("Video descriptions array is required")

        mode = Mode.parse(mode, default=Mode.COOKING).value
        messages = [
            {'role': 'system', 'content': get_generation_system_prompt(mode, self.max_items)},
            {'role': 'user', 'content': build_generation_user_message(observations, mode, context_hint)},
        ]
        text = self.llm.complete(
            messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        checklist = self.parse(text)
        if checklist is None:
            print(f"[checklist] failed to parse checklist response: {text!r}")
            return fallback_checklist(mode)

        print(f"[checklist] generated '{checklist.title}' with {len(checklist.items)} items")
        return checklist

    def parse(self, text: str):
        """Parse a model reply into a Checklist, or None if the shape is wrong."""
        parsed = parse_json_object(text)
        if not parsed:
            return None

        title = parsed.get('title')
        raw_items = parsed.get('checklist')
        if not title or not isinstance(raw_items, list):
            return None

        items = []
        seen = set()
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                continue
            item = ChecklistItem.from_dict(raw, fallback_id=str(index + 1))
            if item.id in seen:
                item = ChecklistItem(id=_next_free_id(seen), text=item.text, completed=item.completed)
            seen.add(item.id)
            items.append(item)
            if len(items) >= self.max_items:
                break

        if not items:
            return None
        return Checklist(title=str(title).strip(), items=tuple(items))


def _next_free_id(used) -> str:
    candidate = len(used) + 1
    while str(candidate) in used:
        candidate += 1
    return str(candidate)
