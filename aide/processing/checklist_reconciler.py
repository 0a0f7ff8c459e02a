"""
Incremental checklist reconciliation.

Asks the model which steps the latest observations show as done and which
steps are missing, then reduces the reply to a delta: only ids that exist
and are not yet completed, and only new items that do not duplicate an
existing step. The merge itself lives in aide.core.checklist.merge_delta.
"""

from typing import List

from aide.core.checklist import Checklist, ChecklistDelta, ChecklistItem
from aide.core.session import Mode
from aide.prompts.checklist import get_update_system_prompt, build_update_user_message
from .parsing import parse_json_object, parse_json_array

# Headroom for discovered steps on top of the generated maximum
EXTRA_ITEMS = 5


class ChecklistReconciler:
    """Compute completion/addition deltas for an existing checklist."""

    def __init__(self, llm, config: dict = None):
        self.llm = llm
        self.config = config or {}
        self.max_items = max(1, int(self.config.get('max_items', 10))) + EXTRA_ITEMS
        self.model = self.config.get('update_model')
        self.max_tokens = int(self.config.get('update_max_tokens', 300))
        self.temperature = float(self.config.get('update_temperature', 0.3))

    def reconcile(self, checklist: Checklist, observations: List[str], mode: str = 'cooking') -> ChecklistDelta:
        """
        Reconcile a checklist against recent observations.

        Raises:
            ValueError: checklist has no items or no observations were given
        """
        if checklist is None or not checklist.items:
            raise ValueError("Current checklist is required")
        observations = [str(o).strip() for o in (observations or []) if str(o or '').strip()]
        if not observations:
            raise ValueError("Video descriptions are required")

        mode = Mode.parse(mode, default=Mode.COOKING).value
        messages = [
            {'role': 'system', 'content': get_update_system_prompt(mode)},
            {'role': 'user', 'content': build_update_user_message(checklist.items, observations)},
        ]
        text = self.llm.complete(
            messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        delta = self.parse(text, checklist)
        if delta:
            print(f"[checklist] update: completed={sorted(delta.completed_ids)} new={len(delta.new_items)}")
        return delta

    def parse(self, text: str, checklist: Checklist) -> ChecklistDelta:
        """Reduce a model reply to a valid delta against checklist."""
        raw_ids = []
        raw_new = []

        parsed = parse_json_object(text)
        if parsed is not None:
            raw_ids = parsed.get('completedIds') or parsed.get('completed_ids') or []
            raw_new = parsed.get('newItems') or parsed.get('new_items') or []
        else:
            array = parse_json_array(text)
            if array is None:
                if text and text.strip():
                    print(f"[checklist] failed to parse checklist update response: {text!r}")
                return ChecklistDelta()
            raw_ids = array

        if not isinstance(raw_ids, list):
            raw_ids = []
        if not isinstance(raw_new, list):
            raw_new = []

        return ChecklistDelta(
            completed_ids=self._filter_ids(raw_ids, checklist),
            new_items=self._build_new_items(raw_new, checklist),
        )

    @staticmethod
    def _filter_ids(raw_ids: list, checklist: Checklist) -> frozenset:
        open_ids = {item.id for item in checklist.items if not item.completed}
        return frozenset(str(item_id) for item_id in raw_ids if str(item_id) in open_ids)

    def _build_new_items(self, raw_new: list, checklist: Checklist) -> tuple:
        room = self.max_items - len(checklist.items)
        if room <= 0:
            return ()

        known_texts = {item.text.strip().lower() for item in checklist.items}
        next_id = _max_numeric_id(checklist) + 1
        used_ids = set(checklist.ids())
        items = []

        for raw in raw_new:
            if isinstance(raw, str):
                raw = {'text': raw}
            if not isinstance(raw, dict):
                continue
            text = str(raw.get('text') or '').strip()
            if not text or text.lower() in known_texts:
                continue

            while str(next_id) in used_ids:
                next_id += 1
            item = ChecklistItem(id=str(next_id), text=text, completed=bool(raw.get('completed', False)))
            used_ids.add(item.id)
            known_texts.add(text.lower())
            items.append(item)
            next_id += 1
            if len(items) >= room:
                break

        return tuple(items)


def _max_numeric_id(checklist: Checklist) -> int:
    numeric = [int(item_id) for item_id in checklist.ids() if item_id.isdigit()]
    return max(numeric) if numeric else len(checklist.items)
