"""
Checklist data model for Cooking Aide.

This module contains:
- ChecklistItem: A single step with a stable id and completion flag
- Checklist: Titled, ordered collection of items
- ChecklistDelta: Incremental update produced by the reconciler
- merge_delta: Pure merge of a delta into a checklist
- check_out_of_order: Detects completion of a step ahead of earlier ones

Item order is meaningful: it is the logical order in which the steps
should be done. Completion is monotonic under merge_delta.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ChecklistItem:
    """A single checklist step."""
    id: str
    text: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'text': self.text, 'completed': self.completed}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: str = '') -> 'ChecklistItem':
        item_id = data.get('id')
        text = data.get('text')
        return cls(
            id=str(item_id) if item_id not in (None, '') else fallback_id,
            text=str(text or '').strip() or 'Unknown step',
            completed=bool(data.get('completed', False)),
        )


@dataclass(frozen=True)
class Checklist:
    """Titled, ordered checklist owned by one session."""
    title: str
    items: tuple = ()
    created_at: str = field(default_factory=utc_timestamp)

    def __post_init__(self):
        # Accept lists from callers but keep the stored sequence immutable
        if not isinstance(self.items, tuple):
            object.__setattr__(self, 'items', tuple(self.items))

    def get(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def index_of(self, item_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return -1

    def ids(self) -> List[str]:
        return [item.id for item in self.items]

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.items if item.completed)

    @property
    def is_complete(self) -> bool:
        return bool(self.items) and all(item.completed for item in self.items)

    def with_item_completed(self, item_id: str, completed: bool) -> 'Checklist':
        """Return a copy with one item's flag set explicitly (manual toggle)."""
        items = [
            replace(item, completed=completed) if item.id == item_id else item
            for item in self.items
        ]
        return replace(self, items=tuple(items))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'checklist': [item.to_dict() for item in self.items],
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Checklist':
        raw_items = data.get('checklist')
        if raw_items is None:
            raw_items = data.get('items', [])
        items = [
            ChecklistItem.from_dict(raw, fallback_id=str(index + 1))
            for index, raw in enumerate(raw_items or [])
            if isinstance(raw, dict)
        ]
        return cls(
            title=str(data.get('title') or ''),
            items=tuple(items),
            created_at=data.get('createdAt') or utc_timestamp(),
        )


@dataclass(frozen=True)
class ChecklistDelta:
    """Newly completed ids plus newly discovered items."""
    completed_ids: frozenset = frozenset()
    new_items: tuple = ()

    def __post_init__(self):
        if not isinstance(self.completed_ids, frozenset):
            object.__setattr__(self, 'completed_ids', frozenset(self.completed_ids))
        if not isinstance(self.new_items, tuple):
            object.__setattr__(self, 'new_items', tuple(self.new_items))

    def __bool__(self) -> bool:
        return bool(self.completed_ids or self.new_items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'completedIds': sorted(self.completed_ids, key=_id_sort_key),
            'newItems': [item.to_dict() for item in self.new_items],
        }


@dataclass(frozen=True)
class OutOfOrderResult:
    is_out_of_order: bool
    skipped_steps: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'isOutOfOrder': self.is_out_of_order, 'skippedSteps': list(self.skipped_steps)}


def _id_sort_key(item_id: str):
    return (0, int(item_id), '') if str(item_id).isdigit() else (1, 0, str(item_id))


def merge_delta(checklist: Checklist, delta: ChecklistDelta) -> Checklist:
    """
    Apply a reconciliation delta to a checklist.

    Every existing item keeps completed = completed OR id in completed_ids,
    so a completed step is never reopened. New items are appended at the end;
    an item whose id already exists is skipped, which keeps re-applying the
    same delta a no-op.
    """
    items = [
        replace(item, completed=True) if (not item.completed and item.id in delta.completed_ids) else item
        for item in checklist.items
    ]
    existing_ids = {item.id for item in items}
    for new_item in delta.new_items:
        if new_item.id in existing_ids:
            continue
        items.append(new_item)
        existing_ids.add(new_item.id)
    return replace(checklist, items=tuple(items))


def check_out_of_order(checklist: Checklist, target_id: str) -> OutOfOrderResult:
    """
    Check whether completing target_id skips earlier, unfinished steps.

    Returns the texts of all uncompleted items before the target, in order.
    The first item, or an id not in the checklist, is never out of order.
    """
    index = checklist.index_of(target_id)
    if index <= 0:
        return OutOfOrderResult(is_out_of_order=False)

    skipped = tuple(item.text for item in checklist.items[:index] if not item.completed)
    return OutOfOrderResult(is_out_of_order=bool(skipped), skipped_steps=skipped)


def first_out_of_order(checklist: Checklist, target_ids: Iterable[str]) -> Optional[OutOfOrderResult]:
    """Return the first out-of-order result among target_ids, in checklist order."""
    ordered = sorted(
        (item_id for item_id in target_ids if checklist.index_of(item_id) >= 0),
        key=checklist.index_of,
    )
    for item_id in ordered:
        result = check_out_of_order(checklist, item_id)
        if result.is_out_of_order:
            return result
    return None
