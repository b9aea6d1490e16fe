from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional


ACTION_LABELS: dict[str, str] = {
    "create": "Create",
    "update": "Edit",
    "delete": "Delete",
    "paste": "Paste",
    "promote": "Promote",
    "demote": "Demote",
    "move": "Move",
    "batch_delete": "Delete Items",
    "import": "Import",
}

DEFAULT_CAPACITY = 50


def action_label(action_type: str) -> str:
    return ACTION_LABELS.get(action_type, action_type)


@dataclass(frozen=True)
class HistoryEntry:
    type: str
    payload: Mapping[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def data(self) -> dict[str, Any]:
        # handed out as a copy so recorded payloads never change
        return deepcopy(dict(self.payload))

    @property
    def label(self) -> str:
        return action_label(self.type)


@dataclass(frozen=True)
class HistoryState:
    can_undo: bool
    can_redo: bool
    undo_label: Optional[str]
    redo_label: Optional[str]


Subscriber = Callable[[HistoryState], None]


class HistoryManager:
    """Bounded linear undo/redo stacks of semantic actions.

    Only bookkeeping lives here; callers execute the inverse effects.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be >= 1")
        self._capacity = capacity
        self._undo: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []
        self._subscribers: list[Subscriber] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def undo_size(self) -> int:
        return len(self._undo)

    @property
    def redo_size(self) -> int:
        return len(self._redo)

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, action_type: str, data: Mapping[str, Any]) -> HistoryEntry:
        entry = HistoryEntry(type=action_type, payload=deepcopy(dict(data)))
        self._undo.append(entry)
        self._redo.clear()
        while len(self._undo) > self._capacity:
            self._undo.pop(0)
        self._notify()
        return entry

    def pop_undo(self) -> Optional[HistoryEntry]:
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(entry)
        self._notify()
        return entry

    def pop_redo(self) -> Optional[HistoryEntry]:
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(entry)
        self._notify()
        return entry

    def cancel_undo(self, entry: HistoryEntry) -> None:
        """Put an entry popped by `pop_undo` back on the undo stack."""
        if self._redo and self._redo[-1] is entry:
            self._redo.pop()
            self._undo.append(entry)
            self._notify()

    def cancel_redo(self, entry: HistoryEntry) -> None:
        """Put an entry popped by `pop_redo` back on the redo stack."""
        if self._undo and self._undo[-1] is entry:
            self._undo.pop()
            self._redo.append(entry)
            self._notify()

    def peek_undo(self) -> Optional[HistoryEntry]:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> Optional[HistoryEntry]:
        return self._redo[-1] if self._redo else None

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
        self._notify()

    def state(self) -> HistoryState:
        top_undo = self.peek_undo()
        top_redo = self.peek_redo()
        return HistoryState(
            can_undo=top_undo is not None,
            can_redo=top_redo is not None,
            undo_label=top_undo.label if top_undo else None,
            redo_label=top_redo.label if top_redo else None,
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        state = self.state()
        for cb in list(self._subscribers):
            cb(state)
