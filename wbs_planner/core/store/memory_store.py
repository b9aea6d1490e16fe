from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from wbs_planner.core.errors import PlanPersistenceError
from wbs_planner.core.model import PlanItem
from wbs_planner.core.tree.tree_index import TreeIndex


logger = logging.getLogger(__name__)

# Fields a caller may not overwrite through update_item.
_PROTECTED_FIELDS = frozenset({"id", "project_id", "created_at"})


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryPlanStore:
    """PlanStore kept in a dict, insertion ordered.

    Soft-deleted items stay in the store and are hidden from fetch_all.
    """

    def __init__(
        self,
        items: Iterable[PlanItem] = (),
        *,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._items: dict[str, PlanItem] = {}
        self._id_factory = id_factory
        for item in items:
            if item.id in self._items:
                raise PlanPersistenceError(code="E_DUPLICATE_ID", message=f"duplicate item id: {item.id}", path=item.id)
            self._items[item.id] = item

    def all_items(self) -> list[PlanItem]:
        """Every stored item, deleted ones included."""
        return list(self._items.values())

    async def fetch_all(self, project_id: str) -> list[PlanItem]:
        return [i for i in self._items.values() if i.project_id == project_id and not i.is_deleted]

    async def create_item(self, item: PlanItem) -> PlanItem:
        created = self._insert(item)
        logger.debug("created %s %s", created.item_type, created.id)
        return created

    async def create_batch(self, project_id: str, items: Sequence[PlanItem]) -> list[PlanItem]:
        for item in items:
            if item.id and item.id in self._items:
                raise PlanPersistenceError(code="E_DUPLICATE_ID", message=f"duplicate item id: {item.id}", path=item.id)
        out = [self._insert(replace(item, project_id=project_id)) for item in items]
        logger.debug("created %d items in %s", len(out), project_id)
        return out

    async def update_item(self, item_id: str, fields: Mapping[str, Any]) -> PlanItem:
        current = self._require(item_id)
        changes = {k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS}
        try:
            updated = current.with_fields({**changes, "updated_at": _now()})
        except (TypeError, ValueError) as e:
            raise PlanPersistenceError(code="E_INVALID_FIELDS", message=str(e), path=item_id) from e
        self._items[item_id] = updated
        return updated

    async def soft_delete_batch(self, item_ids: Sequence[str]) -> None:
        for item_id in item_ids:
            self._require(item_id)
        for item_id in item_ids:
            self._items[item_id] = replace(self._items[item_id], is_deleted=True, updated_at=_now())

    async def restore(self, item_ids: Sequence[str]) -> None:
        for item_id in item_ids:
            self._require(item_id)
        for item_id in item_ids:
            self._items[item_id] = replace(self._items[item_id], is_deleted=False, updated_at=_now())

    async def recalculate_wbs(self, project_id: str) -> None:
        live = [i for i in self._items.values() if i.project_id == project_id and not i.is_deleted]
        numbers = wbs_numbers(live)
        for item in live:
            wbs = numbers.get(item.id)
            if item.wbs != wbs:
                self._items[item.id] = replace(item, wbs=wbs)

    def _insert(self, item: PlanItem) -> PlanItem:
        # sort_order is stored as given; callers place the item.
        item_id = item.id or self._id_factory()
        now = _now()
        created = replace(
            item,
            id=item_id,
            created_at=item.created_at or now,
            updated_at=now,
        )
        self._items[item_id] = created
        return created

    def _require(self, item_id: str) -> PlanItem:
        item = self._items.get(item_id)
        if item is None:
            raise PlanPersistenceError(code="E_NOT_FOUND", message=f"item not found: {item_id}", path=item_id)
        return item


def wbs_numbers(items: Iterable[PlanItem]) -> dict[str, str]:
    """Dotted outline numbers ("1", "1.2", "1.2.3") in display order."""
    tree = TreeIndex(items)
    out: dict[str, str] = {}

    def number(parent_id: Optional[str], prefix: str) -> None:
        for pos, child in enumerate(tree.children(parent_id), start=1):
            label = f"{prefix}.{pos}" if prefix else str(pos)
            out[child.id] = label
            number(child.id, label)

    number(None, "")
    return out
