from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Iterator, Optional

from wbs_planner.core.model import PlanItem


class TreeIndex:
    """Parent -> children adjacency over a flat list of plan items.

    Built once per batch of operations. Deleted items are dropped; items whose
    parent is missing (or deleted) are kept in `get()` but excluded from every
    traversal, together with their subtrees.
    """

    def __init__(self, items: Iterable[PlanItem]) -> None:
        self._by_id: dict[str, PlanItem] = {}
        for item in items:
            if item.is_deleted:
                continue
            self._by_id[item.id] = item

        children: dict[Optional[str], list[str]] = defaultdict(list)
        for item in self._by_id.values():
            if item.parent_id is not None and item.parent_id not in self._by_id:
                continue
            children[item.parent_id].append(item.id)

        # stable: equal sort_order keeps input order
        self._children: dict[Optional[str], list[str]] = {
            pid: sorted(ids, key=lambda i: self._by_id[i].sort_order)
            for pid, ids in children.items()
        }

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, item_id: Optional[str]) -> Optional[PlanItem]:
        if item_id is None:
            return None
        return self._by_id.get(item_id)

    def require(self, item_id: str) -> PlanItem:
        item = self._by_id.get(item_id)
        if item is None:
            raise KeyError(item_id)
        return item

    def items(self) -> list[PlanItem]:
        return list(self._by_id.values())

    def roots(self) -> list[PlanItem]:
        return [self._by_id[i] for i in self._children.get(None, [])]

    def children(self, item_id: Optional[str]) -> list[PlanItem]:
        return [self._by_id[i] for i in self._children.get(item_id, [])]

    def children_count(self, item_id: str) -> int:
        return len(self._children.get(item_id, []))

    def parent_type(self, item: PlanItem) -> Optional[str]:
        parent = self.get(item.parent_id)
        return parent.item_type if parent else None

    def siblings(self, item_id: str) -> list[PlanItem]:
        """Items sharing `item_id`'s parent, including the item, in sort order."""
        item = self.require(item_id)
        return self.children(item.parent_id)

    def previous_sibling(self, item_id: str) -> Optional[PlanItem]:
        sibs = self.siblings(item_id)
        for idx, sib in enumerate(sibs):
            if sib.id == item_id:
                return sibs[idx - 1] if idx > 0 else None
        return None

    def next_sibling(self, item_id: str) -> Optional[PlanItem]:
        sibs = self.siblings(item_id)
        for idx, sib in enumerate(sibs):
            if sib.id == item_id:
                return sibs[idx + 1] if idx + 1 < len(sibs) else None
        return None

    def descendants(self, item_id: str) -> list[PlanItem]:
        out: list[PlanItem] = []
        q: deque[str] = deque(self._children.get(item_id, []))
        seen: set[str] = {item_id}
        while q:
            cur = q.popleft()
            if cur in seen:
                continue
            seen.add(cur)
            out.append(self._by_id[cur])
            q.extend(self._children.get(cur, []))
        return out

    def descendant_ids(self, item_id: str) -> set[str]:
        return {d.id for d in self.descendants(item_id)}

    def is_descendant(self, item_id: str, ancestor_id: str) -> bool:
        """True if `item_id` sits (transitively) under `ancestor_id`."""
        seen: set[str] = set()
        cur = self.get(item_id)
        while cur is not None and cur.parent_id is not None and cur.id not in seen:
            seen.add(cur.id)
            if cur.parent_id == ancestor_id:
                return True
            cur = self.get(cur.parent_id)
        return False

    def visible_items(self, collapsed_ids: Iterable[str] = ()) -> Iterator[PlanItem]:
        """Depth-first rows, skipping subtrees under collapsed items.

        Each call returns a fresh generator over the current index.
        """
        collapsed = set(collapsed_ids)
        return self._walk(collapsed)

    def _walk(self, collapsed: set[str]) -> Iterator[PlanItem]:
        stack: list[str] = list(reversed(self._children.get(None, [])))
        while stack:
            cur = stack.pop()
            yield self._by_id[cur]
            if cur in collapsed:
                continue
            stack.extend(reversed(self._children.get(cur, [])))

    def depth_map(self) -> dict[str, int]:
        """Tree depth of every reachable item (roots are 0)."""
        out: dict[str, int] = {}
        for item in self._walk(set()):
            parent_depth = out.get(item.parent_id, -1) if item.parent_id else -1
            out[item.id] = parent_depth + 1
        return out
