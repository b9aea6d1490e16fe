from __future__ import annotations

import uuid
from copy import deepcopy
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from wbs_planner.core.hierarchy.rules import HIERARCHY_RULES, ROOT_TYPES
from wbs_planner.core.model import PlanItem
from wbs_planner.core.tree.tree_index import TreeIndex


# Keys joined in by list queries; never part of the persisted entity.
JOINED_FIELDS: frozenset[str] = frozenset(
    {
        "estimate_component",
        "estimate_components",
        "children",
        "children_count",
        "child_count",
        "has_children",
        "_children",
    }
)


@dataclass(frozen=True)
class ClipboardSnapshot:
    items: tuple[PlanItem, ...]
    is_cut: bool
    timestamp: datetime
    source_project_id: Optional[str]


@dataclass(frozen=True)
class PasteValidation:
    valid: bool
    error: Optional[str] = None


def _new_id() -> str:
    return str(uuid.uuid4())


class ClipboardManager:
    """Single-slot clipboard for copied/cut subtrees.

    One instance per editing session; a new copy/cut replaces the slot.
    """

    def __init__(
        self,
        *,
        id_factory: Callable[[], str] = _new_id,
        copy_suffix: str = " (Copy)",
    ) -> None:
        self._snapshot: Optional[ClipboardSnapshot] = None
        self._id_map: dict[str, str] = {}
        self._id_factory = id_factory
        self._copy_suffix = copy_suffix

    @property
    def snapshot(self) -> Optional[ClipboardSnapshot]:
        return self._snapshot

    @property
    def id_map(self) -> dict[str, str]:
        """Source id to new id from the last prepare_for_paste."""
        return dict(self._id_map)

    def copy(
        self,
        selected_items: Iterable[PlanItem],
        all_items: Iterable[PlanItem],
        is_cut: bool = False,
    ) -> int:
        tree = TreeIndex(all_items)
        captured: list[PlanItem] = []
        seen: set[str] = set()
        for item in selected_items:
            if item.id in seen:
                continue
            seen.add(item.id)
            captured.append(item)
            for d in tree.descendants(item.id):
                if d.id not in seen:
                    seen.add(d.id)
                    captured.append(d)

        if not captured:
            self._snapshot = None
            return 0

        self._snapshot = ClipboardSnapshot(
            items=tuple(deepcopy(captured)),
            is_cut=is_cut,
            timestamp=datetime.now(timezone.utc),
            source_project_id=captured[0].project_id,
        )
        return len(captured)

    def has_data(self) -> bool:
        return self._snapshot is not None and len(self._snapshot.items) > 0

    def is_cut_operation(self) -> bool:
        return self._snapshot is not None and self._snapshot.is_cut

    def get_count(self) -> int:
        return len(self._snapshot.items) if self._snapshot else 0

    def get_source_ids(self) -> list[str]:
        return [i.id for i in self._snapshot.items] if self._snapshot else []

    def clear(self) -> None:
        self._snapshot = None

    def root_items(self) -> list[PlanItem]:
        """Captured items whose parent was not captured, in sort order."""
        if not self._snapshot:
            return []
        ids = {i.id for i in self._snapshot.items}
        roots = [i for i in self._snapshot.items if i.parent_id not in ids]
        return sorted(roots, key=lambda i: i.sort_order)

    def validate_paste(self, target_item: Optional[PlanItem]) -> PasteValidation:
        if not self.has_data():
            return PasteValidation(valid=False, error="Nothing to paste.")

        for root in self.root_items():
            rtype = root.item_type
            if target_item is None:
                if rtype not in ROOT_TYPES:
                    return PasteValidation(
                        valid=False,
                        error=f"Cannot paste {rtype} at root level. Only milestones and components can be at root.",
                    )
                continue

            if rtype == "component":
                return PasteValidation(
                    valid=False, error="Components can only be pasted at root level."
                )
            rule = HIERARCHY_RULES.get(rtype)
            if rule is None or target_item.item_type not in rule.allowed_parents:
                return PasteValidation(
                    valid=False,
                    error=f"Cannot paste {rtype} under {target_item.item_type}.",
                )
        return PasteValidation(valid=True)

    def prepare_for_paste(
        self,
        target_project_id: str,
        target_parent_id: Optional[str],
        insert_order_start: float,
        base_indent_level: int = 0,
    ) -> Optional[list[PlanItem]]:
        """Fresh, remapped copies of the clipboard items, parent before child.

        Roots of the copy are re-parented under `target_parent_id` at
        `base_indent_level`; descendants follow their copied parent. Links
        between copied items follow the copy. Links to items outside it are
        kept for a cut and dropped for a copy.
        """
        if not self.has_data():
            return None
        assert self._snapshot is not None

        by_parent: dict[Optional[str], list[PlanItem]] = {}
        ids = {i.id for i in self._snapshot.items}
        for item in self._snapshot.items:
            key = item.parent_id if item.parent_id in ids else None
            by_parent.setdefault(key, []).append(item)
        for children in by_parent.values():
            children.sort(key=lambda i: i.sort_order)

        id_map: dict[str, str] = {}
        out: list[PlanItem] = []
        order = insert_order_start

        # (source item, new parent id, indent, is root of copy)
        stack: list[tuple[PlanItem, Optional[str], int, bool]] = [
            (root, target_parent_id, base_indent_level, True)
            for root in reversed(by_parent.get(None, []))
        ]
        while stack:
            src, new_parent, indent, is_root = stack.pop()
            new_id = self._id_factory()
            id_map[src.id] = new_id
            extra = {k: deepcopy(v) for k, v in src.extra.items() if k not in JOINED_FIELDS}
            out.append(
                replace(
                    src,
                    id=new_id,
                    project_id=target_project_id,
                    parent_id=new_parent,
                    name=src.name + self._copy_suffix if is_root else src.name,
                    indent_level=indent,
                    sort_order=order,
                    progress=0,
                    status="not_started",
                    wbs=None,
                    is_published=False,
                    published_milestone_id=None,
                    published_deliverable_id=None,
                    created_at=None,
                    updated_at=None,
                    estimate_component_id=None,
                    is_deleted=False,
                    extra=extra,
                )
            )
            order += 1
            stack.extend(
                (child, new_id, indent + 1, False)
                for child in reversed(by_parent.get(src.id, []))
            )

        self._id_map = id_map
        keep_external = self._snapshot.is_cut
        return [
            replace(
                item,
                predecessors=tuple(
                    replace(p, id=id_map[p.id]) if p.id in id_map else p
                    for p in item.predecessors
                    if p.id in id_map or keep_external
                ),
            )
            for item in out
        ]
