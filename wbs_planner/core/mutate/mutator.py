from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal, Optional

from wbs_planner.core.errors import PlanValidationError
from wbs_planner.core.hierarchy.rules import (
    child_type_for,
    demoted_type,
    describe_parent,
    is_valid_parent,
    promoted_type,
)
from wbs_planner.core.model import PlanItem, structural_fields
from wbs_planner.core.tree.tree_index import TreeIndex


DropPosition = Literal["before", "after", "inside"]

DROP_POSITIONS: tuple[str, ...] = ("before", "after", "inside")


@dataclass(frozen=True)
class ItemChange:
    id: str
    previous_values: dict[str, Any]
    new_values: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "previous_values": dict(self.previous_values),
            "new_values": dict(self.new_values),
        }


@dataclass(frozen=True)
class StructureChange:
    """A computed (not yet persisted) structural mutation."""

    action: str
    item_ids: tuple[str, ...]
    changes: tuple[ItemChange, ...]
    new_parent_id: Optional[str] = None
    new_sort_order: Optional[float] = None

    def change_for(self, item_id: str) -> Optional[ItemChange]:
        for c in self.changes:
            if c.id == item_id:
                return c
        return None

    def history_data(self) -> dict[str, Any]:
        if self.action in ("promote", "demote"):
            main_id = self.item_ids[0]
            main = self.change_for(main_id)
            assert main is not None
            return {
                "id": main_id,
                "previous_parent_id": main.previous_values["parent_id"],
                "previous_type": main.previous_values["item_type"],
                "previous_indent": main.previous_values["indent_level"],
                "previous_sort_order": main.previous_values["sort_order"],
                "new_parent_id": main.new_values["parent_id"],
                "new_type": main.new_values["item_type"],
                "new_indent": main.new_values["indent_level"],
                "new_sort_order": main.new_values["sort_order"],
                "descendants": [c.to_dict() for c in self.changes if c.id != main_id],
            }
        return {
            "item_ids": list(self.item_ids),
            "previous_states": [{"id": c.id, **c.previous_values} for c in self.changes],
            "new_states": [{"id": c.id, **c.new_values} for c in self.changes],
            "new_parent_id": self.new_parent_id,
            "new_sort_order": self.new_sort_order,
        }


@dataclass(frozen=True)
class DropPlan:
    root_ids: tuple[str, ...]
    dragged_ids: frozenset[str]
    new_parent_id: Optional[str]
    anchor_order: float
    after: bool


@dataclass
class _Placement:
    item_type: str
    indent_level: int
    parent_id: Optional[str]
    sort_order: float


class HierarchyMutator:
    """Structural edits computed against a TreeIndex snapshot.

    Every method validates first and raises PlanValidationError without side
    effects; on success it returns a StructureChange for the caller to persist.
    """

    def __init__(self, tree: TreeIndex, *, sort_order_step: float = 100) -> None:
        self._tree = tree
        self._step = sort_order_step

    # ------------------------------------------------------------------ move

    def move(
        self, item_id: str, new_parent_id: Optional[str], new_sort_order: float
    ) -> StructureChange:
        item = self._require(item_id)
        parent = self._require_parent(new_parent_id)
        if new_parent_id is not None and (
            new_parent_id == item_id or self._tree.is_descendant(new_parent_id, item_id)
        ):
            raise PlanValidationError(
                code="E_MOVE_INTO_DESCENDANT",
                message="Cannot move an item under itself or one of its descendants.",
                path=item_id,
            )
        changes = self._relocate([item], parent, anchor_order=new_sort_order, after=False)
        return StructureChange(
            action="move",
            item_ids=(item_id,),
            changes=changes,
            new_parent_id=new_parent_id,
            new_sort_order=new_sort_order,
        )

    # ----------------------------------------------------- promote / demote

    def promote(self, item_id: str) -> StructureChange:
        item = self._require(item_id)
        parent = self._tree.get(item.parent_id)
        if parent is None:
            raise PlanValidationError(
                code="E_ALREADY_ROOT",
                message="Item is already at root level.",
                path=item_id,
            )
        grandparent = self._tree.get(parent.parent_id)
        gp_type = grandparent.item_type if grandparent else None
        new_type = promoted_type(item.item_type, gp_type)
        self._check_pairing(new_type, gp_type, item_id)

        nxt = self._tree.next_sibling(parent.id)
        if nxt is not None:
            new_order = (parent.sort_order + nxt.sort_order) / 2
        else:
            new_order = parent.sort_order + self._step

        placement = _Placement(
            item_type=new_type,
            indent_level=grandparent.indent_level + 1 if grandparent else 0,
            parent_id=grandparent.id if grandparent else None,
            sort_order=new_order,
        )
        changes = self._cascade({item.id: placement}, [item])
        return StructureChange(
            action="promote",
            item_ids=(item_id,),
            changes=changes,
            new_parent_id=placement.parent_id,
            new_sort_order=new_order,
        )

    def demote(self, item_id: str) -> StructureChange:
        item = self._require(item_id)
        prev = self._tree.previous_sibling(item_id)
        if prev is None:
            raise PlanValidationError(
                code="E_NO_PREVIOUS_SIBLING",
                message="No previous sibling to become parent.",
                path=item_id,
            )
        new_type = demoted_type(item.item_type, prev.item_type)
        self._check_pairing(new_type, prev.item_type, item_id)

        last_children = self._tree.children(prev.id)
        new_order = (last_children[-1].sort_order + self._step) if last_children else self._step

        placement = _Placement(
            item_type=new_type,
            indent_level=prev.indent_level + 1,
            parent_id=prev.id,
            sort_order=new_order,
        )
        changes = self._cascade({item.id: placement}, [item])
        return StructureChange(
            action="demote",
            item_ids=(item_id,),
            changes=changes,
            new_parent_id=prev.id,
            new_sort_order=new_order,
        )

    # --------------------------------------------------------- drag & drop

    def normalize_selection(self, selected_ids: Iterable[str]) -> list[PlanItem]:
        """Selected items without an ancestor in the selection, in display order."""
        selected = list(dict.fromkeys(selected_ids))
        for sid in selected:
            self._require(sid)
        chosen = set(selected)
        roots = [
            sid
            for sid in selected
            if not any(self._tree.is_descendant(sid, other) for other in chosen if other != sid)
        ]
        order = {item.id: idx for idx, item in enumerate(self._tree.visible_items())}
        roots.sort(key=lambda i: order.get(i, len(order)))
        return [self._tree.require(r) for r in roots]

    def validate_drop(
        self, selected_ids: Iterable[str], target_id: str, position: str
    ) -> DropPlan:
        if position not in DROP_POSITIONS:
            raise PlanValidationError(
                code="E_DROP_UNKNOWN_POSITION",
                message=f"unknown drop position: {position} (choose one of: {', '.join(DROP_POSITIONS)})",
                path="position",
            )
        roots = self.normalize_selection(selected_ids)
        if not roots:
            raise PlanValidationError(code="E_NOTHING_SELECTED", message="No items selected.")
        target = self._require(target_id)

        dragged: set[str] = set()
        for r in roots:
            dragged.add(r.id)
            dragged.update(self._tree.descendant_ids(r.id))

        if target.id in dragged or any(self._tree.is_descendant(target.id, r.id) for r in roots):
            raise PlanValidationError(
                code="E_DROP_ONTO_CHILD",
                message="Cannot drop parent onto child",
                path=target_id,
            )

        if position == "inside":
            new_parent: Optional[PlanItem] = target
            anchor, after = float("inf"), True
        else:
            new_parent = self._tree.get(target.parent_id)
            anchor, after = target.sort_order, position == "after"

        parent_type = new_parent.item_type if new_parent else None
        for r in roots:
            self._check_component_root(r, new_parent)
            self._check_pairing(child_type_for(parent_type, r.item_type), parent_type, r.id)

        return DropPlan(
            root_ids=tuple(r.id for r in roots),
            dragged_ids=frozenset(dragged),
            new_parent_id=new_parent.id if new_parent else None,
            anchor_order=anchor,
            after=after,
        )

    def plan_drop(
        self, selected_ids: Iterable[str], target_id: str, position: str
    ) -> StructureChange:
        drop = self.validate_drop(selected_ids, target_id, position)
        roots = [self._tree.require(r) for r in drop.root_ids]
        parent = self._tree.get(drop.new_parent_id)
        changes = self._relocate(roots, parent, anchor_order=drop.anchor_order, after=drop.after)
        new_order = self._new_order_of(changes, drop.root_ids[0])
        return StructureChange(
            action="move",
            item_ids=drop.root_ids,
            changes=changes,
            new_parent_id=drop.new_parent_id,
            new_sort_order=new_order,
        )

    # -------------------------------------------------------------- helpers

    def _relocate(
        self,
        roots: list[PlanItem],
        parent: Optional[PlanItem],
        *,
        anchor_order: float,
        after: bool,
    ) -> tuple[ItemChange, ...]:
        parent_type = parent.item_type if parent else None
        parent_id = parent.id if parent else None
        indent = parent.indent_level + 1 if parent else 0

        placements: dict[str, _Placement] = {}
        for r in roots:
            self._check_component_root(r, parent)
            new_type = child_type_for(parent_type, r.item_type)
            self._check_pairing(new_type, parent_type, r.id)
            placements[r.id] = _Placement(
                item_type=new_type, indent_level=indent, parent_id=parent_id, sort_order=0
            )

        # Resequence the destination's children, moved roots slotted at the anchor.
        moved = {r.id for r in roots}
        keyed: list[tuple[tuple[float, int, int], PlanItem]] = [
            ((s.sort_order, 1, 0), s) for s in self._tree.children(parent_id) if s.id not in moved
        ]
        keyed.extend(
            ((anchor_order, 2 if after else 0, idx), r) for idx, r in enumerate(roots)
        )
        keyed.sort(key=lambda kv: kv[0])

        sibling_updates: list[PlanItem] = []
        for pos, (_, it) in enumerate(keyed, start=1):
            order = pos * self._step
            if it.id in placements:
                placements[it.id].sort_order = order
            elif it.sort_order != order:
                placements[it.id] = _Placement(
                    item_type=it.item_type,
                    indent_level=it.indent_level,
                    parent_id=it.parent_id,
                    sort_order=order,
                )
                sibling_updates.append(it)

        return self._cascade(placements, roots + sibling_updates)

    def _cascade(
        self, placements: dict[str, _Placement], heads: list[PlanItem]
    ) -> tuple[ItemChange, ...]:
        """Changes for `heads` plus retype / re-indent of their descendants."""
        out: list[ItemChange] = []
        for head in heads:
            p = placements[head.id]
            self._append_change(out, head, p)
            if p.item_type == head.item_type and p.indent_level == head.indent_level:
                continue
            resolved: dict[str, _Placement] = {head.id: p}
            for d in self._tree.descendants(head.id):
                parent_p = resolved[d.parent_id]  # type: ignore[index]
                dp = _Placement(
                    item_type=child_type_for(parent_p.item_type, d.item_type),
                    indent_level=parent_p.indent_level + 1,
                    parent_id=d.parent_id,
                    sort_order=d.sort_order,
                )
                resolved[d.id] = dp
                self._append_change(out, d, dp)
        return tuple(out)

    @staticmethod
    def _append_change(out: list[ItemChange], item: PlanItem, p: _Placement) -> None:
        before = structural_fields(item)
        after = {
            "parent_id": p.parent_id,
            "item_type": p.item_type,
            "indent_level": p.indent_level,
            "sort_order": p.sort_order,
        }
        if before != after:
            out.append(ItemChange(id=item.id, previous_values=before, new_values=after))

    @staticmethod
    def _new_order_of(changes: tuple[ItemChange, ...], item_id: str) -> Optional[float]:
        for c in changes:
            if c.id == item_id:
                return c.new_values["sort_order"]
        return None

    def _require(self, item_id: str) -> PlanItem:
        item = self._tree.get(item_id)
        if item is None:
            raise PlanValidationError(
                code="E_UNKNOWN_ITEM", message=f"Item not found: {item_id}", path=item_id
            )
        return item

    def _require_parent(self, parent_id: Optional[str]) -> Optional[PlanItem]:
        if parent_id is None:
            return None
        parent = self._tree.get(parent_id)
        if parent is None:
            raise PlanValidationError(
                code="E_UNKNOWN_PARENT",
                message=f"Parent not found: {parent_id}",
                path=parent_id,
            )
        return parent

    @staticmethod
    def _check_component_root(item: PlanItem, parent: Optional[PlanItem]) -> None:
        if item.item_type == "component" and parent is not None:
            raise PlanValidationError(
                code="E_COMPONENT_NOT_ROOT",
                message="Components can only be placed at root level.",
                path=item.id,
            )

    @staticmethod
    def _check_pairing(item_type: str, parent_type: Optional[str], item_id: str) -> None:
        if not is_valid_parent(item_type, parent_type):
            raise PlanValidationError(
                code="E_INVALID_PARENT",
                message=f"A {item_type} cannot be placed under {describe_parent(parent_type)}.",
                path=item_id,
            )
