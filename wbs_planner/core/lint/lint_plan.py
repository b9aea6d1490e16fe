from __future__ import annotations

from typing import Any, Iterable, Optional

from wbs_planner.core.deps.cycles import CycleDetector
from wbs_planner.core.errors import PlanValidationError
from wbs_planner.core.hierarchy.rules import describe_parent, is_valid_parent
from wbs_planner.core.model import PlanItem


# Structural invariant lint rules:
# - L_DANGLING_PARENT: parent_id points to a missing or deleted item
# - L_PARENT_CYCLE: parent chain loops back on itself
# - L_INVALID_HIERARCHY: item type not allowed under its parent's type
# - L_INDENT_MISMATCH: indent_level != parent.indent_level + 1 (root = 0)
# - L_UNKNOWN_PREDECESSOR: predecessor id not found among live items
# - L_CYCLE_DETECTED: predecessor graph has a cycle


def lint_items(items: Iterable[PlanItem], *, file: Optional[str] = None) -> list[PlanValidationError]:
    """Check hierarchy/indent/dependency invariants over validated items.

    Deleted items are ignored, and references to them count as missing.
    """

    live = [i for i in items if not i.is_deleted]
    by_id = {i.id: i for i in live}
    index = {i.id: n for n, i in enumerate(live)}
    errors: list[PlanValidationError] = []

    def err(code: str, message: str, item_id: str, field: str) -> None:
        errors.append(
            PlanValidationError(
                code=code,
                message=message,
                file=file,
                path=f"items[{index.get(item_id, 0)}].{field}",
            )
        )

    looping = _parent_cycle_members(by_id)

    for item in live:
        parent: Optional[PlanItem] = None
        if item.parent_id is not None:
            parent = by_id.get(item.parent_id)
            if parent is None:
                err("L_DANGLING_PARENT", f"parent not found: {item.parent_id}", item.id, "parent_id")
                continue
        if item.id in looping:
            err("L_PARENT_CYCLE", "parent chain loops back to this item", item.id, "parent_id")
            continue

        parent_type = parent.item_type if parent else None
        if not is_valid_parent(item.item_type, parent_type):
            err(
                "L_INVALID_HIERARCHY",
                f"a {item.item_type} cannot be placed under {describe_parent(parent_type)}",
                item.id,
                "item_type",
            )

        expected = parent.indent_level + 1 if parent else 0
        if item.indent_level != expected:
            err(
                "L_INDENT_MISMATCH",
                f"indent_level is {item.indent_level}, expected {expected}",
                item.id,
                "indent_level",
            )

    for item in live:
        for pred in item.predecessors:
            if pred.id not in by_id:
                err("L_UNKNOWN_PREDECESSOR", f"unknown predecessor: {pred.id}", item.id, "predecessors")

    for cycle in CycleDetector(live).find_cycles():
        err(
            "L_CYCLE_DETECTED",
            "dependency cycle detected: " + " -> ".join(cycle),
            cycle[0],
            "predecessors",
        )

    return _sorted(errors)


def lint_plan(plan: dict[str, Any]) -> list[PlanValidationError]:
    """Lint a raw plan mapping.

    Best effort: items that fail to parse are left to the validator.
    """

    file = plan.get("__file__") if isinstance(plan.get("__file__"), str) else None
    raw_items = plan.get("items")
    if not isinstance(raw_items, list):
        return []

    items: list[PlanItem] = []
    for raw in raw_items:
        if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
            continue
        try:
            items.append(PlanItem.from_dict({"project_id": plan.get("project_id") or "", **raw}))
        except (TypeError, ValueError, KeyError):
            continue
    return lint_items(items, file=file)


def _parent_cycle_members(by_id: dict[str, PlanItem]) -> set[str]:
    looping: set[str] = set()
    for start in by_id:
        seen: list[str] = []
        cur: Optional[str] = start
        while cur is not None and cur in by_id and cur not in seen:
            seen.append(cur)
            cur = by_id[cur].parent_id
        if cur is not None and cur in seen:
            looping.update(seen[seen.index(cur):])
    return looping


def _sorted(errors: list[PlanValidationError]) -> list[PlanValidationError]:
    return sorted(
        errors,
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
