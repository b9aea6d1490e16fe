from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from wbs_planner.core.errors import PlanValidationError


# None stands for "root" (no parent).
ROOT: Optional[str] = None


@dataclass(frozen=True)
class HierarchyRule:
    allowed_parents: frozenset[Optional[str]]
    allowed_children: frozenset[str]


HIERARCHY_RULES: dict[str, HierarchyRule] = {
    "component": HierarchyRule(
        allowed_parents=frozenset({ROOT}),
        allowed_children=frozenset({"milestone"}),
    ),
    "milestone": HierarchyRule(
        allowed_parents=frozenset({ROOT, "component"}),
        allowed_children=frozenset({"deliverable"}),
    ),
    "deliverable": HierarchyRule(
        allowed_parents=frozenset({"milestone"}),
        allowed_children=frozenset({"task"}),
    ),
    "task": HierarchyRule(
        allowed_parents=frozenset({"deliverable", "task"}),
        allowed_children=frozenset({"task"}),
    ),
}

ROOT_TYPES: frozenset[str] = frozenset(
    t for t, rule in HIERARCHY_RULES.items() if ROOT in rule.allowed_parents
)


def is_valid_parent(item_type: str, parent_type: Optional[str]) -> bool:
    rule = HIERARCHY_RULES.get(item_type)
    if rule is None:
        return False
    return parent_type in rule.allowed_parents


def allowed_child_types(parent_type: Optional[str]) -> frozenset[str]:
    if parent_type is None:
        return ROOT_TYPES
    rule = HIERARCHY_RULES.get(parent_type)
    return rule.allowed_children if rule else frozenset()


def child_type_for(parent_type: Optional[str], current_type: str) -> str:
    """Type an item takes when it becomes a child of `parent_type`.

    Single source of truth for move, promote and demote retyping.
    """
    if parent_type is None:
        return "component" if current_type == "component" else "milestone"
    if parent_type == "component":
        return "milestone"
    if parent_type == "milestone":
        return "deliverable"
    return "task"


def demoted_type(current_type: str, new_parent_type: Optional[str]) -> str:
    if current_type == "component":
        raise PlanValidationError(
            code="E_CANNOT_DEMOTE_COMPONENT",
            message="Components cannot be demoted.",
        )
    return child_type_for(new_parent_type, current_type)


def promoted_type(current_type: str, new_parent_type: Optional[str]) -> str:
    return child_type_for(new_parent_type, current_type)


def describe_parent(parent_type: Optional[str]) -> str:
    return "root level" if parent_type is None else f"a {parent_type}"
