from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from wbs_planner.core.errors import PlanLoadError, PlanValidationError
from wbs_planner.core.hierarchy.rules import describe_parent, is_valid_parent
from wbs_planner.core.model import ITEM_TYPES, PlanItem
from wbs_planner.core.schedule.scheduler import get_duration
from wbs_planner.core.tree.tree_index import TreeIndex


STRUCTURE_SCHEMA_VERSION = "0.1.0"


@dataclass(frozen=True)
class StructureNode:
    """One node of a reusable component structure (no ids, no dates)."""

    temp_id: str
    item_type: str
    name: str
    description: str = ""
    duration_days: int = 0
    sort_order: float = 0
    children: tuple["StructureNode", ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "temp_id": self.temp_id,
            "item_type": self.item_type,
            "name": self.name,
            "description": self.description,
            "duration_days": self.duration_days,
            "sort_order": self.sort_order,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class StructureCounts:
    total: int = 0
    components: int = 0
    milestones: int = 0
    deliverables: int = 0
    tasks: int = 0


def build_structure(items: Iterable[PlanItem], component_id: str) -> list[StructureNode]:
    """Capture `component_id` and its subtree as template nodes.

    Returns [] when the component is unknown.
    """
    tree = TreeIndex(items)
    root = tree.get(component_id)
    if root is None:
        return []

    counter = 0

    def build(item: PlanItem) -> StructureNode:
        nonlocal counter
        counter += 1
        temp_id = f"temp_{counter}"
        return StructureNode(
            temp_id=temp_id,
            item_type=item.item_type,
            name=item.name,
            description=item.description or "",
            duration_days=get_duration(item.start_date, item.end_date),
            sort_order=item.sort_order,
            children=tuple(build(child) for child in tree.children(item.id)),
        )

    return [build(root)]


def count_items(structure: Iterable[StructureNode]) -> StructureCounts:
    by_type: dict[str, int] = {}
    total = 0
    stack = list(structure)
    while stack:
        node = stack.pop()
        total += 1
        by_type[node.item_type] = by_type.get(node.item_type, 0) + 1
        stack.extend(node.children)
    return StructureCounts(
        total=total,
        components=by_type.get("component", 0),
        milestones=by_type.get("milestone", 0),
        deliverables=by_type.get("deliverable", 0),
        tasks=by_type.get("task", 0),
    )


def flatten_structure(
    structure: Iterable[StructureNode],
    project_id: str,
    start_date: date,
    parent_id: Optional[str] = None,
    base_sort_order: float = 100,
    base_indent_level: int = 0,
) -> list[PlanItem]:
    """Template nodes as plan items, parent before child.

    Items carry their temp ids (and temp-id parents); the caller swaps in real
    ids when creating them. Children start on their parent's start date.
    """
    out: list[PlanItem] = []
    order = base_sort_order

    stack: list[tuple[StructureNode, Optional[str], int]] = [
        (node, parent_id, base_indent_level) for node in reversed(list(structure))
    ]
    while stack:
        node, node_parent, indent = stack.pop()
        out.append(
            PlanItem(
                id=node.temp_id,
                project_id=project_id,
                item_type=node.item_type,  # type: ignore[arg-type]
                name=node.name,
                parent_id=node_parent,
                description=node.description,
                start_date=start_date,
                end_date=start_date + timedelta(days=node.duration_days),
                duration_days=node.duration_days or None,
                indent_level=indent,
                sort_order=order,
            )
        )
        order += 1
        stack.extend((child, node.temp_id, indent + 1) for child in reversed(node.children))
    return out


def check_structure(
    structure: Iterable[StructureNode], parent_type: Optional[str]
) -> list[PlanValidationError]:
    """Hierarchy violations if `structure` were placed under `parent_type`."""
    errors: list[PlanValidationError] = []
    stack: list[tuple[StructureNode, Optional[str]]] = [(n, parent_type) for n in structure]
    while stack:
        node, ptype = stack.pop()
        if not is_valid_parent(node.item_type, ptype):
            errors.append(
                PlanValidationError(
                    code="E_INVALID_PARENT",
                    message=f"A {node.item_type} cannot be placed under {describe_parent(ptype)}.",
                    path=node.temp_id,
                )
            )
        stack.extend((child, node.item_type) for child in node.children)
    return sorted(errors, key=lambda e: (e.path or "", e.code))


def structure_from_dicts(raw_nodes: Any, *, file: Optional[str] = None, path: str = "structure") -> list[StructureNode]:
    if not isinstance(raw_nodes, list):
        raise PlanValidationError(code="E_INVALID_TYPE", message="structure must be an array", file=file, path=path)

    out: list[StructureNode] = []
    for i, raw in enumerate(raw_nodes):
        p = f"{path}[{i}]"
        if not isinstance(raw, dict):
            raise PlanValidationError(code="E_INVALID_TYPE", message="node must be an object", file=file, path=p)
        itype = raw.get("item_type")
        if itype not in ITEM_TYPES:
            raise PlanValidationError(
                code="E_INVALID_ENUM",
                message=f"item_type must be one of {list(ITEM_TYPES)}",
                file=file,
                path=f"{p}.item_type",
            )
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise PlanValidationError(
                code="E_REQUIRED_FIELD",
                message="name is required and must be a non-empty string",
                file=file,
                path=f"{p}.name",
            )
        duration = raw.get("duration_days") or 0
        if not isinstance(duration, int) or isinstance(duration, bool) or duration < 0:
            raise PlanValidationError(
                code="E_INVALID_TYPE",
                message="duration_days must be a non-negative integer",
                file=file,
                path=f"{p}.duration_days",
            )
        out.append(
            StructureNode(
                temp_id=str(raw.get("temp_id") or p),
                item_type=itype,
                name=name,
                description=str(raw.get("description") or ""),
                duration_days=duration,
                sort_order=raw.get("sort_order") or 0,
                children=tuple(
                    structure_from_dicts(raw.get("children") or [], file=file, path=f"{p}.children")
                ),
            )
        )
    return out


def load_structure_file(path: str | Path) -> list[StructureNode]:
    """Load a YAML structure template.

    Format:
      schema_version: "0.1.0"
      structure:
        - item_type: component
          name: Platform
          children: [...]
    """
    p = Path(path)
    if not p.exists():
        raise PlanLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise PlanLoadError(code="E_YAML_PARSE", message=str(e), file=str(p)) from e
    if not isinstance(data, dict):
        raise PlanLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )
    return structure_from_dicts(data.get("structure"), file=str(p))


def dump_structure_yaml(structure: list[StructureNode], path: str | Path) -> None:
    counts = count_items(structure)
    doc = {
        "schema_version": STRUCTURE_SCHEMA_VERSION,
        "counts": {
            "total": counts.total,
            "components": counts.components,
            "milestones": counts.milestones,
            "deliverables": counts.deliverables,
            "tasks": counts.tasks,
        },
        "structure": [n.to_dict() for n in structure],
    }
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        yaml.safe_dump(doc, f, sort_keys=False, default_flow_style=False, allow_unicode=True)
