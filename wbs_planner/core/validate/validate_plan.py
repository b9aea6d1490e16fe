from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Optional, cast

from wbs_planner.core.errors import PlanValidationError
from wbs_planner.core.model import (
    DEPENDENCY_TYPES,
    ITEM_STATUSES,
    ITEM_TYPES,
    PlanItem,
    parse_date,
)


@dataclass(frozen=True)
class PlanDocument:
    schema_version: str
    project_id: str
    items: list[PlanItem]


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_plan(plan: dict[str, Any]) -> tuple[Optional[PlanDocument], list[PlanValidationError]]:
    """Validate plan file shape.

    Returns (document, errors). Document is None when errors exist.
    Structural invariants (hierarchy, indent, cycles) are lint's job.
    """

    file = cast(Optional[str], plan.get("__file__"))
    errors: list[PlanValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(PlanValidationError(code=code, message=message, file=file, path=path))

    schema_version = plan.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        err("E_REQUIRED_FIELD", "schema_version is required and must be a non-empty string", "schema_version")

    project_id = plan.get("project_id")
    if not isinstance(project_id, str) or not project_id.strip():
        err("E_REQUIRED_FIELD", "project_id is required and must be a non-empty string", "project_id")

    raw_items = plan.get("items")
    if not isinstance(raw_items, list):
        err("E_REQUIRED_FIELD", "items is required and must be an array", "items")
        return None, _sorted(errors)

    items: list[PlanItem] = []
    seen_ids: set[str] = set()

    for i, raw in enumerate(raw_items):
        p = f"items[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "item must be an object", p)
            continue

        iid = raw.get("id")
        if not isinstance(iid, str) or not iid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{p}.id")
            continue
        if iid in seen_ids:
            err("E_DUPLICATE_ID", f"duplicate item id: {iid}", f"{p}.id")
            continue
        seen_ids.add(iid)

        before = len(errors)

        itype = raw.get("item_type")
        if not isinstance(itype, str) or itype not in ITEM_TYPES:
            err("E_INVALID_ENUM", f"item_type must be one of {list(ITEM_TYPES)}", f"{p}.item_type")

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            err("E_REQUIRED_FIELD", "name is required and must be a non-empty string", f"{p}.name")

        item_project = raw.get("project_id")
        if item_project is not None and item_project != project_id:
            err("E_PROJECT_MISMATCH", f"project_id {item_project!r} differs from plan project_id", f"{p}.project_id")

        parent_id = raw.get("parent_id")
        if parent_id is not None and not isinstance(parent_id, str):
            err("E_INVALID_TYPE", "parent_id must be a string or null", f"{p}.parent_id")

        status = raw.get("status")
        if status is not None and status not in ITEM_STATUSES:
            err("E_INVALID_ENUM", f"status must be one of {list(ITEM_STATUSES)}", f"{p}.status")

        progress = raw.get("progress")
        if progress is not None and (not _is_int(progress) or not 0 <= progress <= 100):
            err("E_INVALID_TYPE", "progress must be an integer between 0 and 100", f"{p}.progress")

        indent = raw.get("indent_level")
        if indent is not None and (not _is_int(indent) or indent < 0):
            err("E_INVALID_TYPE", "indent_level must be a non-negative integer", f"{p}.indent_level")

        sort_order = raw.get("sort_order")
        if sort_order is not None and not _is_number(sort_order):
            err("E_INVALID_TYPE", "sort_order must be a number", f"{p}.sort_order")

        duration = raw.get("duration_days")
        if duration is not None and (not _is_int(duration) or duration <= 0):
            err("E_INVALID_TYPE", "duration_days must be a positive integer", f"{p}.duration_days")

        for key in ("start_date", "end_date"):
            try:
                parse_date(raw.get(key))
            except (TypeError, ValueError):
                err("E_INVALID_DATE", f"{key} must be an ISO date (YYYY-MM-DD)", f"{p}.{key}")

        preds = raw.get("predecessors")
        if preds is not None:
            if not isinstance(preds, list):
                err("E_INVALID_TYPE", "predecessors must be an array", f"{p}.predecessors")
            else:
                for pi, pred in enumerate(preds):
                    pp = f"{p}.predecessors[{pi}]"
                    if not isinstance(pred, dict) or not isinstance(pred.get("id"), str):
                        err("E_INVALID_TYPE", "predecessor must be an object with a string id", pp)
                        continue
                    if pred.get("type") is not None and pred.get("type") not in DEPENDENCY_TYPES:
                        err("E_INVALID_ENUM", f"type must be one of {list(DEPENDENCY_TYPES)}", f"{pp}.type")
                    if pred.get("lag") is not None and not _is_int(pred.get("lag")):
                        err("E_INVALID_TYPE", "lag must be an integer", f"{pp}.lag")

        if len(errors) != before or not isinstance(project_id, str):
            continue

        items.append(PlanItem.from_dict({**raw, "project_id": project_id}))

    if errors:
        return None, _sorted(errors)

    return (
        PlanDocument(
            schema_version=cast(str, schema_version),
            project_id=cast(str, project_id),
            items=items,
        ),
        [],
    )


def summarize_plan(doc: PlanDocument) -> str:
    live = [i for i in doc.items if not i.is_deleted]
    counts = Counter([i.item_type for i in live])
    parts = [f"{t}={counts.get(t, 0)}" for t in ITEM_TYPES]
    roots = sorted(i.id for i in live if i.parent_id is None)
    return (
        f"OK: {len(live)} items ("
        + ", ".join(parts)
        + ")\nRoots: "
        + ", ".join(roots)
    )


def _sorted(errors: Iterable[PlanValidationError]) -> list[PlanValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
