from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Literal, Mapping, Optional, cast


ItemType = Literal["component", "milestone", "deliverable", "task"]
ItemStatus = Literal["not_started", "in_progress", "completed", "on_hold", "cancelled"]
DependencyType = Literal["FS", "SS", "FF", "SF"]

ITEM_TYPES: tuple[str, ...] = ("component", "milestone", "deliverable", "task")
ITEM_STATUSES: tuple[str, ...] = ("not_started", "in_progress", "completed", "on_hold", "cancelled")
DEPENDENCY_TYPES: tuple[str, ...] = ("FS", "SS", "FF", "SF")


@dataclass(frozen=True)
class Predecessor:
    id: str
    type: DependencyType = "FS"
    lag: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Predecessor":
        return cls(
            id=str(raw["id"]),
            type=cast(DependencyType, raw.get("type") or "FS"),
            lag=int(raw.get("lag") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "lag": self.lag}


@dataclass(frozen=True)
class PlanItem:
    id: str
    project_id: str
    item_type: ItemType
    name: str

    parent_id: Optional[str] = None
    description: str = ""
    status: ItemStatus = "not_started"
    progress: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration_days: Optional[int] = None
    indent_level: int = 0
    sort_order: float = 0
    wbs: Optional[str] = None
    predecessors: tuple[Predecessor, ...] = ()
    estimate_component_id: Optional[str] = None
    is_deleted: bool = False

    # Publishing links back to the tracker entities; reset on paste.
    is_published: bool = False
    published_milestone_id: Optional[str] = None
    published_deliverable_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # Pass-through fields that are not part of the persisted entity
    # (joined estimate details, children arrays, ...).
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PlanItem":
        known = {f.name for f in fields(cls)} - {"extra"}
        values: dict[str, Any] = {}
        extra: dict[str, Any] = dict(raw.get("extra") or {})
        for k, v in raw.items():
            if k == "extra":
                continue
            if k in known:
                values[k] = v
            else:
                extra[k] = v

        values["predecessors"] = tuple(
            p if isinstance(p, Predecessor) else Predecessor.from_dict(p)
            for p in (values.get("predecessors") or [])
        )
        values["start_date"] = parse_date(values.get("start_date"))
        values["end_date"] = parse_date(values.get("end_date"))
        if values.get("description") is None:
            values["description"] = ""
        if values.get("progress") is None:
            values["progress"] = 0
        if values.get("indent_level") is None:
            values["indent_level"] = 0
        if values.get("sort_order") is None:
            values["sort_order"] = 0
        if values.get("status") is None:
            values["status"] = "not_started"
        return cls(**values, extra=extra)

    def to_dict(self, *, include_extra: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            out[f.name] = getattr(self, f.name)
        out["predecessors"] = [p.to_dict() for p in self.predecessors]
        out["start_date"] = format_date(self.start_date)
        out["end_date"] = format_date(self.end_date)
        if include_extra and self.extra:
            out.update(self.extra)
        return out

    def with_fields(self, changes: Mapping[str, Any]) -> "PlanItem":
        """Return a copy with `changes` applied (mapping form, as sent to a store)."""
        return PlanItem.from_dict({**self.to_dict(), "extra": self.extra, **changes})

    def has_predecessor(self, predecessor_id: str) -> bool:
        return any(p.id == predecessor_id for p in self.predecessors)


def parse_date(v: Any) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def format_date(v: Optional[date]) -> Optional[str]:
    return v.isoformat() if v is not None else None


def structural_fields(item: PlanItem) -> dict[str, Any]:
    """The fields a structural mutation may touch, in store (mapping) form."""
    return {
        "parent_id": item.parent_id,
        "item_type": item.item_type,
        "indent_level": item.indent_level,
        "sort_order": item.sort_order,
    }
