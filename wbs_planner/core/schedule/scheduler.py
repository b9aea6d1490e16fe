from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from wbs_planner.core.model import PlanItem, format_date


# Dependency types:
# - FS (finish-to-start): successor starts the day after the predecessor finishes
# - SS (start-to-start): successor starts when the predecessor starts
# - FF (finish-to-finish): successor finishes when the predecessor finishes
# - SF (start-to-finish): successor finishes when the predecessor starts
# Lag shifts the computed date by that many days (negative = lead).


@dataclass(frozen=True)
class ScheduleUpdate:
    id: str
    start_date: date
    end_date: date

    def to_fields(self) -> dict[str, Any]:
        return {"start_date": format_date(self.start_date), "end_date": format_date(self.end_date)}


def add_days(d: date, days: int, skip_weekends: bool = False) -> date:
    if not skip_weekends:
        return d + timedelta(days=days)

    remaining = abs(days)
    step = timedelta(days=1 if days >= 0 else -1)
    out = d
    while remaining > 0:
        out = out + step
        if out.weekday() < 5:
            remaining -= 1
    return out


def get_duration(start: Optional[date], end: Optional[date]) -> int:
    """Calendar days from start to end (0 when either is missing)."""
    if start is None or end is None:
        return 0
    return (end - start).days


def _span(item: PlanItem) -> int:
    span = get_duration(item.start_date, item.end_date)
    if span <= 0 and item.duration_days:
        return item.duration_days - 1
    return span


def earliest_start(
    item: PlanItem, by_id: dict[str, PlanItem], skip_weekends: bool = False
) -> Optional[date]:
    if not item.predecessors:
        return item.start_date

    best: Optional[date] = None
    for pred in item.predecessors:
        other = by_id.get(pred.id)
        if other is None:
            continue
        candidate: Optional[date] = None
        if pred.type == "FS" and other.end_date:
            candidate = add_days(other.end_date, 1 + pred.lag, skip_weekends)
        elif pred.type == "SS" and other.start_date:
            candidate = add_days(other.start_date, pred.lag, skip_weekends)
        elif pred.type == "FF" and other.end_date:
            duration = get_duration(item.start_date, item.end_date) or 1
            candidate = add_days(other.end_date, pred.lag - duration + 1, skip_weekends)
        elif pred.type == "SF" and other.start_date:
            duration = get_duration(item.start_date, item.end_date) or 1
            candidate = add_days(other.start_date, pred.lag - duration + 1, skip_weekends)
        if candidate is not None and (best is None or candidate > best):
            best = candidate
    return best


def end_for(start: date, item: PlanItem, skip_weekends: bool = False) -> date:
    """End date keeping the item's original span."""
    span = _span(item)
    if span <= 0:
        return start
    return add_days(start, span, skip_weekends)


def topological_order(items: Iterable[PlanItem]) -> list[PlanItem]:
    """Predecessors before successors; input order otherwise.

    Cycles do not loop: each item is emitted once.
    """
    items = list(items)
    by_id = {i.id: i for i in items}
    visited: set[str] = set()
    out: list[PlanItem] = []

    for start in items:
        if start.id in visited:
            continue
        visited.add(start.id)
        stack: list[tuple[PlanItem, list[str]]] = [
            (start, [p.id for p in reversed(start.predecessors)])
        ]
        while stack:
            node, pending = stack[-1]
            if pending:
                pid = pending.pop()
                pred = by_id.get(pid)
                if pred is None or pid in visited:
                    continue
                visited.add(pid)
                stack.append((pred, [p.id for p in reversed(pred.predecessors)]))
                continue
            stack.pop()
            out.append(node)
    return out


def auto_schedule_items(
    items: Iterable[PlanItem],
    *,
    skip_weekends: bool = False,
    project_start_date: Optional[date] = None,
) -> list[ScheduleUpdate]:
    """Shift items to their earliest start given their predecessors.

    Items without predecessors keep their dates; undated ones start at
    `project_start_date` when given. Only changed items are returned.
    """
    live = [i for i in items if not i.is_deleted]
    by_id = {i.id: i for i in live}
    updates: list[ScheduleUpdate] = []

    for original in topological_order(live):
        item = by_id[original.id]
        if not item.predecessors and item.start_date:
            continue

        start = earliest_start(item, by_id, skip_weekends)
        if start is None and project_start_date is not None:
            start = project_start_date
        if start is None:
            continue

        end = end_for(start, item, skip_weekends)
        if start != item.start_date or end != item.end_date:
            by_id[item.id] = replace(item, start_date=start, end_date=end)
            updates.append(ScheduleUpdate(id=item.id, start_date=start, end_date=end))
    return updates


def preview_schedule(
    item: PlanItem, items: Iterable[PlanItem], *, skip_weekends: bool = False
) -> Optional[ScheduleUpdate]:
    by_id = {i.id: i for i in items}
    start = earliest_start(item, by_id, skip_weekends)
    if start is None:
        return None
    return ScheduleUpdate(id=item.id, start_date=start, end_date=end_for(start, item, skip_weekends))


def validate_predecessors(item: PlanItem, items: Iterable[PlanItem]) -> list[str]:
    by_id = {i.id: i for i in items}
    errors: list[str] = []
    for pred in item.predecessors:
        other = by_id.get(pred.id)
        if other is None:
            errors.append(f"Predecessor {pred.id} not found")
            continue
        if pred.type in ("FS", "FF") and other.end_date is None:
            errors.append(f'Predecessor "{other.name}" needs an end date for {pred.type} dependency')
        if pred.type in ("SS", "SF") and other.start_date is None:
            errors.append(f'Predecessor "{other.name}" needs a start date for {pred.type} dependency')
    return errors
