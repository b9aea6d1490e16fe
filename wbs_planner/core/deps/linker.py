from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal

from wbs_planner.core.deps.cycles import CycleDetector
from wbs_planner.core.errors import PlanValidationError
from wbs_planner.core.model import DependencyType, PlanItem, Predecessor


LinkStrategy = Literal["chain", "fan-in", "fan-out", "unlink", "clear"]

LINK_STRATEGIES: tuple[str, ...] = ("chain", "fan-in", "fan-out", "unlink", "clear")


@dataclass(frozen=True)
class SkippedLink:
    successor_id: str
    predecessor_id: str
    reason: str


@dataclass
class LinkResult:
    """Outcome of a linking strategy, before anything is persisted.

    `updates` maps item id -> its full new predecessor list; only items whose
    list actually changes are present.
    """

    strategy: str
    updates: dict[str, tuple[Predecessor, ...]] = field(default_factory=dict)
    previous: dict[str, tuple[Predecessor, ...]] = field(default_factory=dict)
    linked: int = 0
    removed: int = 0
    already_linked: int = 0
    skipped: list[SkippedLink] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updates)

    def summary(self) -> str:
        if self.strategy in ("unlink", "clear"):
            if not self.removed:
                return "No dependencies to remove."
            noun = "dependency" if self.removed == 1 else "dependencies"
            return f"Removed {self.removed} {noun} from {len(self.updates)} item(s)."

        if not self.linked and not self.skipped:
            return "All selected items are already linked."

        parts = [f"Linked {self.linked} dependenc{'y' if self.linked == 1 else 'ies'}"]
        if self.already_linked:
            parts.append(f"{self.already_linked} already linked")
        for s in self.skipped:
            parts.append(f"skipped {s.predecessor_id} -> {s.successor_id}: {s.reason}")
        return parts[0] + (" (" + "; ".join(parts[1:]) + ")" if len(parts) > 1 else "") + "."


class DependencyLinker:
    """Bulk predecessor linking over a selection of items."""

    def __init__(
        self,
        items: Iterable[PlanItem],
        *,
        default_type: DependencyType = "FS",
    ) -> None:
        self._items: dict[str, PlanItem] = {i.id: i for i in items if not i.is_deleted}
        self._default_type: DependencyType = default_type

    def ordered_selection(self, selected_ids: Iterable[str]) -> list[PlanItem]:
        out: list[PlanItem] = []
        seen: set[str] = set()
        for sid in selected_ids:
            if sid in seen:
                continue
            seen.add(sid)
            item = self._items.get(sid)
            if item is None:
                raise PlanValidationError(
                    code="E_UNKNOWN_ITEM",
                    message=f"Item not found: {sid}",
                    path=sid,
                )
            out.append(item)
        return sorted(out, key=lambda i: i.sort_order)

    def apply(self, strategy: str, selected_ids: Iterable[str]) -> LinkResult:
        if strategy == "chain":
            return self.link_chain(selected_ids)
        if strategy == "fan-in":
            return self.link_fan_in(selected_ids)
        if strategy == "fan-out":
            return self.link_fan_out(selected_ids)
        if strategy == "unlink":
            return self.unlink_selected(selected_ids)
        if strategy == "clear":
            return self.clear_predecessors(selected_ids)
        raise PlanValidationError(
            code="E_LINK_UNKNOWN_STRATEGY",
            message=f"unknown strategy: {strategy} (choose one of: {', '.join(LINK_STRATEGIES)})",
            path="strategy",
        )

    def link_chain(self, selected_ids: Iterable[str]) -> LinkResult:
        sel = self._require_selection(selected_ids, minimum=2)
        pairs = [(sel[i].id, sel[i - 1].id) for i in range(1, len(sel))]
        return self._link_pairs("chain", pairs)

    def link_fan_in(self, selected_ids: Iterable[str]) -> LinkResult:
        sel = self._require_selection(selected_ids, minimum=2)
        last = sel[-1]
        pairs = [(last.id, other.id) for other in sel[:-1]]
        return self._link_pairs("fan-in", pairs)

    def link_fan_out(self, selected_ids: Iterable[str]) -> LinkResult:
        sel = self._require_selection(selected_ids, minimum=2)
        first = sel[0]
        pairs = [(other.id, first.id) for other in sel[1:]]
        return self._link_pairs("fan-out", pairs)

    def unlink_selected(self, selected_ids: Iterable[str]) -> LinkResult:
        sel = self._require_selection(selected_ids, minimum=2)
        ids = {i.id for i in sel}
        result = LinkResult(strategy="unlink")
        for item in sel:
            kept = tuple(p for p in item.predecessors if p.id not in ids)
            if len(kept) != len(item.predecessors):
                result.previous[item.id] = item.predecessors
                result.updates[item.id] = kept
                result.removed += len(item.predecessors) - len(kept)
        return result

    def clear_predecessors(self, selected_ids: Iterable[str]) -> LinkResult:
        sel = self._require_selection(selected_ids, minimum=1)
        result = LinkResult(strategy="clear")
        for item in sel:
            if item.predecessors:
                result.previous[item.id] = item.predecessors
                result.updates[item.id] = ()
                result.removed += len(item.predecessors)
        return result

    def _require_selection(self, selected_ids: Iterable[str], *, minimum: int) -> list[PlanItem]:
        sel = self.ordered_selection(selected_ids)
        if not sel:
            raise PlanValidationError(code="E_NOTHING_SELECTED", message="No items selected.")
        if len(sel) < minimum:
            raise PlanValidationError(
                code="E_SELECTION_TOO_SMALL",
                message=f"Select at least {minimum} items.",
            )
        return sel

    def _link_pairs(self, strategy: str, pairs: list[tuple[str, str]]) -> LinkResult:
        detector = CycleDetector(self._items.values())
        result = LinkResult(strategy=strategy)
        current: dict[str, tuple[Predecessor, ...]] = {}

        for successor_id, predecessor_id in pairs:
            preds = current.get(successor_id, self._items[successor_id].predecessors)
            if any(p.id == predecessor_id for p in preds):
                result.already_linked += 1
                continue
            if detector.would_create_cycle(successor_id, predecessor_id):
                result.skipped.append(
                    SkippedLink(
                        successor_id=successor_id,
                        predecessor_id=predecessor_id,
                        reason="would create a circular dependency",
                    )
                )
                continue
            detector.add_edge(successor_id, predecessor_id)
            current[successor_id] = preds + (
                Predecessor(id=predecessor_id, type=self._default_type, lag=0),
            )
            result.linked += 1

        for item_id, preds in current.items():
            result.previous[item_id] = self._items[item_id].predecessors
            result.updates[item_id] = preds
        return result
