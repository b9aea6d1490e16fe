from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from wbs_planner.core.clipboard.clipboard import ClipboardManager
from wbs_planner.core.config.settings import PlannerSettings
from wbs_planner.core.deps.cycles import CycleDetector
from wbs_planner.core.deps.linker import DependencyLinker
from wbs_planner.core.errors import PlanError, PlanPersistenceError, PlanValidationError
from wbs_planner.core.hierarchy.rules import describe_parent, is_valid_parent
from wbs_planner.core.history.history import HistoryEntry, HistoryManager
from wbs_planner.core.model import ITEM_STATUSES, ITEM_TYPES, PlanItem, Predecessor
from wbs_planner.core.mutate.mutator import HierarchyMutator, StructureChange
from wbs_planner.core.schedule.scheduler import auto_schedule_items
from wbs_planner.core.store.base import PlanStore, next_sort_order
from wbs_planner.core.templates.structure import (
    StructureNode,
    check_structure,
    count_items,
    flatten_structure,
)
from wbs_planner.core.tree.tree_index import TreeIndex


logger = logging.getLogger(__name__)

# Moved only through move/drop/promote/demote.
STRUCTURAL_FIELDS = frozenset({"id", "project_id", "parent_id", "item_type", "indent_level", "sort_order"})

# Maintained by the session and store; never written by callers.
SYSTEM_FIELDS = frozenset(
    {
        "is_deleted",
        "wbs",
        "created_at",
        "updated_at",
        "is_published",
        "published_milestone_id",
        "published_deliverable_id",
    }
)

_DONE_MESSAGES = {
    "move": "Moved {n} item(s).",
    "promote": "Item promoted.",
    "demote": "Item demoted.",
}


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one session operation.

    `message` is user-facing; `details` carries ids and counts for callers.
    """

    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


def _new_id() -> str:
    return str(uuid.uuid4())


def _as_predecessors(raw: Iterable[Any]) -> list[Predecessor]:
    return [p if isinstance(p, Predecessor) else Predecessor.from_dict(p) for p in raw]


class PlanningSession:
    """One editing session over a project's plan items.

    Every mutating entry point validates, then persists through the store,
    then records history, then re-fetches the authoritative item list.
    """

    def __init__(
        self,
        store: PlanStore,
        project_id: str,
        *,
        settings: Optional[PlannerSettings] = None,
        clipboard: Optional[ClipboardManager] = None,
        history: Optional[HistoryManager] = None,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._store = store
        self._project_id = project_id
        self._settings = settings or PlannerSettings()
        self._clipboard = clipboard or ClipboardManager(copy_suffix=self._settings.copy_suffix)
        self._history = history or HistoryManager(self._settings.history_capacity)
        self._id_factory = id_factory
        self._items: list[PlanItem] = []
        self._tree = TreeIndex([])

    # ------------------------------------------------------------ queries

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def settings(self) -> PlannerSettings:
        return self._settings

    @property
    def clipboard(self) -> ClipboardManager:
        return self._clipboard

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def items(self) -> list[PlanItem]:
        return list(self._items)

    @property
    def tree(self) -> TreeIndex:
        return self._tree

    def get(self, item_id: str) -> Optional[PlanItem]:
        return self._tree.get(item_id)

    def visible_items(self, collapsed_ids: Iterable[str] = ()) -> list[PlanItem]:
        return list(self._tree.visible_items(collapsed_ids))

    async def refresh(self) -> list[PlanItem]:
        items = await self._store.fetch_all(self._project_id)
        self._items = [i for i in items if not i.is_deleted]
        self._tree = TreeIndex(self._items)
        return list(self._items)

    # ----------------------------------------------------- create / update

    async def create_item(
        self,
        item_type: str,
        name: str,
        parent_id: Optional[str] = None,
        **fields: Any,
    ) -> OperationResult:
        try:
            item = self._new_item(item_type, name, parent_id, fields)
        except PlanValidationError as e:
            return self._rejected("create", e)

        try:
            created = await self._store.create_item(item)
            await self._store.recalculate_wbs(self._project_id)
        except PlanPersistenceError as e:
            return await self._failed("create", e)

        self._history.push("create", {"id": created.id})
        await self._resync()
        logger.info("create ok: %s %s", created.item_type, created.id)
        return OperationResult(True, f"Created {created.item_type} \"{created.name}\".", {"id": created.id})

    async def update_item(self, item_id: str, changes: Mapping[str, Any]) -> OperationResult:
        try:
            current = self._require(item_id)
            self._check_update(current, changes)
            proposed = current.with_fields(changes)
        except PlanValidationError as e:
            return self._rejected("update", e)
        except (TypeError, ValueError) as e:
            return self._rejected(
                "update", PlanValidationError(code="E_INVALID_FIELDS", message=str(e), path=item_id)
            )

        before = current.to_dict(include_extra=True)
        after = proposed.to_dict(include_extra=True)
        previous_values = {k: before.get(k) for k in changes}
        new_values = {k: after.get(k) for k in changes}
        if previous_values == new_values:
            return OperationResult(True, "No changes.", {"id": item_id})

        try:
            await self._store.update_item(item_id, dict(changes))
        except PlanPersistenceError as e:
            return await self._failed("update", e)

        self._history.push(
            "update", {"id": item_id, "previous_values": previous_values, "new_values": new_values}
        )
        await self._resync()
        logger.info("update ok: %s fields=%s", item_id, sorted(changes))
        return OperationResult(True, "Item updated.", {"id": item_id})

    # ------------------------------------------------------------- delete

    async def delete_items(self, item_ids: Sequence[str]) -> OperationResult:
        try:
            selected = self._selection(item_ids)
        except PlanValidationError as e:
            return self._rejected("delete", e)

        ids: list[str] = []
        for item in selected:
            for i in [item.id] + [d.id for d in self._tree.descendants(item.id)]:
                if i not in ids:
                    ids.append(i)

        try:
            await self._store.soft_delete_batch(ids)
            await self._store.recalculate_wbs(self._project_id)
        except PlanPersistenceError as e:
            return await self._failed("delete", e)

        action = "delete" if len(selected) == 1 else "batch_delete"
        self._history.push(action, {"ids": ids})
        await self._resync()
        logger.info("%s ok: %d item(s)", action, len(ids))
        return OperationResult(True, f"Deleted {len(ids)} item(s).", {"ids": ids})

    # ------------------------------------------------------- structure

    async def move_item(
        self, item_id: str, new_parent_id: Optional[str], new_sort_order: float
    ) -> OperationResult:
        try:
            change = self._mutator().move(item_id, new_parent_id, new_sort_order)
        except PlanValidationError as e:
            return self._rejected("move", e)
        return await self._commit_structure(change)

    async def drop_items(
        self, selected_ids: Sequence[str], target_id: str, position: str
    ) -> OperationResult:
        try:
            change = self._mutator().plan_drop(selected_ids, target_id, position)
        except PlanValidationError as e:
            return self._rejected("move", e)
        return await self._commit_structure(change)

    async def promote(self, item_id: str) -> OperationResult:
        try:
            change = self._mutator().promote(item_id)
        except PlanValidationError as e:
            return self._rejected("promote", e)
        return await self._commit_structure(change)

    async def demote(self, item_id: str) -> OperationResult:
        try:
            change = self._mutator().demote(item_id)
        except PlanValidationError as e:
            return self._rejected("demote", e)
        return await self._commit_structure(change)

    # ---------------------------------------------------------- clipboard

    def copy(self, item_ids: Sequence[str]) -> OperationResult:
        return self._capture(item_ids, is_cut=False)

    def cut(self, item_ids: Sequence[str]) -> OperationResult:
        return self._capture(item_ids, is_cut=True)

    async def paste(self, target_id: Optional[str] = None) -> OperationResult:
        try:
            target = self._require(target_id) if target_id is not None else None
            verdict = self._clipboard.validate_paste(target)
            if not verdict.valid:
                raise PlanValidationError(code="E_INVALID_PASTE", message=verdict.error or "Cannot paste here.")
            cut = self._clipboard.is_cut_operation()
            sources = set(self._clipboard.get_source_ids())
            if cut and target is not None and target.id in sources:
                raise PlanValidationError(
                    code="E_PASTE_INTO_CUT",
                    message="Cannot paste cut items into themselves.",
                    path=target.id,
                )
        except PlanValidationError as e:
            return self._rejected("paste", e)

        start = next_sort_order(self._items, target_id, self._settings.sort_order_step)
        prepared = self._clipboard.prepare_for_paste(
            self._project_id,
            target_id,
            start,
            base_indent_level=target.indent_level + 1 if target else 0,
        )
        assert prepared is not None
        cut_ids = [i for i in self._clipboard.get_source_ids() if i in self._tree] if cut else []
        relinked: list[dict[str, Any]] = []
        if cut:
            id_map = self._clipboard.id_map
            live = {i.id for i in self._items if i.id not in id_map} | set(id_map.values())
            prepared = [
                replace(item, predecessors=tuple(p for p in item.predecessors if p.id in live))
                for item in prepared
            ]
            relinked = self._relink_successors(id_map)

        try:
            created = await self._store.create_batch(self._project_id, prepared)
            if cut_ids:
                await self._store.soft_delete_batch(cut_ids)
            for change in relinked:
                await self._store.update_item(change["id"], change["new_values"])
            await self._store.recalculate_wbs(self._project_id)
        except PlanPersistenceError as e:
            return await self._failed("paste", e)

        created_ids = [c.id for c in created]
        if cut:
            self._clipboard.clear()
        self._history.push("paste", {"created_ids": created_ids, "cut_ids": cut_ids, "relinked": relinked})
        await self._resync()
        logger.info("paste ok: created=%d cut=%d relinked=%d", len(created_ids), len(cut_ids), len(relinked))
        return OperationResult(
            True,
            f"Pasted {len(created_ids)} item(s).",
            {"created_ids": created_ids, "cut_ids": cut_ids, "relinked": [c["id"] for c in relinked]},
        )

    def _relink_successors(self, id_map: Mapping[str, str]) -> list[dict[str, Any]]:
        """Point links held by items outside a cut at the pasted copies."""
        changes = []
        for item in self._items:
            if item.id in id_map or not any(p.id in id_map for p in item.predecessors):
                continue
            new_preds = [replace(p, id=id_map.get(p.id, p.id)) for p in item.predecessors]
            changes.append(
                {
                    "id": item.id,
                    "previous_values": {"predecessors": [p.to_dict() for p in item.predecessors]},
                    "new_values": {"predecessors": [p.to_dict() for p in new_preds]},
                }
            )
        return changes

    # ------------------------------------------------------- dependencies

    async def link(self, strategy: str, item_ids: Sequence[str]) -> OperationResult:
        try:
            linker = DependencyLinker(self._items, default_type=self._settings.default_dependency_type)  # type: ignore[arg-type]
            result = linker.apply(strategy, item_ids)
        except PlanValidationError as e:
            return self._rejected("link", e)

        details: dict[str, Any] = {
            "linked": result.linked,
            "removed": result.removed,
            "already_linked": result.already_linked,
            "skipped": [
                {"successor_id": s.successor_id, "predecessor_id": s.predecessor_id, "reason": s.reason}
                for s in result.skipped
            ],
        }
        if not result.changed:
            return OperationResult(True, result.summary(), details)

        changes = [
            {
                "id": item_id,
                "previous_values": {"predecessors": [p.to_dict() for p in result.previous[item_id]]},
                "new_values": {"predecessors": [p.to_dict() for p in preds]},
            }
            for item_id, preds in result.updates.items()
        ]
        return await self._commit_changes("link", changes, result.summary(), details)

    async def auto_schedule(
        self,
        *,
        skip_weekends: Optional[bool] = None,
        project_start_date: Optional[date] = None,
    ) -> OperationResult:
        skip = self._settings.skip_weekends if skip_weekends is None else skip_weekends
        updates = auto_schedule_items(self._items, skip_weekends=skip, project_start_date=project_start_date)
        if not updates:
            return OperationResult(True, "Schedule is already up to date.", {"updated": 0})

        changes = []
        for u in updates:
            before = self._tree.require(u.id).to_dict()
            changes.append(
                {
                    "id": u.id,
                    "previous_values": {"start_date": before["start_date"], "end_date": before["end_date"]},
                    "new_values": u.to_fields(),
                }
            )
        return await self._commit_changes(
            "schedule", changes, f"Rescheduled {len(changes)} item(s).", {"updated": len(changes)}
        )

    # --------------------------------------------------------- templates

    async def import_structure(
        self,
        structure: Sequence[StructureNode],
        start_date: date,
        parent_id: Optional[str] = None,
    ) -> OperationResult:
        try:
            parent = self._require_parent(parent_id)
            if count_items(structure).total == 0:
                raise PlanValidationError(code="E_EMPTY_STRUCTURE", message="Template is empty.")
            problems = check_structure(structure, parent.item_type if parent else None)
            if problems:
                raise problems[0]
        except PlanValidationError as e:
            return self._rejected("import", e)

        flat = flatten_structure(
            structure,
            self._project_id,
            start_date,
            parent_id=parent_id,
            base_sort_order=next_sort_order(self._items, parent_id, self._settings.sort_order_step),
            base_indent_level=parent.indent_level + 1 if parent else 0,
        )
        id_map = {item.id: self._id_factory() for item in flat}
        to_create = [
            replace(item, id=id_map[item.id], parent_id=id_map.get(item.parent_id, item.parent_id))  # type: ignore[arg-type]
            for item in flat
        ]

        try:
            created = await self._store.create_batch(self._project_id, to_create)
            await self._store.recalculate_wbs(self._project_id)
        except PlanPersistenceError as e:
            return await self._failed("import", e)

        created_ids = [c.id for c in created]
        self._history.push("import", {"created_ids": created_ids})
        await self._resync()
        logger.info("import ok: created=%d", len(created_ids))
        return OperationResult(True, f"Imported {len(created_ids)} item(s).", {"created_ids": created_ids})

    # ------------------------------------------------------- undo / redo

    async def undo(self) -> OperationResult:
        entry = self._history.pop_undo()
        if entry is None:
            return OperationResult(False, "Nothing to undo.")
        try:
            await self._invert(entry, forward=False)
            await self._store.recalculate_wbs(self._project_id)
        except PlanError as e:
            self._history.cancel_undo(entry)
            return await self._failed("undo", e)
        await self._resync()
        logger.info("undo ok: %s", entry.type)
        return OperationResult(True, f"Undid {entry.label}.", {"type": entry.type})

    async def redo(self) -> OperationResult:
        entry = self._history.pop_redo()
        if entry is None:
            return OperationResult(False, "Nothing to redo.")
        try:
            await self._invert(entry, forward=True)
            await self._store.recalculate_wbs(self._project_id)
        except PlanError as e:
            self._history.cancel_redo(entry)
            return await self._failed("redo", e)
        await self._resync()
        logger.info("redo ok: %s", entry.type)
        return OperationResult(True, f"Redid {entry.label}.", {"type": entry.type})

    async def _invert(self, entry: HistoryEntry, *, forward: bool) -> None:
        """Re-apply (`forward`) or revert the effect recorded in `entry`."""
        data = entry.data
        kind = entry.type

        if kind == "create":
            if forward:
                await self._store.restore([data["id"]])
            else:
                await self._store.soft_delete_batch([data["id"]])
        elif kind in ("delete", "batch_delete"):
            if forward:
                await self._store.soft_delete_batch(data["ids"])
            else:
                await self._store.restore(data["ids"])
        elif kind in ("paste", "import"):
            created = data["created_ids"]
            cut_ids = data.get("cut_ids") or []
            key = "new_values" if forward else "previous_values"
            if forward:
                await self._store.restore(created)
                if cut_ids:
                    await self._store.soft_delete_batch(cut_ids)
            else:
                await self._store.soft_delete_batch(created)
                if cut_ids:
                    await self._store.restore(cut_ids)
            for change in data.get("relinked") or []:
                await self._store.update_item(change["id"], change[key])
        elif kind == "update":
            changes = data.get("changes")
            if changes is None:
                changes = [data]
            key = "new_values" if forward else "previous_values"
            for change in changes:
                await self._store.update_item(change["id"], change[key])
        elif kind in ("promote", "demote"):
            side = "new" if forward else "previous"
            await self._store.update_item(
                data["id"],
                {
                    "parent_id": data[f"{side}_parent_id"],
                    "item_type": data[f"{side}_type"],
                    "indent_level": data[f"{side}_indent"],
                    "sort_order": data[f"{side}_sort_order"],
                },
            )
            key = "new_values" if forward else "previous_values"
            for change in data.get("descendants") or []:
                await self._store.update_item(change["id"], change[key])
        elif kind == "move":
            states = data["new_states"] if forward else data["previous_states"]
            for state in states:
                await self._store.update_item(state["id"], {k: v for k, v in state.items() if k != "id"})
        else:
            raise PlanValidationError(
                code="E_UNKNOWN_ACTION", message=f"cannot replay action type: {kind}"
            )

    # ------------------------------------------------------------ helpers

    def _mutator(self) -> HierarchyMutator:
        return HierarchyMutator(self._tree, sort_order_step=self._settings.sort_order_step)

    async def _commit_structure(self, change: StructureChange) -> OperationResult:
        details: dict[str, Any] = {
            "item_ids": list(change.item_ids),
            "new_parent_id": change.new_parent_id,
            "changed": len(change.changes),
        }
        if not change.changes:
            return OperationResult(True, "Nothing to change.", details)

        try:
            for c in change.changes:
                await self._store.update_item(c.id, c.new_values)
            await self._store.recalculate_wbs(self._project_id)
        except PlanPersistenceError as e:
            return await self._failed(change.action, e)

        self._history.push(change.action, change.history_data())
        await self._resync()
        logger.info("%s ok: %s (%d updated)", change.action, ",".join(change.item_ids), len(change.changes))
        return OperationResult(True, _DONE_MESSAGES[change.action].format(n=len(change.item_ids)), details)

    async def _commit_changes(
        self,
        action: str,
        changes: list[dict[str, Any]],
        message: str,
        details: dict[str, Any],
    ) -> OperationResult:
        """Apply per-item field changes one by one, recorded as one "update".

        On a store failure the committed prefix is still recorded so it can be
        undone.
        """
        committed: list[dict[str, Any]] = []
        try:
            for change in changes:
                await self._store.update_item(change["id"], change["new_values"])
                committed.append(change)
            await self._store.recalculate_wbs(self._project_id)
        except PlanPersistenceError as e:
            if committed:
                self._history.push("update", {"changes": committed})
            result = await self._failed(action, e)
            return replace(result, details={**result.details, "committed": len(committed)})

        self._history.push("update", {"changes": committed})
        await self._resync()
        logger.info("%s ok: %d item(s) updated", action, len(committed))
        return OperationResult(True, message, {**details, "committed": len(committed)})

    def _capture(self, item_ids: Sequence[str], *, is_cut: bool) -> OperationResult:
        action = "cut" if is_cut else "copy"
        try:
            selected = self._selection(item_ids)
        except PlanValidationError as e:
            return self._rejected(action, e)
        count = self._clipboard.copy(selected, self._items, is_cut=is_cut)
        verb = "Cut" if is_cut else "Copied"
        return OperationResult(True, f"{verb} {count} item(s).", {"count": count})

    def _new_item(
        self,
        item_type: str,
        name: str,
        parent_id: Optional[str],
        fields: Mapping[str, Any],
    ) -> PlanItem:
        if item_type not in ITEM_TYPES:
            raise PlanValidationError(
                code="E_INVALID_ENUM",
                message=f"item_type must be one of {list(ITEM_TYPES)}",
                path="item_type",
            )
        blocked = STRUCTURAL_FIELDS.intersection(fields)
        if blocked:
            raise PlanValidationError(
                code="E_STRUCTURAL_FIELD",
                message=f"cannot set {', '.join(sorted(blocked))} on create",
            )
        self._check_system_fields(fields, None)
        self._check_fields({**fields, "name": name}, None)

        parent = self._require_parent(parent_id)
        parent_type = parent.item_type if parent else None
        if not is_valid_parent(item_type, parent_type):
            raise PlanValidationError(
                code="E_INVALID_PARENT",
                message=f"A {item_type} cannot be placed under {describe_parent(parent_type)}.",
                path=parent_id,
            )
        raw = {
            **fields,
            "id": "",
            "project_id": self._project_id,
            "item_type": item_type,
            "name": name,
            "parent_id": parent_id,
            "indent_level": parent.indent_level + 1 if parent else 0,
            "sort_order": next_sort_order(self._items, parent_id, self._settings.sort_order_step),
        }
        if fields.get("predecessors"):
            self._check_predecessors("", _as_predecessors(fields["predecessors"]))
        try:
            return PlanItem.from_dict(raw)
        except (TypeError, ValueError) as e:
            raise PlanValidationError(code="E_INVALID_FIELDS", message=str(e)) from e

    def _check_update(self, current: PlanItem, changes: Mapping[str, Any]) -> None:
        if not changes:
            raise PlanValidationError(code="E_NOTHING_TO_UPDATE", message="No fields to update.", path=current.id)
        blocked = STRUCTURAL_FIELDS.intersection(changes)
        if blocked:
            raise PlanValidationError(
                code="E_STRUCTURAL_FIELD",
                message=f"use move, promote or demote to change {', '.join(sorted(blocked))}",
                path=current.id,
            )
        self._check_system_fields(changes, current.id)
        self._check_fields(changes, current.id)
        if "predecessors" in changes:
            self._check_predecessors(current.id, _as_predecessors(changes["predecessors"] or []))

    @staticmethod
    def _check_system_fields(fields: Mapping[str, Any], item_id: Optional[str]) -> None:
        blocked = SYSTEM_FIELDS.intersection(fields)
        if blocked:
            hint = " (use delete and undo)" if "is_deleted" in blocked else ""
            raise PlanValidationError(
                code="E_READONLY_FIELD",
                message=f"{', '.join(sorted(blocked))} cannot be set directly{hint}",
                path=item_id,
            )

    @staticmethod
    def _check_fields(fields: Mapping[str, Any], item_id: Optional[str]) -> None:
        """Value rules shared by create and update; only keys present are checked."""
        if "name" in fields and (not isinstance(fields["name"], str) or not fields["name"].strip()):
            raise PlanValidationError(code="E_REQUIRED_FIELD", message="Name is required.", path=item_id or "name")
        if "status" in fields and fields["status"] not in ITEM_STATUSES:
            raise PlanValidationError(
                code="E_INVALID_ENUM",
                message=f"status must be one of {list(ITEM_STATUSES)}",
                path=item_id or "status",
            )
        progress = fields.get("progress")
        if progress is not None and (not isinstance(progress, int) or isinstance(progress, bool) or not 0 <= progress <= 100):
            raise PlanValidationError(
                code="E_INVALID_PROGRESS", message="Progress must be between 0 and 100.", path=item_id or "progress"
            )
        duration = fields.get("duration_days")
        if duration is not None and (not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0):
            raise PlanValidationError(
                code="E_INVALID_TYPE",
                message="duration_days must be a positive integer",
                path=item_id or "duration_days",
            )

    def _check_predecessors(self, item_id: str, preds: Sequence[Predecessor]) -> None:
        others = [i for i in self._items if i.id != item_id]
        detector = CycleDetector(others)
        for pred in preds:
            if pred.id not in self._tree:
                raise PlanValidationError(
                    code="E_UNKNOWN_PREDECESSOR",
                    message=f"Predecessor not found: {pred.id}",
                    path=item_id or None,
                )
            if item_id and detector.would_create_cycle(item_id, pred.id):
                raise PlanValidationError(
                    code="E_CYCLE_DETECTED",
                    message="Adding this dependency would create a circular dependency.",
                    path=item_id,
                )
            if item_id:
                detector.add_edge(item_id, pred.id)

    def _selection(self, item_ids: Sequence[str]) -> list[PlanItem]:
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            raise PlanValidationError(code="E_NOTHING_SELECTED", message="No items selected.")
        return [self._require(i) for i in ids]

    def _require(self, item_id: str) -> PlanItem:
        item = self._tree.get(item_id)
        if item is None:
            raise PlanValidationError(code="E_UNKNOWN_ITEM", message=f"Item not found: {item_id}", path=item_id)
        return item

    def _require_parent(self, parent_id: Optional[str]) -> Optional[PlanItem]:
        if parent_id is None:
            return None
        parent = self._tree.get(parent_id)
        if parent is None:
            raise PlanValidationError(
                code="E_UNKNOWN_PARENT", message=f"Parent not found: {parent_id}", path=parent_id
            )
        return parent

    def _rejected(self, action: str, error: PlanValidationError) -> OperationResult:
        logger.warning("%s rejected: %s", action, error)
        return OperationResult(False, error.message, {"code": error.code})

    async def _failed(self, action: str, error: PlanError) -> OperationResult:
        logger.exception("%s failed: %s", action, error)
        await self._resync()
        return OperationResult(False, f"Could not {action}: {error.message}", {"code": error.code})

    async def _resync(self) -> None:
        try:
            await self.refresh()
        except PlanPersistenceError:
            logger.exception("re-fetch failed for project %s", self._project_id)
