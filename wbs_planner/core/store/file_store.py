from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from wbs_planner.core.errors import PlanPersistenceError, PlanValidationError
from wbs_planner.core.io.load_plan import dump_plan_yaml, load_plan
from wbs_planner.core.model import PlanItem
from wbs_planner.core.store.memory_store import InMemoryPlanStore
from wbs_planner.core.validate.validate_plan import validate_plan


logger = logging.getLogger(__name__)


class YamlPlanStore(InMemoryPlanStore):
    """In-memory store written back to its plan file after every write."""

    def __init__(
        self,
        path: str | Path,
        *,
        schema_version: str,
        project_id: str,
        items: Sequence[PlanItem] = (),
    ) -> None:
        super().__init__(items)
        self.path = Path(path)
        self.schema_version = schema_version
        self.project_id = project_id

    @classmethod
    def open(cls, path: str | Path) -> "YamlPlanStore":
        """Load and validate a plan file.

        Raises PlanLoadError, or the first PlanValidationError found.
        """
        plan = load_plan(str(path))
        doc, errors = validate_plan(plan)
        if errors:
            raise errors[0]
        if doc is None:  # pragma: no cover
            raise PlanValidationError(code="E_INVALID_PLAN", message="plan did not validate", file=str(path))
        return cls(
            path,
            schema_version=doc.schema_version,
            project_id=doc.project_id,
            items=doc.items,
        )

    def to_plan(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "project_id": self.project_id,
            "items": [_item_record(i) for i in self.all_items()],
        }

    def flush(self) -> None:
        try:
            dump_plan_yaml(self.to_plan(), str(self.path))
        except OSError as e:
            raise PlanPersistenceError(code="E_WRITE_FAILED", message=str(e), file=str(self.path)) from e
        logger.debug("wrote %s", self.path)

    async def create_item(self, item: PlanItem) -> PlanItem:
        created = await super().create_item(item)
        self.flush()
        return created

    async def create_batch(self, project_id: str, items: Sequence[PlanItem]) -> list[PlanItem]:
        created = await super().create_batch(project_id, items)
        self.flush()
        return created

    async def update_item(self, item_id: str, fields: Mapping[str, Any]) -> PlanItem:
        updated = await super().update_item(item_id, fields)
        self.flush()
        return updated

    async def soft_delete_batch(self, item_ids: Sequence[str]) -> None:
        await super().soft_delete_batch(item_ids)
        self.flush()

    async def restore(self, item_ids: Sequence[str]) -> None:
        await super().restore(item_ids)
        self.flush()

    async def recalculate_wbs(self, project_id: str) -> None:
        await super().recalculate_wbs(project_id)
        self.flush()


def _item_record(item: PlanItem) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in item.to_dict(include_extra=True).items():
        if v is None or (k == "predecessors" and not v):
            continue
        if k == "is_deleted" and not v:
            continue
        if k == "is_published" and not v:
            continue
        out[k] = v
    return out
