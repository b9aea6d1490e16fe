from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from wbs_planner.core.model import PlanItem


class PlanStore(Protocol):
    """Persistence collaborator consumed by PlanningSession.

    Implementations raise PlanPersistenceError on failure.
    """

    async def fetch_all(self, project_id: str) -> list[PlanItem]: ...

    async def create_item(self, item: PlanItem) -> PlanItem: ...

    async def create_batch(self, project_id: str, items: Sequence[PlanItem]) -> list[PlanItem]: ...

    async def update_item(self, item_id: str, fields: Mapping[str, Any]) -> PlanItem: ...

    async def soft_delete_batch(self, item_ids: Sequence[str]) -> None: ...

    async def recalculate_wbs(self, project_id: str) -> None: ...

    async def restore(self, item_ids: Sequence[str]) -> None: ...


def next_sort_order(
    items: Sequence[PlanItem], parent_id: Optional[str], step: float = 100
) -> float:
    """sort_order that appends after the last live sibling under `parent_id`."""
    orders = [i.sort_order for i in items if i.parent_id == parent_id and not i.is_deleted]
    return (max(orders) + step) if orders else step
