import itertools

from wbs_planner.core.clipboard.clipboard import ClipboardManager
from wbs_planner.core.model import PlanItem, Predecessor


def _clipboard():
    counter = itertools.count(1)
    return ClipboardManager(id_factory=lambda: f"new-{next(counter)}")


def _plan():
    a = PlanItem(
        id="A",
        project_id="p",
        item_type="milestone",
        name="Milestone A",
        indent_level=0,
        sort_order=100,
        progress=50,
        status="in_progress",
        wbs="1",
        is_published=True,
        published_milestone_id="pub-1",
        estimate_component_id="est-1",
        created_at="2025-01-01T00:00:00Z",
        extra={"children": ["B"], "estimate_component": {"id": "est-1"}, "owner": "sam"},
    )
    b = PlanItem(
        id="B",
        project_id="p",
        item_type="deliverable",
        name="Deliverable B",
        parent_id="A",
        indent_level=1,
        sort_order=100,
        progress=20,
        predecessors=(Predecessor(id="C"), Predecessor(id="X")),
    )
    c = PlanItem(
        id="C",
        project_id="p",
        item_type="task",
        name="Task C",
        parent_id="B",
        indent_level=2,
        sort_order=100,
        status="completed",
    )
    x = PlanItem(id="X", project_id="p", item_type="milestone", name="Other", sort_order=200)
    comp = PlanItem(id="K", project_id="p", item_type="component", name="Component", sort_order=300)
    return [a, b, c, x, comp]


def test_copy_and_paste_milestone_with_descendants_at_root():
    items = _plan()
    cb = _clipboard()
    assert cb.copy([items[0]], items) == 3
    assert cb.validate_paste(None).valid

    pasted = cb.prepare_for_paste("p", None, 100)
    assert pasted is not None
    assert len(pasted) == 3
    a, b, c = pasted
    assert a.name == "Milestone A (Copy)"
    assert b.name == "Deliverable B"
    assert c.name == "Task C"
    assert a.parent_id is None
    assert b.parent_id == a.id
    assert c.parent_id == b.id
    assert all(i.progress == 0 and i.status == "not_started" for i in pasted)
    assert [i.sort_order for i in pasted] == [100, 101, 102]


def test_paste_resets_derived_fields_and_strips_joined_fields():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[0]], items)
    a = cb.prepare_for_paste("p2", None, 10)[0]
    assert a.project_id == "p2"
    assert a.wbs is None
    assert a.is_published is False
    assert a.published_milestone_id is None
    assert a.estimate_component_id is None
    assert a.created_at is None
    assert a.extra == {"owner": "sam"}


def test_paste_round_trip_properties():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[1]], items)
    pasted = cb.prepare_for_paste("p", "X", 500, base_indent_level=1)
    produced = {i.id for i in pasted}
    assert len(pasted) == 2
    assert not produced & {"A", "B", "C", "X", "K"}
    for item in pasted:
        assert item.parent_id in produced or item.parent_id == "X"
    assert [i.indent_level for i in pasted] == [1, 2]


def test_internal_predecessors_follow_the_copy():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[1]], items)
    b, c = cb.prepare_for_paste("p", "X", 500)
    assert [p.id for p in b.predecessors] == [c.id]


def test_cut_keeps_links_to_items_outside_the_selection():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[1]], items, is_cut=True)
    b, c = cb.prepare_for_paste("p", "X", 500)
    assert [p.id for p in b.predecessors] == [c.id, "X"]
    assert cb.id_map == {"B": b.id, "C": c.id}


def test_copy_of_parent_and_child_captures_closure_once():
    items = _plan()
    cb = _clipboard()
    assert cb.copy([items[0], items[1]], items) == 3
    assert sorted(cb.get_source_ids()) == ["A", "B", "C"]


def test_snapshot_is_independent_of_source():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[0]], items)
    items[0].extra["owner"] = "changed"
    assert cb.snapshot.items[0].extra["owner"] == "sam"


def test_component_cannot_be_pasted_under_milestone():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[4]], items)
    verdict = cb.validate_paste(items[3])
    assert not verdict.valid
    assert verdict.error == "Components can only be pasted at root level."


def test_paste_target_rules():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[1]], items)
    at_root = cb.validate_paste(None)
    assert not at_root.valid
    assert at_root.error == "Cannot paste deliverable at root level. Only milestones and components can be at root."
    under_task = cb.validate_paste(items[2])
    assert under_task.error == "Cannot paste deliverable under task."
    assert cb.validate_paste(items[3]).valid


def test_validate_paste_is_idempotent():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[4]], items)
    before = cb.snapshot
    first = cb.validate_paste(items[3])
    second = cb.validate_paste(items[3])
    assert first == second
    assert cb.snapshot is before
    assert cb.snapshot.items == before.items


def test_empty_clipboard():
    cb = _clipboard()
    assert not cb.has_data()
    assert cb.get_count() == 0
    assert cb.prepare_for_paste("p", None, 100) is None
    assert cb.validate_paste(None).error == "Nothing to paste."


def test_cut_flag_and_clear():
    items = _plan()
    cb = _clipboard()
    cb.copy([items[3]], items, is_cut=True)
    assert cb.is_cut_operation()
    assert cb.get_count() == 1
    cb.clear()
    assert not cb.has_data()
    assert not cb.is_cut_operation()
