from wbs_planner.core.model import PlanItem
from wbs_planner.core.tree.tree_index import TreeIndex


def _item(id, item_type, parent_id=None, sort_order=100, indent=0, **kw):
    return PlanItem(
        id=id,
        project_id="p",
        item_type=item_type,
        name=id.upper(),
        parent_id=parent_id,
        sort_order=sort_order,
        indent_level=indent,
        **kw,
    )


def _tree():
    return TreeIndex(
        [
            _item("m2", "milestone", sort_order=200),
            _item("m1", "milestone", sort_order=100),
            _item("d1", "deliverable", "m1", 100, 1),
            _item("t2", "task", "d1", 200, 2),
            _item("t1", "task", "d1", 100, 2),
            _item("t3", "task", "t1", 100, 3),
            _item("gone", "deliverable", "m2", 100, 1, is_deleted=True),
            _item("orphan", "task", "gone", 100, 2),
            _item("orphan_child", "task", "orphan", 100, 3),
        ]
    )


def test_visible_items_depth_first_in_sort_order():
    tree = _tree()
    assert [i.id for i in tree.visible_items()] == ["m1", "d1", "t1", "t3", "t2", "m2"]


def test_visible_items_skips_collapsed_subtrees():
    tree = _tree()
    assert [i.id for i in tree.visible_items({"d1"})] == ["m1", "d1", "m2"]
    assert [i.id for i in tree.visible_items(["t1"])] == ["m1", "d1", "t1", "t2", "m2"]


def test_visible_items_is_restartable():
    tree = _tree()
    rows = tree.visible_items()
    first = [i.id for i in rows]
    assert [i.id for i in rows] == []
    assert [i.id for i in tree.visible_items()] == first


def test_deleted_and_orphaned_items_are_excluded():
    tree = _tree()
    visible = {i.id for i in tree.visible_items()}
    assert "gone" not in tree
    assert "orphan" not in visible
    assert "orphan_child" not in visible
    assert tree.children_count("m2") == 0


def test_descendants_and_children_count():
    tree = _tree()
    assert {d.id for d in tree.descendants("m1")} == {"d1", "t1", "t2", "t3"}
    assert tree.descendants("t2") == []
    assert tree.children_count("d1") == 2
    assert tree.children_count("m1") == 1


def test_siblings_and_ancestry():
    tree = _tree()
    assert tree.previous_sibling("t2").id == "t1"
    assert tree.previous_sibling("t1") is None
    assert tree.next_sibling("m1").id == "m2"
    assert tree.is_descendant("t3", "m1")
    assert not tree.is_descendant("m1", "t3")
    assert tree.parent_type(tree.require("t3")) == "task"
    assert tree.depth_map()["t3"] == 3
