import pytest

from wbs_planner.core.deps.linker import DependencyLinker
from wbs_planner.core.errors import PlanValidationError
from wbs_planner.core.model import PlanItem, Predecessor


def _item(id, sort_order, preds=()):
    return PlanItem(
        id=id,
        project_id="p",
        item_type="task",
        name=id,
        sort_order=sort_order,
        predecessors=tuple(Predecessor(id=p) for p in preds),
    )


def _xyz(**preds):
    return [
        _item("X", 100, preds.get("X", ())),
        _item("Y", 200, preds.get("Y", ())),
        _item("Z", 300, preds.get("Z", ())),
    ]


def _applied(items, result):
    return [
        PlanItem.from_dict({**i.to_dict(), "predecessors": result.updates[i.id]}) if i.id in result.updates else i
        for i in items
    ]


def test_chain_links_in_sort_order_then_reports_already_linked():
    items = _xyz()
    result = DependencyLinker(items).link_chain(["Z", "X", "Y"])
    assert result.updates == {
        "Y": (Predecessor(id="X", type="FS", lag=0),),
        "Z": (Predecessor(id="Y", type="FS", lag=0),),
    }
    assert result.linked == 2

    again = DependencyLinker(_applied(items, result)).link_chain(["X", "Y", "Z"])
    assert again.linked == 0
    assert again.already_linked == 2
    assert not again.changed
    assert again.summary() == "All selected items are already linked."


def test_fan_in_and_fan_out():
    fan_in = DependencyLinker(_xyz()).link_fan_in(["X", "Y", "Z"])
    assert [p.id for p in fan_in.updates["Z"]] == ["X", "Y"]
    assert set(fan_in.updates) == {"Z"}

    fan_out = DependencyLinker(_xyz()).link_fan_out(["X", "Y", "Z"])
    assert [p.id for p in fan_out.updates["Y"]] == ["X"]
    assert [p.id for p in fan_out.updates["Z"]] == ["X"]


def test_cyclic_edges_are_skipped_not_fatal():
    # X already depends on Z
    result = DependencyLinker(_xyz(X=["Z"])).link_chain(["X", "Y", "Z"])
    assert result.linked == 1
    assert [(s.successor_id, s.predecessor_id) for s in result.skipped] == [("Z", "Y")]
    assert "Z" not in result.updates
    assert result.summary() == "Linked 1 dependency (skipped Y -> Z: would create a circular dependency)."


def test_unlink_only_touches_edges_inside_selection():
    items = _xyz(Y=["X"], Z=["Y", "E"])
    result = DependencyLinker(items + [_item("E", 400)]).unlink_selected(["X", "Y", "Z"])
    assert result.updates == {"Y": (), "Z": (Predecessor(id="E"),)}
    assert result.removed == 2
    assert result.summary() == "Removed 2 dependencies from 2 item(s)."
    assert result.previous["Z"] == (Predecessor(id="Y"), Predecessor(id="E"))


def test_clear_accepts_single_item():
    result = DependencyLinker(_xyz(Z=["X", "Y"])).clear_predecessors(["Z"])
    assert result.updates == {"Z": ()}
    assert result.removed == 2
    nothing = DependencyLinker(_xyz()).clear_predecessors(["Z"])
    assert nothing.summary() == "No dependencies to remove."


def test_default_dependency_type_is_configurable():
    result = DependencyLinker(_xyz(), default_type="SS").link_chain(["X", "Y"])
    assert result.updates["Y"][0].type == "SS"


@pytest.mark.parametrize(
    "strategy,ids,code",
    [
        ("chain", [], "E_NOTHING_SELECTED"),
        ("chain", ["X"], "E_SELECTION_TOO_SMALL"),
        ("fan-in", ["X", "nope"], "E_UNKNOWN_ITEM"),
        ("zigzag", ["X", "Y"], "E_LINK_UNKNOWN_STRATEGY"),
    ],
)
def test_selection_errors(strategy, ids, code):
    with pytest.raises(PlanValidationError) as ei:
        DependencyLinker(_xyz()).apply(strategy, ids)
    assert ei.value.code == code
