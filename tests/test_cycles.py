from wbs_planner.core.deps.cycles import CycleDetector
from wbs_planner.core.model import PlanItem, Predecessor


def _item(id, preds=()):
    return PlanItem(
        id=id,
        project_id="p",
        item_type="task",
        name=id,
        predecessors=tuple(Predecessor(id=p) for p in preds),
    )


def test_closing_a_transitive_loop_is_a_cycle():
    # A depends on B, B depends on C.
    detector = CycleDetector([_item("A", ["B"]), _item("B", ["C"]), _item("C")])
    assert detector.would_create_cycle("C", "A") is True


def test_edges_that_keep_the_graph_acyclic():
    detector = CycleDetector([_item("A", ["B"]), _item("B", ["C"]), _item("C")])
    assert detector.would_create_cycle("A", "C") is False
    assert detector.would_create_cycle("D", "A") is False


def test_self_loop_is_a_cycle():
    detector = CycleDetector([_item("A")])
    assert detector.would_create_cycle("A", "A") is True


def test_check_does_not_mutate_graph():
    detector = CycleDetector([_item("A", ["B"]), _item("B")])
    assert detector.would_create_cycle("B", "A") is True
    assert not detector.has_edge("B", "A")
    assert detector.would_create_cycle("B", "A") is True


def test_add_edge_is_seen_by_later_checks():
    detector = CycleDetector([_item("A"), _item("B"), _item("C")])
    assert detector.would_create_cycle("B", "A") is False
    detector.add_edge("B", "A")
    detector.add_edge("C", "B")
    assert detector.would_create_cycle("A", "C") is True
    detector.remove_edge("C", "B")
    assert detector.would_create_cycle("A", "C") is False


def test_deleted_items_do_not_contribute_edges():
    gone = PlanItem(
        id="B",
        project_id="p",
        item_type="task",
        name="B",
        predecessors=(Predecessor(id="A"),),
        is_deleted=True,
    )
    detector = CycleDetector([_item("A"), gone])
    assert detector.would_create_cycle("A", "B") is False


def test_find_cycles_reports_each_loop():
    detector = CycleDetector([_item("a", ["b"]), _item("b", ["c"]), _item("c", ["a"]), _item("d")])
    cycles = detector.find_cycles()
    assert len(cycles) == 1
    assert cycles[0][0] == cycles[0][-1]
    assert set(cycles[0]) == {"a", "b", "c"}
