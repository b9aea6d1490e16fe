import pytest

from wbs_planner.core.errors import PlanValidationError
from wbs_planner.core.hierarchy.rules import (
    ROOT_TYPES,
    allowed_child_types,
    child_type_for,
    demoted_type,
    is_valid_parent,
    promoted_type,
)


@pytest.mark.parametrize(
    "item_type,parent_type,ok",
    [
        ("component", None, True),
        ("component", "component", False),
        ("milestone", None, True),
        ("milestone", "component", True),
        ("milestone", "milestone", False),
        ("deliverable", "milestone", True),
        ("deliverable", None, False),
        ("task", "deliverable", True),
        ("task", "task", True),
        ("task", "milestone", False),
        ("bogus", None, False),
    ],
)
def test_is_valid_parent(item_type, parent_type, ok):
    assert is_valid_parent(item_type, parent_type) is ok


def test_root_types_are_component_and_milestone():
    assert ROOT_TYPES == frozenset({"component", "milestone"})
    assert allowed_child_types(None) == ROOT_TYPES
    assert allowed_child_types("deliverable") == frozenset({"task"})
    assert allowed_child_types("bogus") == frozenset()


def test_child_type_for_is_parent_driven():
    assert child_type_for(None, "component") == "component"
    assert child_type_for(None, "task") == "milestone"
    assert child_type_for("component", "deliverable") == "milestone"
    assert child_type_for("milestone", "task") == "deliverable"
    assert child_type_for("deliverable", "milestone") == "task"
    assert child_type_for("task", "task") == "task"


def test_demoted_type_table():
    assert demoted_type("milestone", "component") == "milestone"
    assert demoted_type("milestone", "milestone") == "deliverable"
    assert demoted_type("deliverable", "deliverable") == "task"
    assert demoted_type("task", "task") == "task"


def test_demoting_a_component_is_rejected():
    with pytest.raises(PlanValidationError) as ei:
        demoted_type("component", None)
    assert ei.value.code == "E_CANNOT_DEMOTE_COMPONENT"
    assert ei.value.message == "Components cannot be demoted."


def test_promoted_type_table():
    assert promoted_type("component", None) == "component"
    assert promoted_type("deliverable", None) == "milestone"
    assert promoted_type("task", "component") == "milestone"
    assert promoted_type("task", "milestone") == "deliverable"
    assert promoted_type("task", "deliverable") == "task"
