from datetime import date

from wbs_planner.core.model import PlanItem, Predecessor
from wbs_planner.core.schedule.scheduler import (
    add_days,
    auto_schedule_items,
    get_duration,
    preview_schedule,
    topological_order,
    validate_predecessors,
)


def _item(id, start=None, end=None, preds=(), **kw):
    return PlanItem(
        id=id,
        project_id="p",
        item_type="task",
        name=id.upper(),
        start_date=start,
        end_date=end,
        predecessors=tuple(preds),
        **kw,
    )


def test_add_days_skips_weekends():
    friday = date(2025, 1, 10)
    assert add_days(friday, 1) == date(2025, 1, 11)
    assert add_days(friday, 1, skip_weekends=True) == date(2025, 1, 13)
    assert add_days(date(2025, 1, 13), -1, skip_weekends=True) == friday


def test_get_duration():
    assert get_duration(date(2025, 1, 1), date(2025, 1, 4)) == 3
    assert get_duration(None, date(2025, 1, 4)) == 0


def test_finish_to_start_shifts_successor_after_predecessor():
    a = _item("a", date(2025, 1, 6), date(2025, 1, 8))
    b = _item("b", date(2025, 1, 6), date(2025, 1, 7), [Predecessor(id="a")])
    updates = auto_schedule_items([b, a])
    assert len(updates) == 1
    assert updates[0].id == "b"
    assert updates[0].start_date == date(2025, 1, 9)
    assert updates[0].end_date == date(2025, 1, 10)


def test_chained_items_use_rescheduled_dates():
    a = _item("a", date(2025, 1, 6), date(2025, 1, 8))
    b = _item("b", date(2025, 1, 1), date(2025, 1, 2), [Predecessor(id="a")])
    c = _item("c", date(2025, 1, 1), date(2025, 1, 1), [Predecessor(id="b", lag=2)])
    by_id = {u.id: u for u in auto_schedule_items([c, b, a])}
    assert by_id["b"].start_date == date(2025, 1, 9)
    assert by_id["c"].start_date == date(2025, 1, 13)


def test_start_to_start_and_finish_to_finish():
    a = _item("a", date(2025, 1, 6), date(2025, 1, 10))
    ss = _item("ss", date(2025, 1, 1), date(2025, 1, 3), [Predecessor(id="a", type="SS", lag=1)])
    ff = _item("ff", date(2025, 1, 1), date(2025, 1, 3), [Predecessor(id="a", type="FF")])
    by_id = {u.id: u for u in auto_schedule_items([a, ss, ff])}
    assert by_id["ss"].start_date == date(2025, 1, 7)
    assert by_id["ss"].end_date == date(2025, 1, 9)
    # pred end - duration + 1
    assert by_id["ff"].start_date == date(2025, 1, 9)


def test_unscheduled_root_items_use_project_start():
    a = _item("a")
    b = _item("b", date(2025, 2, 1), date(2025, 2, 2))
    updates = auto_schedule_items([a, b], project_start_date=date(2025, 3, 3))
    assert [(u.id, u.start_date) for u in updates] == [("a", date(2025, 3, 3))]
    assert auto_schedule_items([a, b]) == []


def test_topological_order_survives_cycles():
    a = _item("a", preds=[Predecessor(id="b")])
    b = _item("b", preds=[Predecessor(id="a")])
    assert sorted(i.id for i in topological_order([a, b])) == ["a", "b"]


def test_preview_and_validate_predecessors():
    a = _item("a", date(2025, 1, 6), None)
    b = _item("b", date(2025, 1, 1), date(2025, 1, 2), [Predecessor(id="a", type="SS"), Predecessor(id="zz")])
    preview = preview_schedule(b, [a, b])
    assert preview.start_date == date(2025, 1, 6)
    assert preview.end_date == date(2025, 1, 7)
    assert validate_predecessors(b, [a, b]) == ["Predecessor zz not found"]
    fs = _item("c", preds=[Predecessor(id="a", type="FS")])
    assert validate_predecessors(fs, [a]) == ['Predecessor "A" needs an end date for FS dependency']
