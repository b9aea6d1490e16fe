from wbs_planner.core.history.history import HistoryManager, action_label


def test_push_pop_moves_entries_between_stacks():
    h = HistoryManager()
    h.push("create", {"id": "a"})
    entry = h.pop_undo()
    assert entry.type == "create"
    assert entry.data == {"id": "a"}
    assert h.can_redo() and not h.can_undo()
    again = h.pop_redo()
    assert again is entry
    assert h.can_undo() and not h.can_redo()


def test_pop_on_empty_stack_returns_none():
    h = HistoryManager()
    assert h.pop_undo() is None
    assert h.pop_redo() is None


def test_push_clears_redo():
    h = HistoryManager()
    h.push("create", {"id": "a"})
    h.push("create", {"id": "b"})
    h.pop_undo()
    assert h.can_redo()
    h.push("delete", {"ids": ["a"]})
    assert not h.can_redo()
    assert h.redo_size == 0


def test_capacity_evicts_oldest():
    h = HistoryManager()
    for n in range(51):
        h.push("update", {"n": n})
    assert h.undo_size == 50
    undone = [h.pop_undo().data["n"] for _ in range(50)]
    assert undone[0] == 50
    assert undone[-1] == 1
    assert h.pop_undo() is None


def test_entries_are_immutable_snapshots():
    h = HistoryManager()
    payload = {"ids": ["a", "b"]}
    h.push("delete", payload)
    payload["ids"].append("c")
    entry = h.peek_undo()
    entry.data["ids"].append("d")
    assert entry.data == {"ids": ["a", "b"]}


def test_labels():
    assert action_label("batch_delete") == "Delete Items"
    assert action_label("update") == "Edit"
    assert action_label("frobnicate") == "frobnicate"


def test_subscribers_receive_state():
    h = HistoryManager()
    seen = []
    unsubscribe = h.subscribe(seen.append)
    h.push("move", {})
    h.push("paste", {})
    h.pop_undo()
    assert seen[-1].can_undo and seen[-1].can_redo
    assert seen[-1].undo_label == "Move"
    assert seen[-1].redo_label == "Paste"
    assert len(seen) == 3
    unsubscribe()
    h.clear()
    assert len(seen) == 3


def test_cancel_returns_entry_to_its_stack():
    h = HistoryManager()
    h.push("create", {"id": "a"})
    entry = h.pop_undo()
    h.cancel_undo(entry)
    assert h.can_undo() and not h.can_redo()
    entry = h.pop_undo()
    h.pop_redo()
    h.cancel_redo(entry)
    assert h.can_redo() and not h.can_undo()
