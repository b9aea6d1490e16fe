import yaml
from typer.testing import CliRunner

from wbs_planner.cli import app


runner = CliRunner()

PLAN = "examples/plan-basic.yaml"


def _items(path):
    doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    return {i["id"]: i for i in doc["items"]}


def test_link_chain_writes_out_file(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["link", PLAN, "--strategy", "chain", "--id", "m2", "--id", "t1", "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert "OK: Linked 1 dependency." in r.output
    assert _items(out)["m2"]["predecessors"] == [{"id": "t1", "type": "FS", "lag": 0}]


def test_link_reports_already_linked(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["link", PLAN, "--strategy", "chain", "--id", "t1", "--id", "t2", "--out", str(out)])
    assert r.exit_code == 0
    assert "OK: All selected items are already linked." in r.output


def test_link_uses_configured_dependency_type(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(
        app,
        ["--config", "examples/settings.yaml", "link", PLAN, "--strategy", "fan-out", "--id", "t1", "--id", "m2", "--out", str(out)],
    )
    assert r.exit_code == 0, r.output
    assert _items(out)["m2"]["predecessors"] == [{"id": "t1", "type": "SS", "lag": 0}]


def test_link_rejects_bad_selection(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["link", PLAN, "--strategy", "chain", "--id", "t1", "--out", str(out)])
    assert r.exit_code == 2
    assert "E_SELECTION_TOO_SMALL: Select at least 2 items." in r.output

    r = runner.invoke(app, ["link", PLAN, "--strategy", "zigzag", "--id", "t1", "--id", "t2", "--out", str(out)])
    assert r.exit_code == 2
    assert "E_LINK_UNKNOWN_STRATEGY" in r.output


def test_move_retypes_under_new_parent(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["move", PLAN, "t1", "--parent", "m2", "--order", "100", "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert "OK: Moved 1 item(s)." in r.output
    t1 = _items(out)["t1"]
    assert (t1["parent_id"], t1["item_type"], t1["indent_level"]) == ("m2", "deliverable", 1)


def test_move_into_descendant_is_rejected(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["move", PLAN, "m1", "--parent", "t1", "--order", "1", "--out", str(out)])
    assert r.exit_code == 2
    assert "E_MOVE_INTO_DESCENDANT" in r.output
    assert _items(out)["m1"]["parent_id"] == "c1"


def test_promote_and_demote(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["promote", PLAN, "d2", "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert "OK: Item promoted." in r.output
    d2 = _items(out)["d2"]
    assert "parent_id" not in d2
    assert (d2["item_type"], d2["indent_level"], d2["sort_order"]) == ("milestone", 0, 300)

    r = runner.invoke(app, ["demote", PLAN, "m2", "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert "OK: Item demoted." in r.output
    m2 = _items(out)["m2"]
    assert (m2["parent_id"], m2["item_type"], m2["indent_level"], m2["sort_order"]) == ("m1", "deliverable", 2, 200)


def test_demote_component_is_rejected(tmp_path):
    r = runner.invoke(app, ["demote", PLAN, "c1", "--out", str(tmp_path / "plan.yaml")])
    assert r.exit_code == 2


def test_schedule_shifts_successor(tmp_path):
    out = tmp_path / "plan.yaml"
    r = runner.invoke(app, ["schedule", PLAN, "--out", str(out)])
    assert r.exit_code == 0, r.output
    assert "OK: Rescheduled 1 item(s)." in r.output
    t2 = _items(out)["t2"]
    assert (t2["start_date"], t2["end_date"]) == ("2025-01-09", "2025-01-10")


def test_schedule_rejects_bad_date(tmp_path):
    r = runner.invoke(app, ["schedule", PLAN, "--project-start", "soon", "--out", str(tmp_path / "p.yaml")])
    assert r.exit_code == 2
    assert "E_INVALID_DATE" in r.output


def test_config_errors(tmp_path):
    r = runner.invoke(app, ["--config", str(tmp_path / "missing.yaml"), "validate", PLAN])
    assert r.exit_code == 1
    assert "E_CONFIG_FILE_NOT_FOUND" in r.output

    bad = tmp_path / "settings.yaml"
    bad.write_text("undo_depth: 3\n", encoding="utf-8")
    r = runner.invoke(app, ["--config", str(bad), "validate", PLAN])
    assert r.exit_code == 2
    assert "E_CONFIG_INVALID" in r.output
