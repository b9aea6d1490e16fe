import pytest

from wbs_planner.core.config.settings import (
    CONFIG_ENV_VAR,
    PlannerSettings,
    SettingsError,
    load_and_merge,
    merged_settings,
)


def test_defaults(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert load_and_merge() == PlannerSettings()


def test_example_file_overrides_everything():
    s = load_and_merge("examples/settings.yaml")
    assert s.history_capacity == 20
    assert s.sort_order_step == 10
    assert s.copy_suffix == " - copy"
    assert s.default_dependency_type == "SS"
    assert s.skip_weekends is True


def test_env_var_is_used_when_no_file_given(monkeypatch, tmp_path):
    p = tmp_path / "s.yaml"
    p.write_text("history_capacity: 3\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(p))
    s = load_and_merge()
    assert s.history_capacity == 3
    assert s.sort_order_step == 100


def test_empty_file_means_defaults(tmp_path):
    p = tmp_path / "s.yaml"
    p.write_text("", encoding="utf-8")
    assert load_and_merge(str(p)) == PlannerSettings()


def test_unknown_key_rejected(tmp_path):
    p = tmp_path / "s.yaml"
    p.write_text("undo_depth: 3\n", encoding="utf-8")
    with pytest.raises(SettingsError, match="unknown setting 'undo_depth'"):
        load_and_merge(str(p))


@pytest.mark.parametrize(
    "overrides",
    [
        {"history_capacity": 0},
        {"history_capacity": True},
        {"sort_order_step": -5},
        {"copy_suffix": 3},
        {"default_dependency_type": "XX"},
        {"skip_weekends": "yes"},
    ],
)
def test_bad_values_rejected(overrides):
    with pytest.raises(SettingsError):
        merged_settings(overrides)
