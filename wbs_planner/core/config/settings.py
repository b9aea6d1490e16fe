from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from wbs_planner.core.model import DEPENDENCY_TYPES


CONFIG_ENV_VAR = "WBS_PLANNER_CONFIG"

DEFAULT_SETTINGS: dict[str, Any] = {
    "history_capacity": 50,
    "sort_order_step": 100,
    "copy_suffix": " (Copy)",
    "default_dependency_type": "FS",
    "skip_weekends": False,
}


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class PlannerSettings:
    history_capacity: int = 50
    sort_order_step: int = 100
    copy_suffix: str = " (Copy)"
    default_dependency_type: str = "FS"
    skip_weekends: bool = False


def load_settings_file(path: str | Path) -> dict[str, Any]:
    """Load settings overrides from a YAML file.

    Format:
      history_capacity: 50
      sort_order_step: 100
      copy_suffix: " (Copy)"
      default_dependency_type: FS
      skip_weekends: false

    Unknown keys are rejected; missing keys fall back to defaults.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SettingsError("settings file must be a mapping of name -> value")

    known = {f.name for f in fields(PlannerSettings)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise SettingsError(f"unknown setting '{k}' (known: {', '.join(sorted(known))})")
        out[k] = v
    return out


def merged_settings(overrides: dict[str, Any] | None = None) -> PlannerSettings:
    merged = dict(DEFAULT_SETTINGS)
    if overrides:
        merged.update(overrides)
    _check(merged)
    return PlannerSettings(**merged)


def load_and_merge(settings_file: str | None = None) -> PlannerSettings:
    """Defaults, overridden by `settings_file` or else $WBS_PLANNER_CONFIG."""
    path = settings_file or os.getenv(CONFIG_ENV_VAR)
    if not path:
        return merged_settings()
    return merged_settings(load_settings_file(path))


def _check(values: dict[str, Any]) -> None:
    cap = values["history_capacity"]
    if not isinstance(cap, int) or isinstance(cap, bool) or cap < 1:
        raise SettingsError("history_capacity must be a positive integer")
    step = values["sort_order_step"]
    if not isinstance(step, (int, float)) or isinstance(step, bool) or step <= 0:
        raise SettingsError("sort_order_step must be a positive number")
    if not isinstance(values["copy_suffix"], str):
        raise SettingsError("copy_suffix must be a string")
    if values["default_dependency_type"] not in DEPENDENCY_TYPES:
        raise SettingsError(f"default_dependency_type must be one of {list(DEPENDENCY_TYPES)}")
    if not isinstance(values["skip_weekends"], bool):
        raise SettingsError("skip_weekends must be a boolean")
