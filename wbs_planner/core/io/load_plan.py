from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from wbs_planner.core.errors import PlanLoadError


def load_plan(path: str) -> dict[str, Any]:
    """Load a YAML/JSON plan file.

    Returns a dict with keys: schema_version, project_id, items.
    Does not coerce types; validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise PlanLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:  # pragma: no cover
        raise PlanLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise PlanLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except PlanLoadError:
        raise
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise PlanLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise PlanLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    # Normalize: keep only expected keys; validator checks required ones.
    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "project_id": data.get("project_id"),
        "items": data.get("items"),
    }
    normalized["__file__"] = str(p)
    return normalized


def dump_plan_yaml(plan: dict[str, Any], path: str) -> None:
    out = {k: v for k, v in plan.items() if not k.startswith("__")}
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        if p.suffix.lower() == ".json":
            json.dump(out, f, indent=2, default=str)
            f.write("\n")
        else:
            yaml.safe_dump(out, f, sort_keys=False, default_flow_style=False, allow_unicode=True)
