from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.table import Table

from wbs_planner.core.config.settings import PlannerSettings, SettingsError, load_and_merge
from wbs_planner.core.errors import PlanError, PlanLoadError, PlanValidationError
from wbs_planner.core.io.load_plan import load_plan
from wbs_planner.core.lint.lint_plan import lint_items, lint_plan
from wbs_planner.core.model import parse_date
from wbs_planner.core.session import OperationResult, PlanningSession
from wbs_planner.core.store.file_store import YamlPlanStore
from wbs_planner.core.store.memory_store import wbs_numbers
from wbs_planner.core.templates.structure import (
    build_structure,
    count_items,
    dump_structure_yaml,
    load_structure_file,
)
from wbs_planner.core.validate.validate_plan import summarize_plan, validate_plan

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


@app.callback()
def _callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", help="YAML settings file (defaults to $WBS_PLANNER_CONFIG)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log session operations"),
) -> None:
    """WBS planner CLI."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = load_and_merge(config)
    except FileNotFoundError as e:
        _print_errors(
            [
                PlanLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"settings file not found: {e.filename}",
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=1)
    except SettingsError as e:
        _print_errors(
            [PlanValidationError(code="E_CONFIG_INVALID", message=str(e), path="config")]
        )
        raise typer.Exit(code=2)
    ctx.obj = settings


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a plan file: schema, hierarchy, indent and dependency checks."""
    if format not in ("text", "json"):
        err = PlanValidationError(
            code="E_VALIDATE_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)

    def _to_item(e: PlanError) -> dict:
        if isinstance(e, PlanLoadError):
            source = "load"
        elif e.code.startswith("L_"):
            source = "lint"
        else:
            source = "validate"
        return {
            "code": e.code,
            "message": e.message,
            "file": e.file,
            "path": e.path,
            "severity": "error",
            "source": source,
        }

    def _emit_json(
        ok: bool,
        *,
        exit_code: int,
        schema_version: str | None,
        errors: list[PlanError],
        summary: dict | None,
    ) -> None:
        payload = {
            "tool": "wbs-planner",
            "command": "validate",
            "schema_version": schema_version,
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        plan = load_plan(path)
    except PlanLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, schema_version=None, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    doc, errors = validate_plan(plan)
    if doc is not None:
        errors = errors + lint_items(doc.items, file=plan.get("__file__"))
    else:
        errors = errors + lint_plan(plan)

    if errors or doc is None:
        if format == "json":
            schema_v = plan.get("schema_version") if isinstance(plan.get("schema_version"), str) else None
            _emit_json(False, exit_code=2, schema_version=schema_v, errors=list(errors), summary=None)
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    if format == "text":
        typer.echo(summarize_plan(doc))
        return

    live = [i for i in doc.items if not i.is_deleted]
    counts = Counter([i.item_type for i in live])
    summary = {
        "item_count": len(live),
        "type_counts": {k: int(v) for k, v in counts.items()},
        "roots": sorted(i.id for i in live if i.parent_id is None),
    }
    _emit_json(True, exit_code=0, schema_version=doc.schema_version, errors=[], summary=summary)


@app.command("show")
def show(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    collapse: Optional[list[str]] = typer.Option(
        None, "--collapse", help="Hide the subtree under this item id (repeatable)"
    ),
) -> None:
    """Print the visible rows of a plan as a table."""
    store = _open_store(path)
    session = PlanningSession(store, store.project_id)
    asyncio.run(session.refresh())

    numbers = wbs_numbers(session.items)
    table = Table(title=f"{store.project_id} ({len(session.items)} items)")
    table.add_column("WBS")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Predecessors")
    collapsed = set(collapse or [])
    for item in session.visible_items(collapsed):
        marker = "+ " if item.id in collapsed and session.tree.children_count(item.id) else ""
        table.add_row(
            numbers.get(item.id, ""),
            item.id,
            item.item_type,
            "  " * item.indent_level + marker + item.name,
            item.start_date.isoformat() if item.start_date else "",
            item.end_date.isoformat() if item.end_date else "",
            ", ".join(f"{p.id} {p.type}" + (f"{p.lag:+d}" if p.lag else "") for p in item.predecessors),
        )
    console.print(table)


@app.command("link")
def link(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    strategy: str = typer.Option(..., "--strategy", help="chain|fan-in|fan-out|unlink|clear"),
    ids: list[str] = typer.Option(..., "--id", help="Selected item id (repeatable)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of editing PATH"),
) -> None:
    """Link (or unlink) predecessor dependencies between selected items."""
    result = _run_session(ctx, path, out, lambda s: s.link(strategy, ids))
    _report(result)
    for skipped in result.details.get("skipped", []):
        typer.echo(
            f"skipped {skipped['predecessor_id']} -> {skipped['successor_id']}: {skipped['reason']}",
            err=True,
        )


@app.command("move")
def move(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    item: str = typer.Argument(..., help="Item id to move"),
    parent: Optional[str] = typer.Option(None, "--parent", help="New parent id (omit for root)"),
    order: float = typer.Option(..., "--order", help="Target sort_order among the new siblings"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of editing PATH"),
) -> None:
    """Move an item (and its subtree) under a new parent."""
    _report(_run_session(ctx, path, out, lambda s: s.move_item(item, parent, order)))


@app.command("promote")
def promote(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    item: str = typer.Argument(..., help="Item id to promote"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of editing PATH"),
) -> None:
    """Move an item up one level, next to its former parent."""
    _report(_run_session(ctx, path, out, lambda s: s.promote(item)))


@app.command("demote")
def demote(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    item: str = typer.Argument(..., help="Item id to demote"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of editing PATH"),
) -> None:
    """Move an item under its previous sibling."""
    _report(_run_session(ctx, path, out, lambda s: s.demote(item)))


@app.command("schedule")
def schedule(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    skip_weekends: Optional[bool] = typer.Option(
        None, "--skip-weekends/--no-skip-weekends", help="Count working days only"
    ),
    project_start: Optional[str] = typer.Option(
        None, "--project-start", help="Start date (YYYY-MM-DD) for undated items without predecessors"
    ),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of editing PATH"),
) -> None:
    """Recompute start/end dates from predecessor links."""
    start = _parse_date_option(project_start, "project_start")
    _report(
        _run_session(
            ctx,
            path,
            out,
            lambda s: s.auto_schedule(skip_weekends=skip_weekends, project_start_date=start),
        )
    )


@app.command("template-export")
def template_export(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    component: str = typer.Option(..., "--component", help="Id of the item whose subtree to export"),
    out: str = typer.Option(..., "--out", help="Path to write the YAML structure template"),
) -> None:
    """Export an item's subtree as a reusable structure template."""
    store = _open_store(path)
    items = asyncio.run(store.fetch_all(store.project_id))
    structure = build_structure(items, component)
    if not structure:
        _print_errors(
            [
                PlanValidationError(
                    code="E_UNKNOWN_ITEM",
                    message=f"--component references unknown id: {component}",
                    file=str(store.path),
                    path="component",
                )
            ]
        )
        raise typer.Exit(code=2)

    dump_structure_yaml(structure, out)
    counts = count_items(structure)
    typer.echo(
        f"OK: wrote {out} ({counts.total} items: {counts.components} components, "
        f"{counts.milestones} milestones, {counts.deliverables} deliverables, {counts.tasks} tasks)"
    )


@app.command("template-import")
def template_import(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    template: str = typer.Argument(..., help="Path to a YAML structure template"),
    start: str = typer.Option(..., "--start", help="Start date (YYYY-MM-DD) for the imported items"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent id (omit for root)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write here instead of editing PATH"),
) -> None:
    """Import a structure template into a plan."""
    start_date = _parse_date_option(start, "start")
    assert start_date is not None
    try:
        structure = load_structure_file(template)
    except PlanLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    except PlanValidationError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    _report(
        _run_session(ctx, path, out, lambda s: s.import_structure(structure, start_date, parent))
    )


def _open_store(path: str) -> YamlPlanStore:
    try:
        return YamlPlanStore.open(path)
    except PlanLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)
    except PlanValidationError as e:
        _print_errors([e])
        raise typer.Exit(code=2)


def _run_session(
    ctx: typer.Context,
    path: str,
    out: Optional[str],
    op: Callable[[PlanningSession], Awaitable[OperationResult]],
) -> OperationResult:
    settings: PlannerSettings = ctx.obj if isinstance(ctx.obj, PlannerSettings) else PlannerSettings()
    store = _open_store(path)
    if out is not None:
        store.path = Path(out)
        store.flush()
    session = PlanningSession(store, store.project_id, settings=settings)

    async def run() -> OperationResult:
        await session.refresh()
        return await op(session)

    return asyncio.run(run())


def _report(result: OperationResult) -> None:
    if not result.success:
        code = result.details.get("code", "E_OPERATION_FAILED")
        typer.echo(f"{code}: {result.message}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"OK: {result.message}")


def _parse_date_option(value: Optional[str], name: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError:
        _print_errors(
            [
                PlanValidationError(
                    code="E_INVALID_DATE",
                    message=f"--{name.replace('_', '-')} must be an ISO date (YYYY-MM-DD), got: {value}",
                    path=name,
                )
            ]
        )
        raise typer.Exit(code=2)


def _print_errors(errors: list[PlanError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="wbs-planner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
