"""Task query and mutation commands."""

from __future__ import annotations

import json
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from tasklog.tasks.models import RelationType, TaskStatus, TaskType
from tasklog.tasks.repository import STATUS_ANY, TaskRepository
from tasklog.workflow.service import TaskService

from ..output import emit_json, fail, handle_errors, resolve_config


def _parse_meta(pairs: list[str] | None) -> dict[str, str] | None:
    if pairs is None:
        return None
    meta: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            fail(f"Invalid --meta value {pair!r}", "use KEY=VALUE")
        meta[key] = value
    return meta


def _parse_relations(blocked_by: list[int] | None, relations_json: str | None) -> list[Any] | None:
    if relations_json is not None:
        try:
            relations = json.loads(relations_json)
        except json.JSONDecodeError as exc:
            fail(f"Invalid JSON in --relations-json: {exc}")
        if not isinstance(relations, list):
            fail("--relations-json must be a JSON list of relations")
        return relations
    if blocked_by is None:
        return None
    return [
        {"id": index, "relates-to": target, "as-type": RelationType.BLOCKED_BY.value}
        for index, target in enumerate(blocked_by, start=1)
    ]


def list_tasks(
    ctx: typer.Context,
    status: Annotated[Optional[str], typer.Option("--status", help="open|closed|in-progress|blocked|deleted|any")] = None,
    category: Annotated[Optional[str], typer.Option("--category", help="Exact category")] = None,
    parent_id: Annotated[Optional[int], typer.Option("--parent-id", help="Children of this story")] = None,
    title_pattern: Annotated[Optional[str], typer.Option("--title", help="Regex (or substring) to match titles")] = None,
    task_type: Annotated[Optional[TaskType], typer.Option("--type", help="Task type")] = None,
    blocked: Annotated[Optional[bool], typer.Option("--blocked/--unblocked", help="Only blocked or unblocked tasks")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", min=1, help="Maximum number of tasks")] = None,
) -> None:
    """List tasks matching all given filters.

    Without --status only open work in the active log is listed.

    Examples:
        tasklog list --category backend
        tasklog list --status any --title "^Fix"
    """
    if status is not None and status != STATUS_ANY and status not in {s.value for s in TaskStatus}:
        fail(f"Invalid --status {status!r}")
    with handle_errors():
        config = resolve_config(ctx)
        views = TaskRepository(config.paths).select_tasks(
            category=category,
            parent_id=parent_id,
            title_pattern=title_pattern,
            type=task_type,
            status=status,
            blocked=blocked,
            limit=limit,
        )
        emit_json({"tasks": [view.to_dict() for view in views], "count": len(views)})


def show(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
) -> None:
    """Show a single task (active or archived) with its blocking state."""
    with handle_errors():
        config = resolve_config(ctx)
        views = TaskRepository(config.paths).select_tasks(task_id=task_id, status=STATUS_ANY)
        if not views:
            fail(f"Task not found: {task_id}")
        emit_json(views[0].to_dict())


def why_blocked(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
) -> None:
    """Explain why a task is blocked, including dependency cycles."""
    with handle_errors():
        config = resolve_config(ctx)
        info = TaskRepository(config.paths).why_blocked(task_id)
        emit_json(info.to_dict())


def add(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Task title")],
    category: Annotated[str, typer.Option("--category", "-c", help="Task category")] = "simple",
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    design: Annotated[str, typer.Option("--design")] = "",
    task_type: Annotated[TaskType, typer.Option("--type")] = TaskType.TASK,
    parent_id: Annotated[Optional[int], typer.Option("--parent-id", help="Parent story id")] = None,
    blocked_by: Annotated[Optional[list[int]], typer.Option("--blocked-by", help="Blocking task id (repeatable)")] = None,
    relations_json: Annotated[Optional[str], typer.Option("--relations-json", help="Full relations list as JSON")] = None,
    meta: Annotated[Optional[list[str]], typer.Option("--meta", help="KEY=VALUE (repeatable)")] = None,
    prepend: Annotated[bool, typer.Option("--prepend", help="Insert at the start of the log")] = False,
) -> None:
    """Add a new open task.

    Examples:
        tasklog add "Fix login redirect" --category bugfix --type bug
        tasklog add "Write migration" --parent-id 12 --blocked-by 14
    """
    relations = _parse_relations(blocked_by, relations_json) or []
    meta_values = _parse_meta(meta) or {}
    with handle_errors():
        config = resolve_config(ctx)
        result = TaskService(config).add_task(
            title,
            category=category,
            description=description,
            design=design,
            type=task_type,
            parent_id=parent_id,
            relations=relations,
            meta=meta_values,
            prepend=prepend,
        )
        emit_json(result.to_dict())


def update(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
    title: Annotated[Optional[str], typer.Option("--title")] = None,
    description: Annotated[Optional[str], typer.Option("--description", "-d")] = None,
    design: Annotated[Optional[str], typer.Option("--design")] = None,
    category: Annotated[Optional[str], typer.Option("--category", "-c")] = None,
    task_type: Annotated[Optional[TaskType], typer.Option("--type")] = None,
    status: Annotated[Optional[TaskStatus], typer.Option("--status")] = None,
    parent_id: Annotated[Optional[int], typer.Option("--parent-id")] = None,
    blocked_by: Annotated[Optional[list[int]], typer.Option("--blocked-by", help="Replaces all relations")] = None,
    relations_json: Annotated[Optional[str], typer.Option("--relations-json", help="Replaces all relations")] = None,
    meta: Annotated[Optional[list[str]], typer.Option("--meta", help="Replaces all meta entries")] = None,
) -> None:
    """Update fields of an active task. Relations and meta are replaced wholesale."""
    changes: dict[str, Any] = {
        name: value
        for name, value in {
            "title": title,
            "description": description,
            "design": design,
            "category": category,
            "type": task_type,
            "status": status,
            "parent_id": parent_id,
        }.items()
        if value is not None
    }
    relations = _parse_relations(blocked_by, relations_json)
    if relations is not None:
        changes["relations"] = relations
    meta_values = _parse_meta(meta)
    if meta_values is not None:
        changes["meta"] = meta_values
    if not changes:
        fail("Nothing to update", "pass at least one field option")

    with handle_errors():
        config = resolve_config(ctx)
        emit_json(TaskService(config).update_task(task_id, **changes).to_dict())


def complete(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
    comment: Annotated[Optional[str], typer.Option("--comment", "-m", help="Completion comment")] = None,
    category: Annotated[Optional[str], typer.Option("--category", help="Require this category")] = None,
) -> None:
    """Close a task. Stories are archived together with their children."""
    with handle_errors():
        config = resolve_config(ctx)
        result = TaskService(config).complete_task(task_id, comment, category=category)
        emit_json(result.to_dict())


def delete(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
) -> None:
    """Mark a task deleted and move it to the archive."""
    with handle_errors():
        config = resolve_config(ctx)
        emit_json(TaskService(config).delete_task(task_id).to_dict())


def reopen(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
) -> None:
    """Reopen a closed task, moving it back from the archive if needed."""
    with handle_errors():
        config = resolve_config(ctx)
        emit_json(TaskService(config).reopen_task(task_id).to_dict())


def register(app: typer.Typer) -> None:
    app.command("list")(list_tasks)
    app.command()(show)
    app.command("why-blocked")(why_blocked)
    app.command()(add)
    app.command()(update)
    app.command()(complete)
    app.command()(delete)
    app.command()(reopen)


__all__ = ["register"]
