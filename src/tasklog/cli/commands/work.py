"""Execution commands: work-on, cleanup-worktree and the execution state."""

from __future__ import annotations

from pathlib import Path

import typer
from typing_extensions import Annotated

from tasklog.tasks.execution_state import clear_execution_state, read_execution_state
from tasklog.workflow.work_on import cleanup_worktree_after_completion, work_on

from ..output import emit_json, fail, handle_errors, resolve_config

state_app = typer.Typer(
    name="state",
    help="Inspect or clear the current execution state",
    no_args_is_help=True,
)


def work_on_command(
    ctx: typer.Context,
    task_id: Annotated[int, typer.Argument(help="Task id")],
) -> None:
    """Set up the branch or worktree for a task and record the execution state.

    When worktree management is enabled and the work belongs in another
    directory, the output says where; start a new session there.
    """
    with handle_errors():
        config = resolve_config(ctx)
        result = work_on(config, task_id, cwd=Path.cwd())
        emit_json(result.to_dict())


def cleanup_worktree(
    ctx: typer.Context,
    worktree_path: Annotated[Path, typer.Argument(help="Worktree directory to remove")],
) -> None:
    """Remove a task worktree once it is clean and fully pushed."""
    with handle_errors():
        config = resolve_config(ctx)
        result = cleanup_worktree_after_completion(config.main_repo_dir, worktree_path.resolve())
        if not result.success:
            fail(result.error or "Worktree cleanup failed")
        emit_json({"success": True, "message": result.message})


@state_app.command("show")
def state_show(ctx: typer.Context) -> None:
    """Print the current execution state (null when none is recorded)."""
    with handle_errors():
        config = resolve_config(ctx)
        state = read_execution_state(config.base_dir)
        emit_json(state.to_dict() if state is not None else None)


@state_app.command("clear")
def state_clear(ctx: typer.Context) -> None:
    """Remove the execution state file."""
    with handle_errors():
        config = resolve_config(ctx)
        emit_json({"cleared": clear_execution_state(config.base_dir)})


def register(app: typer.Typer) -> None:
    app.command("work-on")(work_on_command)
    app.command("cleanup-worktree")(cleanup_worktree)
    app.add_typer(state_app, name="state")


__all__ = ["register", "state_app"]
