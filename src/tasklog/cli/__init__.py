"""
tasklog CLI - task logs and per-task git worktrees for AI agents.

Usage:
    tasklog add "Fix login redirect" --type bug
    tasklog list --status any
    tasklog work-on 12
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from tasklog import __version__

from .commands import tasks, work

app = typer.Typer(
    name="tasklog",
    help="Durable task logs with dependency tracking and git worktree orchestration",
    add_completion=False,
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        print(f"tasklog {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    directory: Annotated[
        Optional[Path],
        typer.Option("--dir", "-C", help="Start config discovery here instead of the current directory"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log git commands and debug detail")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    _configure_logging(verbose)
    ctx.obj = {"start_dir": directory.resolve() if directory else None}


tasks.register(app)
work.register(app)


def main():
    app()


if __name__ == "__main__":
    main()
