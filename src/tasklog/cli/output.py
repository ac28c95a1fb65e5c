"""Shared CLI output helpers: JSON on stdout, errors on stderr."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from tasklog.core.config import TasklogConfig, load_config, validate_git_repo
from tasklog.errors import SyncError, TaskValidationError, TasklogError

err_console = Console(stderr=True)


def emit_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def fail(message: str, hint: str | None = None) -> None:
    # Field paths such as relations[0] would otherwise be read as markup.
    err_console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    if hint:
        err_console.print(f"[dim]Hint: {escape(hint)}[/dim]")
    raise typer.Exit(1)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn tasklog errors into an error message and exit status 1."""
    try:
        yield
    except TaskValidationError as exc:
        err_console.print("[red]Error:[/red] Invalid task schema", highlight=False)
        for error in exc.errors:
            err_console.print(f"  - {escape(str(error))}", highlight=False)
        raise typer.Exit(1)
    except SyncError as exc:
        fail(str(exc), f"pull error type: {exc.error_type}")
    except TasklogError as exc:
        fail(str(exc))


def resolve_config(ctx: typer.Context) -> TasklogConfig:
    """Load the config for the command's start directory and check git mode."""
    start_dir: Path | None = (ctx.obj or {}).get("start_dir")
    config = load_config(start_dir)
    validate_git_repo(config)
    return config


__all__ = ["err_console", "emit_json", "fail", "handle_errors", "resolve_config"]
