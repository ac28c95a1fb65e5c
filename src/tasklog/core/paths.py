"""Path helpers: task log locations and main-repository resolution.

In a secondary git worktree ``.git`` is a file containing a redirect such
as ``gitdir: /repo/.git/worktrees/name``; in the main repository it is a
directory. Repository-wide operations (listing, creating and removing
worktrees) must run from the main repository root, which
``get_main_repo_root`` recovers from either kind of directory.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from tasklog.errors import WorkflowError

from .constants import COMPLETE_FILENAME, TASKS_FILENAME

_GITDIR_RE = re.compile(r"^gitdir:\s*(.+)$", re.MULTILINE)


def is_worktree(directory: Path) -> bool:
    """True if ``directory`` is a secondary worktree (``.git`` is a file)."""
    return (directory / ".git").is_file()


def find_main_repo(worktree_dir: Path) -> Path:
    """Resolve the main repository root from a worktree's ``.git`` file.

    Raises:
        WorkflowError: If the ``.git`` file does not contain a gitdir line.
    """
    git_file = worktree_dir / ".git"
    content = git_file.read_text(encoding="utf-8")
    match = _GITDIR_RE.search(content)
    if not match:
        raise WorkflowError(f"Invalid .git file format in worktree {worktree_dir}: {content.strip()!r}")

    gitdir = Path(match.group(1).strip())
    if not gitdir.is_absolute():
        gitdir = worktree_dir / gitdir
    gitdir = gitdir.resolve()

    # gitdir points at <main>/.git/worktrees/<name>; walk up to the .git directory.
    main_git_dir = gitdir
    while main_git_dir.name != ".git":
        if main_git_dir == main_git_dir.parent:
            # Non-standard layout (e.g. GIT_DIR elsewhere): fall back to two levels up.
            main_git_dir = gitdir.parent.parent
            break
        main_git_dir = main_git_dir.parent
    return main_git_dir.parent


def get_main_repo_root(directory: Path) -> Path:
    """Return the main repository root for a worktree or main-repo directory."""
    directory = directory.resolve()
    if is_worktree(directory):
        return find_main_repo(directory)
    return directory


@dataclass(frozen=True)
class TaskPaths:
    """Locations of the active and archive logs inside a tasks directory."""

    tasks_dir: Path

    @property
    def tasks_file(self) -> Path:
        return self.tasks_dir / TASKS_FILENAME

    @property
    def complete_file(self) -> Path:
        return self.tasks_dir / COMPLETE_FILENAME

    @property
    def tasks_rel_path(self) -> str:
        """Active log path relative to the tasks directory (for git staging)."""
        return TASKS_FILENAME

    @property
    def complete_rel_path(self) -> str:
        return COMPLETE_FILENAME


__all__ = ["is_worktree", "find_main_repo", "get_main_repo_root", "TaskPaths"]
