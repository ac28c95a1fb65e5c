"""Git synchronization around task log mutations.

In git mode the tasks directory is its own repository. Before a mutation
its current branch is pulled so the change applies on top of other
agents' work; afterwards the rewritten log files are committed. A missing
remote is fine (local-only task logs), any other pull failure aborts the
mutation. A failed commit never undoes a mutation that already landed on
disk; it is reported alongside the result instead.
"""

from __future__ import annotations

import logging
from pathlib import Path

from tasklog.core.vcs import CommitResult, GitDriver, PullErrorType, PullResult
from tasklog.errors import SyncError
from tasklog.tasks.repository import MutationResult

logger = logging.getLogger(__name__)

TITLE_LIMIT = 50


def truncate_title(title: str, limit: int = TITLE_LIMIT) -> str:
    """Shorten ``title`` to ``limit`` characters, ending in ``...`` when cut."""
    if len(title) <= limit:
        return title
    return title[: limit - 3].rstrip() + "..."


def commit_message(result: MutationResult) -> str:
    task = result.task
    title = truncate_title(task.title)
    if result.action == "complete" and task.is_story:
        count = result.child_count
        suffix = ""
        if count:
            suffix = f" (with {count} task{'s' if count > 1 else ''})"
        return f"Complete story #{task.id}: {title}{suffix}"
    verb = {
        "add": "Add",
        "update": "Update",
        "complete": "Complete",
        "delete": "Delete",
        "reopen": "Reopen",
    }[result.action]
    return f"{verb} task #{task.id}: {title}"


def pull_failure_message(result: PullResult, tasks_dir: Path) -> str:
    if result.error_type == PullErrorType.CONFLICT:
        return f"Pull failed with conflicts. Resolve manually in {tasks_dir}"
    return f"Pull failed: {result.error}"


def sync_before_mutation(driver: GitDriver, tasks_dir: Path) -> PullResult:
    """Pull the tasks repository's current branch from origin.

    Raises:
        SyncError: When the current branch cannot be read, or the pull
            fails for any reason other than a missing remote.
    """
    current = driver.current_branch(tasks_dir)
    if not current.success or not current.branch:
        raise SyncError(
            f"Could not determine the current branch in {tasks_dir}",
            str(PullErrorType.OTHER),
            current.error,
        )
    result = driver.pull(tasks_dir, current.branch)
    if not result.success:
        error_type = result.error_type or PullErrorType.OTHER
        raise SyncError(pull_failure_message(result, tasks_dir), str(error_type), result.error)
    if not result.pulled:
        logger.debug("No remote configured for %s; skipping pull", tasks_dir)
    return result


def commit_mutation(driver: GitDriver, tasks_dir: Path, result: MutationResult) -> CommitResult:
    commit = driver.commit(tasks_dir, list(result.modified_files), commit_message(result))
    if not commit.success:
        logger.warning("Task change saved but not committed in %s: %s", tasks_dir, commit.error)
    return commit


__all__ = [
    "TITLE_LIMIT",
    "truncate_title",
    "commit_message",
    "pull_failure_message",
    "sync_before_mutation",
    "commit_mutation",
]
