"""Prepare the environment for working on a task.

``work_on`` validates the task (and its parent story), optionally moves
the checkout onto the task's branch or sets up a dedicated worktree, and
records the execution state. Tasks belonging to a story share the story's
branch and worktree.

Repository-wide operations (branch lookup, worktree listing, creation and
removal) run against the main repository root so they behave the same
from inside any worktree.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from tasklog.core.config import TasklogConfig
from tasklog.core.vcs import (
    GitDriver,
    PullErrorType,
    derive_worktree_path,
    ensure_success,
    sanitize_branch_name,
)
from tasklog.errors import TaskNotFoundError, WorkflowError
from tasklog.tasks.execution_state import ExecutionState, write_execution_state
from tasklog.tasks.graph import why_blocked
from tasklog.tasks.models import Task
from tasklog.tasks.repository import TaskRepository

logger = logging.getLogger(__name__)

UNCOMMITTED_CHANGES_MESSAGE = (
    "Cannot switch branches with uncommitted changes. "
    "Please commit or stash your changes first."
)


@dataclass(frozen=True)
class BranchOutcome:
    branch_name: str
    created: bool
    switched: bool


@dataclass(frozen=True)
class WorktreeOutcome:
    """Where the task's worktree is and whether the caller has to move there."""

    path: Path
    branch_name: str
    created: bool
    needs_directory_switch: bool
    clean: bool | None = None
    message: str | None = None

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class WorkOnResult:
    task: Task
    is_blocked: bool
    blocking_ids: list[int]
    message: str
    execution_state_file: Path | None = None
    branch: BranchOutcome | None = None
    worktree: WorktreeOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "task-id": self.task.id,
            "title": self.task.title,
            "category": self.task.category,
            "type": str(self.task.type),
            "status": str(self.task.status),
            "is-blocked": self.is_blocked,
            "blocking-task-ids": list(self.blocking_ids),
            "message": self.message,
        }
        if self.execution_state_file is not None:
            data["execution-state-file"] = str(self.execution_state_file)
        if self.branch is not None:
            data["branch-name"] = self.branch.branch_name
            data["branch-created"] = self.branch.created
            data["branch-switched"] = self.branch.switched
        if self.worktree is not None:
            data["branch-name"] = self.worktree.branch_name
            data["worktree-path"] = str(self.worktree.path)
            data["worktree-name"] = self.worktree.name
            data["worktree-created"] = self.worktree.created
            data["needs-directory-switch"] = self.worktree.needs_directory_switch
            data["worktree-clean"] = self.worktree.clean
        return data


@dataclass(frozen=True)
class CleanupResult:
    success: bool
    message: str | None = None
    error: str | None = None


def _same_dir(a: Path, b: Path) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


def switch_message(created: bool, worktree_path: Path) -> str:
    status = "created" if created else "exists"
    return (
        f"Worktree {status} at {worktree_path}. "
        "Please start a new agent session in that directory."
    )


def resolve_base_branch(driver: GitDriver, config: TasklogConfig) -> str:
    """Configured base branch (which must exist), else the repository default."""
    main_repo_dir = config.main_repo_dir
    if config.base_branch:
        exists = driver.branch_exists(main_repo_dir, config.base_branch)
        ensure_success(exists, f"branch-exists {config.base_branch}")
        if not exists.exists:
            raise WorkflowError(f"Configured base branch {config.base_branch} does not exist")
        return config.base_branch

    default = driver.default_branch(main_repo_dir)
    ensure_success(default, "default-branch")
    if not default.branch:
        raise WorkflowError(f"Could not determine default branch in {main_repo_dir}")
    return default.branch


def manage_branch(driver: GitDriver, config: TasklogConfig, branch_name: str) -> BranchOutcome:
    """Check out ``branch_name`` in the base directory, creating it from the base branch."""
    base_dir = config.base_dir
    current = driver.current_branch(base_dir)
    ensure_success(current, "current-branch")
    if current.branch == branch_name:
        return BranchOutcome(branch_name, created=False, switched=False)

    changes = driver.check_uncommitted_changes(base_dir)
    ensure_success(changes, "check-uncommitted-changes")
    if changes.has_changes:
        raise WorkflowError(UNCOMMITTED_CHANGES_MESSAGE)

    base_branch = resolve_base_branch(driver, config)
    ensure_success(driver.checkout(base_dir, base_branch), f"checkout {base_branch}")

    pulled = driver.pull(base_dir, base_branch)
    if not pulled.success:
        # Starting from a stale base branch is acceptable.
        logger.warning("Could not update %s before branching: %s", base_branch, pulled.error)
    elif pulled.error_type == PullErrorType.NO_REMOTE:
        logger.debug("No remote for %s; branching from local state", base_dir)

    exists = driver.branch_exists(config.main_repo_dir, branch_name)
    ensure_success(exists, f"branch-exists {branch_name}")
    if exists.exists:
        ensure_success(driver.checkout(base_dir, branch_name), f"checkout {branch_name}")
        return BranchOutcome(branch_name, created=False, switched=True)

    ensure_success(
        driver.create_and_checkout(base_dir, branch_name), f"create-and-checkout {branch_name}"
    )
    return BranchOutcome(branch_name, created=True, switched=True)


def _worktree_status(driver: GitDriver, worktree_path: Path, branch_name: str) -> WorktreeOutcome:
    changes = driver.check_uncommitted_changes(worktree_path)
    ensure_success(changes, "check-uncommitted-changes")
    return WorktreeOutcome(
        path=worktree_path,
        branch_name=branch_name,
        created=False,
        needs_directory_switch=False,
        clean=not changes.has_changes,
    )


def manage_worktree(
    driver: GitDriver,
    config: TasklogConfig,
    cwd: Path,
    source: Task,
    branch_name: str,
) -> WorktreeOutcome:
    """Find or create the worktree for ``branch_name``.

    ``source`` is the task or story the branch is named after.
    """
    main_repo_dir = config.main_repo_dir

    found = driver.find_worktree_for_branch(main_repo_dir, branch_name)
    ensure_success(found, "find-worktree-for-branch")
    if found.worktree is not None:
        worktree_path = Path(found.worktree.path)
        if _same_dir(cwd, worktree_path):
            return _worktree_status(driver, worktree_path, branch_name)
        return WorktreeOutcome(
            path=worktree_path,
            branch_name=branch_name,
            created=False,
            needs_directory_switch=True,
            message=switch_message(False, worktree_path),
        )

    worktree_path = derive_worktree_path(
        main_repo_dir,
        source.title,
        source.id,
        config.branch_title_words,
        config.worktree_prefix,
    )
    lookup = driver.worktree_exists(main_repo_dir, worktree_path)
    ensure_success(lookup, "worktree-exists")

    if not lookup.exists:
        exists = driver.branch_exists(main_repo_dir, branch_name)
        ensure_success(exists, f"branch-exists {branch_name}")
        base_branch = None if exists.exists else resolve_base_branch(driver, config)
        ensure_success(
            driver.create_worktree(main_repo_dir, worktree_path, branch_name, base_branch),
            f"create-worktree {worktree_path} {branch_name}",
        )
        return WorktreeOutcome(
            path=worktree_path,
            branch_name=branch_name,
            created=True,
            needs_directory_switch=True,
            message=switch_message(True, worktree_path),
        )

    if not _same_dir(cwd, worktree_path):
        return WorktreeOutcome(
            path=worktree_path,
            branch_name=branch_name,
            created=False,
            needs_directory_switch=True,
            message=switch_message(False, worktree_path),
        )

    current = driver.worktree_branch(worktree_path)
    ensure_success(current, "worktree-branch")
    if current.branch != branch_name:
        raise WorkflowError(
            f"Worktree is on branch {current.branch or '(detached HEAD)'} but expected {branch_name}"
        )
    return _worktree_status(driver, worktree_path, branch_name)


def _load_task_and_story(repository: TaskRepository, task_id: int) -> tuple[Task, Task | None]:
    snapshot = repository.load()
    task = snapshot.by_id.get(task_id)
    if task is None:
        raise TaskNotFoundError(task_id, repository.paths.tasks_file)
    if task.parent_id is None:
        return task, None

    story = snapshot.by_id.get(task.parent_id)
    if story is None:
        raise WorkflowError(
            f"Task {task_id} references a parent story that does not exist: {task.parent_id}"
        )
    if not story.is_story:
        raise WorkflowError(f"Parent task {task.parent_id} is not a story")
    return task, story


def work_on(
    config: TasklogConfig,
    task_id: int,
    *,
    cwd: Path | None = None,
    driver: GitDriver | None = None,
    now: datetime | None = None,
) -> WorkOnResult:
    """Set up branch, worktree and execution state for ``task_id``.

    When the work belongs in a worktree other than ``cwd`` the result says
    so (``worktree.needs_directory_switch``) and no execution state is
    written; the agent should restart in the worktree and call this again.

    Raises:
        TaskNotFoundError: If the task does not exist.
        WorkflowError: If the parent story is invalid or a git step fails.
    """
    cwd = Path(cwd or Path.cwd())
    driver = driver or GitDriver()
    repository = TaskRepository(config.paths)

    task, story = _load_task_and_story(repository, task_id)
    source = story or task
    branch_name = sanitize_branch_name(source.title, source.id, config.branch_title_words)

    branch: BranchOutcome | None = None
    worktree: WorktreeOutcome | None = None
    if config.worktree_management:
        worktree = manage_worktree(driver, config, cwd, source, branch_name)
    elif config.branch_management:
        branch = manage_branch(driver, config, branch_name)

    blocking = repository.why_blocked(task.id)
    if worktree is not None and worktree.needs_directory_switch:
        return WorkOnResult(
            task=task,
            is_blocked=blocking.is_blocked,
            blocking_ids=blocking.blocking_ids,
            message=worktree.message or "",
            worktree=worktree,
        )

    if task.is_story:
        state = ExecutionState.start(story_id=task.id, now=now)
    else:
        state = ExecutionState.start(task_id=task.id, story_id=task.parent_id, now=now)
    state_file = write_execution_state(config.base_dir, state)

    return WorkOnResult(
        task=task,
        is_blocked=blocking.is_blocked,
        blocking_ids=blocking.blocking_ids,
        message="Task validated successfully and execution state written",
        execution_state_file=state_file,
        branch=branch,
        worktree=worktree,
    )


def safe_to_remove_worktree(driver: GitDriver, worktree_path: Path) -> tuple[bool, str]:
    """Whether removing the worktree would lose work, with the reason."""
    changes = driver.check_uncommitted_changes(worktree_path)
    if not changes.success:
        return False, f"Failed to check uncommitted changes: {changes.error}"
    if changes.has_changes:
        return False, "Uncommitted changes exist in worktree"

    pushed = driver.check_all_pushed(worktree_path)
    if not pushed.success:
        return False, f"Failed to check push status: {pushed.error}"
    if not pushed.all_pushed:
        return False, pushed.reason
    return True, "Worktree is clean and all commits are pushed"


def cleanup_worktree_after_completion(
    main_repo_dir: Path,
    worktree_path: Path,
    *,
    driver: GitDriver | None = None,
) -> CleanupResult:
    """Remove a task worktree once nothing in it would be lost."""
    driver = driver or GitDriver()
    safe, reason = safe_to_remove_worktree(driver, worktree_path)
    if not safe:
        logger.warning("Skipping removal of worktree %s: %s", worktree_path, reason)
        return CleanupResult(success=False, error=f"Cannot remove worktree: {reason}")

    removed = driver.remove_worktree(main_repo_dir, worktree_path)
    if not removed.success:
        logger.warning("Failed to remove worktree %s: %s", worktree_path, removed.error)
        return CleanupResult(success=False, error=f"Failed to remove worktree: {removed.error}")
    return CleanupResult(success=True, message=f"Worktree removed at {worktree_path}")


__all__ = [
    "UNCOMMITTED_CHANGES_MESSAGE",
    "BranchOutcome",
    "WorktreeOutcome",
    "WorkOnResult",
    "CleanupResult",
    "switch_message",
    "resolve_base_branch",
    "manage_branch",
    "manage_worktree",
    "work_on",
    "safe_to_remove_worktree",
    "cleanup_worktree_after_completion",
]
