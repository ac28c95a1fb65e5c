"""Task workflows: git-synchronized mutations and the work-on setup.

Usage:
    from tasklog.workflow import TaskService, work_on
"""

from __future__ import annotations

from .service import ServiceResult, TaskService
from .sync import commit_message, commit_mutation, sync_before_mutation, truncate_title
from .work_on import (
    BranchOutcome,
    CleanupResult,
    WorkOnResult,
    WorktreeOutcome,
    cleanup_worktree_after_completion,
    manage_branch,
    manage_worktree,
    safe_to_remove_worktree,
    work_on,
)

__all__ = [
    "TaskService",
    "ServiceResult",
    "commit_message",
    "commit_mutation",
    "sync_before_mutation",
    "truncate_title",
    "BranchOutcome",
    "WorktreeOutcome",
    "WorkOnResult",
    "CleanupResult",
    "work_on",
    "manage_branch",
    "manage_worktree",
    "safe_to_remove_worktree",
    "cleanup_worktree_after_completion",
]
