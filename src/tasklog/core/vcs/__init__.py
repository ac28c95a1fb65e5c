"""
Git Driver Package
==================

Synchronous git operations for committing task log changes and for
isolating task work in per-task branches and worktrees.

Usage:
    from tasklog.core.vcs import GitDriver, PullErrorType

    driver = GitDriver()
    result = driver.pull(repo_dir, "main")
    if not result.success and result.error_type == PullErrorType.CONFLICT:
        ...

Tests inject a fake ``CommandRunner`` instead of spawning git.
"""

from __future__ import annotations

# Enums
from .types import (
    PullErrorType,
    PushState,
    WorktreePrefix,
)

# Result dataclasses
from .types import (
    BranchExistsResult,
    BranchResult,
    ChangesResult,
    CommitResult,
    GitResult,
    PullResult,
    PushStatusResult,
    WorktreeBranchResult,
    WorktreeInfo,
    WorktreeListResult,
    WorktreeLookupResult,
)

# Runner protocol
from .protocol import CommandResult, CommandRunner
from .runner import SubprocessRunner

# Driver
from .git import GitDriver, classify_pull_error, ensure_success, parse_worktree_porcelain

# Naming
from .naming import derive_project_name, derive_worktree_path, sanitize_branch_name

__all__ = [
    # Enums
    "PullErrorType",
    "PushState",
    "WorktreePrefix",
    # Results
    "GitResult",
    "BranchResult",
    "BranchExistsResult",
    "ChangesResult",
    "CommitResult",
    "PullResult",
    "PushStatusResult",
    "WorktreeInfo",
    "WorktreeListResult",
    "WorktreeLookupResult",
    "WorktreeBranchResult",
    # Runner
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
    # Driver
    "GitDriver",
    "classify_pull_error",
    "parse_worktree_porcelain",
    "ensure_success",
    # Naming
    "sanitize_branch_name",
    "derive_project_name",
    "derive_worktree_path",
]
