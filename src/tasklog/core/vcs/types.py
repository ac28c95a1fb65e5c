"""Result types for git driver operations.

Driver operations report expected failures (no remote, conflicts, a
missing branch) through these values rather than by raising, so callers
in multi-worktree setups can decide how to proceed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class PullErrorType(StrEnum):
    """Classification of a failed ``git pull``."""

    CONFLICT = "conflict"
    NO_REMOTE = "no-remote"
    NETWORK = "network"
    OTHER = "other"


class PushState(StrEnum):
    """Whether local commits on the current branch exist on its upstream."""

    PUSHED = "pushed"
    UNPUSHED = "unpushed"
    NO_TRACKING = "no-tracking"


class WorktreePrefix(StrEnum):
    """How worktree directory names are prefixed."""

    PROJECT_NAME = "project-name"
    NONE = "none"


@dataclass(frozen=True)
class GitResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class BranchResult(GitResult):
    branch: str | None = None


@dataclass(frozen=True)
class BranchExistsResult(GitResult):
    exists: bool | None = None


@dataclass(frozen=True)
class ChangesResult(GitResult):
    has_changes: bool | None = None


@dataclass(frozen=True)
class CommitResult(GitResult):
    commit_sha: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "git-status": "success" if self.success else "error",
            "git-commit": self.commit_sha,
        }
        if self.error:
            d["git-error"] = self.error
        return d


@dataclass(frozen=True)
class PullResult(GitResult):
    """Outcome of a pull.

    ``success`` is True both when changes were pulled and when the pull was
    skipped because no remote is configured; ``pulled`` distinguishes them.
    """

    pulled: bool = False
    error_type: PullErrorType | None = None


@dataclass(frozen=True)
class WorktreeInfo:
    """One entry from ``git worktree list --porcelain``."""

    path: str
    head: str | None = None
    branch: str | None = None
    detached: bool = False

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"path": self.path, "head": self.head}
        if self.branch is not None:
            d["branch"] = self.branch
        if self.detached:
            d["detached"] = True
        return d


@dataclass(frozen=True)
class WorktreeListResult(GitResult):
    worktrees: list[WorktreeInfo] = field(default_factory=list)


@dataclass(frozen=True)
class WorktreeLookupResult(GitResult):
    exists: bool | None = None
    worktree: WorktreeInfo | None = None


@dataclass(frozen=True)
class WorktreeBranchResult(GitResult):
    branch: str | None = None
    detached: bool | None = None


@dataclass(frozen=True)
class PushStatusResult(GitResult):
    state: PushState | None = None
    unpushed_count: int = 0
    reason: str = ""

    @property
    def all_pushed(self) -> bool:
        return self.success and self.state == PushState.PUSHED


__all__ = [
    "PullErrorType",
    "PushState",
    "WorktreePrefix",
    "GitResult",
    "BranchResult",
    "BranchExistsResult",
    "ChangesResult",
    "CommitResult",
    "PullResult",
    "WorktreeInfo",
    "WorktreeListResult",
    "WorktreeLookupResult",
    "WorktreeBranchResult",
    "PushStatusResult",
]
