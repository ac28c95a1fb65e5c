"""Git driver.

Wraps the ``git`` command line through an injectable ``CommandRunner``.
Operations return the result dataclasses from ``types`` instead of raising
so callers can react to expected failures (no remote configured, merge
conflicts, an unreachable host) without exception plumbing. Use
``ensure_success`` where a failed step must abort the caller.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from tasklog.errors import WorkflowError

from .protocol import CommandResult, CommandRunner
from .runner import SubprocessRunner
from .types import (
    BranchExistsResult,
    BranchResult,
    ChangesResult,
    CommitResult,
    GitResult,
    PullErrorType,
    PullResult,
    PushState,
    PushStatusResult,
    WorktreeBranchResult,
    WorktreeInfo,
    WorktreeListResult,
    WorktreeLookupResult,
)

logger = logging.getLogger(__name__)

_CONFLICT_PATTERNS = (
    "CONFLICT",
    "Automatic merge failed",
    "fix conflicts",
    "unresolved conflict",
    "unmerged files",
)

_NO_REMOTE_PATTERNS = (
    "does not appear to be a git repository",
    "No configured push destination",
    "No remote repository specified",
)
_NO_REMOTE_RE = re.compile(r"repository '.*' not found")

_NETWORK_PATTERNS = (
    "Could not resolve host",
    "Connection refused",
    "Failed to connect",
    "timed out",
    "Network is unreachable",
    "unable to access",
    "The requested URL returned error",
)

# Phrases git uses when the current branch has no upstream configured.
_NO_UPSTREAM_PATTERNS = (
    "no upstream configured",
    "no upstream branch",
    "does not point to a branch",
    "HEAD does not point to a branch",
)


def _is_conflict(stderr: str) -> bool:
    return any(pattern in stderr for pattern in _CONFLICT_PATTERNS)


def _is_no_remote(stderr: str) -> bool:
    return any(pattern in stderr for pattern in _NO_REMOTE_PATTERNS) or bool(
        _NO_REMOTE_RE.search(stderr)
    )


def _is_network(stderr: str) -> bool:
    return any(pattern in stderr for pattern in _NETWORK_PATTERNS)


def classify_pull_error(returncode: int, stderr: str) -> PullErrorType:
    """Classify a failed pull from its exit code and stderr.

    The exit code only decides which pattern family is tried first (git
    exits 1 for merge failures and 128 for fatal remote errors); every
    family is still checked, so the stderr text is what decides.
    """
    if returncode == 1:
        order = (
            (_is_conflict, PullErrorType.CONFLICT),
            (_is_no_remote, PullErrorType.NO_REMOTE),
            (_is_network, PullErrorType.NETWORK),
        )
    elif returncode == 128:
        order = (
            (_is_no_remote, PullErrorType.NO_REMOTE),
            (_is_network, PullErrorType.NETWORK),
            (_is_conflict, PullErrorType.CONFLICT),
        )
    else:
        order = (
            (_is_conflict, PullErrorType.CONFLICT),
            (_is_no_remote, PullErrorType.NO_REMOTE),
            (_is_network, PullErrorType.NETWORK),
        )
    for matches, error_type in order:
        if matches(stderr):
            return error_type
    return PullErrorType.OTHER


def parse_worktree_porcelain(text: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output.

    Entries are separated by blank lines. ``branch`` lines carry the full
    ref (``refs/heads/feature``); the ``refs/heads/`` prefix is stripped.
    """
    worktrees: list[WorktreeInfo] = []
    current: dict[str, object] = {}

    def flush() -> None:
        if "path" in current:
            worktrees.append(
                WorktreeInfo(
                    path=str(current["path"]),
                    head=current.get("head"),  # type: ignore[arg-type]
                    branch=current.get("branch"),  # type: ignore[arg-type]
                    detached=bool(current.get("detached", False)),
                )
            )
        current.clear()

    for line in text.splitlines():
        if not line.strip():
            flush()
            continue
        if line.startswith("worktree "):
            flush()
            current["path"] = line[len("worktree ") :]
        elif line.startswith("HEAD "):
            current["head"] = line[len("HEAD ") :]
        elif line.startswith("branch "):
            current["branch"] = line[len("branch ") :].removeprefix("refs/heads/")
        elif line == "detached":
            current["detached"] = True
    flush()
    return worktrees


def ensure_success(result: GitResult, operation: str) -> None:
    """Raise WorkflowError if ``result`` reports a failure."""
    if not result.success:
        raise WorkflowError(f"Git {operation} failed: {result.error or 'unknown error'}")


def _error_text(result: CommandResult) -> str:
    return (result.stderr or result.stdout).strip() or f"git exited with status {result.returncode}"


def _same_path(a: str | Path, b: str | Path) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


class GitDriver:
    """Synchronous git operations against a working directory."""

    def __init__(self, runner: CommandRunner | None = None):
        self.runner = runner or SubprocessRunner()

    def _git(self, cwd: Path, *args: str) -> CommandResult:
        return self.runner.run(list(args), Path(cwd))

    # Branches

    def current_branch(self, repo_dir: Path) -> BranchResult:
        result = self._git(repo_dir, "rev-parse", "--abbrev-ref", "HEAD")
        if not result.ok:
            return BranchResult(success=False, error=_error_text(result))
        return BranchResult(success=True, branch=result.stdout.strip())

    def default_branch(self, repo_dir: Path) -> BranchResult:
        """Branch that ``origin/HEAD`` points at, else ``main``, else ``master``."""
        result = self._git(repo_dir, "symbolic-ref", "refs/remotes/origin/HEAD", "--short")
        if result.ok and result.stdout.strip():
            return BranchResult(success=True, branch=result.stdout.strip().removeprefix("origin/"))

        for candidate in ("main", "master"):
            exists = self.branch_exists(repo_dir, candidate)
            if exists.success and exists.exists:
                return BranchResult(success=True, branch=candidate)
        return BranchResult(
            success=False,
            error="Could not determine default branch (no origin/HEAD, main or master)",
        )

    def branch_exists(self, repo_dir: Path, branch: str) -> BranchExistsResult:
        result = self._git(repo_dir, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}")
        if result.ok:
            return BranchExistsResult(success=True, exists=True)
        # --quiet exits 1 with no output for a missing ref.
        if result.returncode == 1 and not result.stderr.strip():
            return BranchExistsResult(success=True, exists=False)
        return BranchExistsResult(success=False, error=_error_text(result))

    def checkout(self, repo_dir: Path, branch: str) -> GitResult:
        result = self._git(repo_dir, "checkout", branch)
        if not result.ok:
            return GitResult(success=False, error=_error_text(result))
        return GitResult(success=True)

    def create_and_checkout(self, repo_dir: Path, branch: str) -> GitResult:
        result = self._git(repo_dir, "checkout", "-b", branch)
        if not result.ok:
            return GitResult(success=False, error=_error_text(result))
        return GitResult(success=True)

    def check_uncommitted_changes(self, repo_dir: Path) -> ChangesResult:
        result = self._git(repo_dir, "status", "--porcelain")
        if not result.ok:
            return ChangesResult(success=False, error=_error_text(result))
        return ChangesResult(success=True, has_changes=bool(result.stdout.strip()))

    # Commits and synchronization

    def commit(self, repo_dir: Path, files: list[str], message: str) -> CommitResult:
        """Stage ``files`` and commit them. Never raises."""
        try:
            added = self._git(repo_dir, "add", "--", *files)
            if not added.ok:
                return CommitResult(success=False, error=_error_text(added))

            committed = self._git(repo_dir, "commit", "-m", message)
            if not committed.ok:
                return CommitResult(success=False, error=_error_text(committed))

            head = self._git(repo_dir, "rev-parse", "HEAD")
            if not head.ok:
                return CommitResult(success=False, error=_error_text(head))
            return CommitResult(success=True, commit_sha=head.stdout.strip())
        except OSError as exc:
            return CommitResult(success=False, error=str(exc))

    def pull(self, repo_dir: Path, branch: str) -> PullResult:
        """Pull ``branch`` from origin, classifying any failure.

        A missing remote is not an error: the result is successful with
        ``pulled`` False.
        """
        result = self._git(repo_dir, "pull", "origin", branch)
        if result.ok:
            return PullResult(success=True, pulled=True)

        stderr = result.stderr.strip()
        error_type = classify_pull_error(result.returncode, stderr)
        if error_type == PullErrorType.NO_REMOTE:
            return PullResult(success=True, pulled=False, error_type=error_type)
        if error_type == PullErrorType.OTHER and stderr:
            logger.warning("Unrecognized git pull error in %s: %s", repo_dir, stderr)
        return PullResult(
            success=False,
            pulled=False,
            error=stderr or _error_text(result),
            error_type=error_type,
        )

    def check_all_pushed(self, repo_dir: Path) -> PushStatusResult:
        """Report whether every local commit on the current branch is on its upstream."""
        upstream = self._git(repo_dir, "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")
        if not upstream.ok:
            stderr = upstream.stderr.strip()
            if any(pattern in stderr for pattern in _NO_UPSTREAM_PATTERNS):
                return PushStatusResult(
                    success=True,
                    state=PushState.NO_TRACKING,
                    reason="Branch has no remote tracking branch",
                )
            return PushStatusResult(success=False, error=_error_text(upstream))

        counted = self._git(repo_dir, "rev-list", "--count", "@{u}..HEAD")
        if not counted.ok:
            return PushStatusResult(success=False, error=_error_text(counted))
        try:
            count = int(counted.stdout.strip() or "0")
        except ValueError:
            return PushStatusResult(
                success=False, error=f"Unexpected rev-list output: {counted.stdout.strip()!r}"
            )

        if count > 0:
            return PushStatusResult(
                success=True,
                state=PushState.UNPUSHED,
                unpushed_count=count,
                reason=f"Branch has {count} unpushed commit(s)",
            )
        return PushStatusResult(success=True, state=PushState.PUSHED)

    # Worktrees

    def list_worktrees(self, repo_dir: Path) -> WorktreeListResult:
        result = self._git(repo_dir, "worktree", "list", "--porcelain")
        if not result.ok:
            return WorktreeListResult(success=False, error=_error_text(result))
        return WorktreeListResult(success=True, worktrees=parse_worktree_porcelain(result.stdout))

    def worktree_exists(self, repo_dir: Path, worktree_path: Path) -> WorktreeLookupResult:
        listed = self.list_worktrees(repo_dir)
        if not listed.success:
            return WorktreeLookupResult(success=False, error=listed.error)
        for worktree in listed.worktrees:
            if _same_path(worktree.path, worktree_path):
                return WorktreeLookupResult(success=True, exists=True, worktree=worktree)
        return WorktreeLookupResult(success=True, exists=False)

    def find_worktree_for_branch(self, repo_dir: Path, branch: str) -> WorktreeLookupResult:
        listed = self.list_worktrees(repo_dir)
        if not listed.success:
            return WorktreeLookupResult(success=False, error=listed.error)
        for worktree in listed.worktrees:
            if worktree.branch == branch:
                return WorktreeLookupResult(success=True, exists=True, worktree=worktree)
        return WorktreeLookupResult(success=True, exists=False)

    def worktree_branch(self, worktree_dir: Path) -> WorktreeBranchResult:
        result = self._git(worktree_dir, "rev-parse", "--abbrev-ref", "HEAD")
        if not result.ok:
            return WorktreeBranchResult(success=False, error=_error_text(result))
        branch = result.stdout.strip()
        if branch == "HEAD":
            return WorktreeBranchResult(success=True, branch=None, detached=True)
        return WorktreeBranchResult(success=True, branch=branch, detached=False)

    def create_worktree(
        self,
        main_repo_dir: Path,
        worktree_path: Path,
        branch: str,
        base_branch: str | None = None,
    ) -> GitResult:
        """Add a worktree for ``branch``.

        With ``base_branch`` a new branch is created from it; without one the
        branch must already exist.
        """
        if base_branch:
            args = ["worktree", "add", str(worktree_path), "-b", branch, base_branch]
        else:
            args = ["worktree", "add", str(worktree_path), branch]
        result = self._git(main_repo_dir, *args)
        if not result.ok:
            return GitResult(success=False, error=_error_text(result))
        logger.info("Created worktree %s on branch %s", worktree_path, branch)
        return GitResult(success=True)

    def remove_worktree(self, main_repo_dir: Path, worktree_path: Path) -> GitResult:
        result = self._git(main_repo_dir, "worktree", "remove", str(worktree_path))
        if not result.ok:
            return GitResult(success=False, error=_error_text(result))
        logger.info("Removed worktree %s", worktree_path)
        return GitResult(success=True)


__all__ = [
    "GitDriver",
    "classify_pull_error",
    "parse_worktree_porcelain",
    "ensure_success",
]
