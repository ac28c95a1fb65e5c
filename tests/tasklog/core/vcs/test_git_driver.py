"""Tests for GitDriver against a fake command runner."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tasklog.core.vcs import (
    CommandRunner,
    GitDriver,
    GitResult,
    PullErrorType,
    PushState,
    classify_pull_error,
    ensure_success,
    parse_worktree_porcelain,
)
from tasklog.errors import WorkflowError

REPO = Path("/repo")

PORCELAIN = """\
worktree /repo
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /work/repo-12-fix-login
HEAD 2222222222222222222222222222222222222222
branch refs/heads/12-fix-login

worktree /work/detached
HEAD 3333333333333333333333333333333333333333
detached
"""


@pytest.fixture()
def driver(fake_runner) -> GitDriver:
    return GitDriver(fake_runner)


def test_fake_runner_satisfies_protocol(fake_runner):
    assert isinstance(fake_runner, CommandRunner)


class TestClassifyPullError:
    @pytest.mark.parametrize(
        ("returncode", "stderr", "expected"),
        [
            (1, "CONFLICT (content): Merge conflict in tasks.jsonl", PullErrorType.CONFLICT),
            (1, "Automatic merge failed; fix conflicts and then commit the result.", PullErrorType.CONFLICT),
            (128, "error: Pulling is not possible because you have unmerged files.", PullErrorType.CONFLICT),
            (128, "fatal: 'origin' does not appear to be a git repository", PullErrorType.NO_REMOTE),
            (1, "fatal: No remote repository specified.", PullErrorType.NO_REMOTE),
            (128, "remote: Repository not found.\nfatal: repository 'https://x/y.git' not found", PullErrorType.NO_REMOTE),
            (128, "fatal: unable to access 'https://x/': Could not resolve host: x", PullErrorType.NETWORK),
            (1, "ssh: connect to host x port 22: Connection refused", PullErrorType.NETWORK),
            (128, "fatal: The requested URL returned error: 503", PullErrorType.NETWORK),
            (2, "Operation timed out", PullErrorType.NETWORK),
            (1, "fatal: refusing to merge unrelated histories", PullErrorType.OTHER),
            (128, "", PullErrorType.OTHER),
        ],
    )
    def test_patterns(self, returncode, stderr, expected):
        assert classify_pull_error(returncode, stderr) == expected


class TestPull:
    def test_success(self, driver, fake_runner):
        fake_runner.on("pull", stdout="Already up to date.\n")
        result = driver.pull(REPO, "main")
        assert result.success and result.pulled
        assert fake_runner.calls == [(["pull", "origin", "main"], REPO)]

    def test_conflict(self, driver, fake_runner):
        fake_runner.on("pull", returncode=1, stderr="CONFLICT (content): Merge conflict in tasks.jsonl\n")
        result = driver.pull(REPO, "main")
        assert not result.success
        assert result.error_type == PullErrorType.CONFLICT
        assert "CONFLICT" in result.error

    def test_network(self, driver, fake_runner):
        fake_runner.on("pull", returncode=128, stderr="fatal: Could not resolve host: github.com\n")
        result = driver.pull(REPO, "main")
        assert not result.success
        assert result.error_type == PullErrorType.NETWORK

    def test_no_remote_is_success(self, driver, fake_runner):
        fake_runner.on(
            "pull", returncode=128, stderr="fatal: 'origin' does not appear to be a git repository\n"
        )
        result = driver.pull(REPO, "main")
        assert result.success
        assert result.pulled is False
        assert result.error_type == PullErrorType.NO_REMOTE

    def test_other_logs_stderr(self, driver, fake_runner, caplog):
        fake_runner.on("pull", returncode=1, stderr="fatal: something unexpected\n")
        with caplog.at_level(logging.WARNING, logger="tasklog.core.vcs.git"):
            result = driver.pull(REPO, "main")
        assert result.error_type == PullErrorType.OTHER
        assert any("something unexpected" in r.getMessage() for r in caplog.records)


class TestCommit:
    def test_success_returns_sha(self, driver, fake_runner):
        fake_runner.on("rev-parse", "HEAD", stdout="abc123\n")
        result = driver.commit(REPO, ["tasks.jsonl", "complete.jsonl"], "Complete task #1: A")

        assert result.success
        assert result.commit_sha == "abc123"
        assert fake_runner.commands() == [
            ["add", "--", "tasks.jsonl", "complete.jsonl"],
            ["commit", "-m", "Complete task #1: A"],
            ["rev-parse", "HEAD"],
        ]
        assert result.to_dict() == {"git-status": "success", "git-commit": "abc123"}

    def test_failure_does_not_raise(self, driver, fake_runner):
        fake_runner.on("commit", returncode=1, stdout="nothing to commit, working tree clean\n")
        result = driver.commit(REPO, ["tasks.jsonl"], "msg")

        assert not result.success
        assert result.commit_sha is None
        assert "nothing to commit" in result.error
        assert result.to_dict()["git-status"] == "error"

    def test_os_error_does_not_raise(self):
        class ExplodingRunner:
            def run(self, args, cwd):
                raise PermissionError("git not executable")

        result = GitDriver(ExplodingRunner()).commit(REPO, ["tasks.jsonl"], "msg")
        assert not result.success
        assert "not executable" in result.error


class TestBranches:
    def test_current_branch(self, driver, fake_runner):
        fake_runner.on("rev-parse", "--abbrev-ref", "HEAD", stdout="main\n")
        assert driver.current_branch(REPO).branch == "main"

    def test_default_branch_from_origin_head(self, driver, fake_runner):
        fake_runner.on("symbolic-ref", stdout="origin/trunk\n")
        assert driver.default_branch(REPO).branch == "trunk"

    def test_default_branch_falls_back_to_main(self, driver, fake_runner):
        fake_runner.on("symbolic-ref", returncode=128, stderr="fatal: ref refs/remotes/origin/HEAD is not a symbolic ref")
        assert driver.default_branch(REPO).branch == "main"

    def test_default_branch_falls_back_to_master(self, driver, fake_runner):
        fake_runner.on("symbolic-ref", returncode=128, stderr="fatal: not a symbolic ref")
        fake_runner.on("rev-parse", "--verify", "--quiet", "refs/heads/main", returncode=1)
        assert driver.default_branch(REPO).branch == "master"

    def test_default_branch_unknown(self, driver, fake_runner):
        fake_runner.on("symbolic-ref", returncode=128, stderr="fatal: not a symbolic ref")
        fake_runner.on("rev-parse", "--verify", returncode=1)
        result = driver.default_branch(REPO)
        assert not result.success

    def test_branch_exists(self, driver, fake_runner):
        fake_runner.on("rev-parse", "--verify", "--quiet", "refs/heads/gone", returncode=1)
        assert driver.branch_exists(REPO, "main").exists is True
        assert driver.branch_exists(REPO, "gone").exists is False

    def test_branch_exists_error(self, driver, fake_runner):
        fake_runner.on("rev-parse", returncode=128, stderr="fatal: not a git repository")
        result = driver.branch_exists(REPO, "main")
        assert not result.success
        assert "not a git repository" in result.error

    def test_uncommitted_changes(self, driver, fake_runner):
        fake_runner.on("status", "--porcelain", stdout=" M tasks.jsonl\n")
        assert driver.check_uncommitted_changes(REPO).has_changes is True

    def test_create_and_checkout(self, driver, fake_runner):
        assert driver.create_and_checkout(REPO, "12-fix").success
        assert fake_runner.commands() == [["checkout", "-b", "12-fix"]]


class TestWorktrees:
    def test_parse_porcelain(self):
        worktrees = parse_worktree_porcelain(PORCELAIN)
        assert [w.path for w in worktrees] == ["/repo", "/work/repo-12-fix-login", "/work/detached"]
        assert worktrees[1].branch == "12-fix-login"
        assert worktrees[1].head.startswith("2222")
        assert worktrees[2].detached is True
        assert worktrees[2].branch is None

    def test_parse_empty(self):
        assert parse_worktree_porcelain("") == []

    def test_find_worktree_for_branch(self, driver, fake_runner):
        fake_runner.on("worktree", "list", stdout=PORCELAIN)
        found = driver.find_worktree_for_branch(REPO, "12-fix-login")
        assert found.exists
        assert found.worktree.path == "/work/repo-12-fix-login"

        missing = driver.find_worktree_for_branch(REPO, "99-nothing")
        assert missing.success and not missing.exists

    def test_worktree_exists_by_path(self, driver, fake_runner):
        fake_runner.on("worktree", "list", stdout=PORCELAIN)
        assert driver.worktree_exists(REPO, Path("/work/detached")).exists
        assert not driver.worktree_exists(REPO, Path("/work/other")).exists

    def test_create_worktree_new_branch(self, driver, fake_runner):
        result = driver.create_worktree(REPO, Path("/work/repo-12-fix"), "12-fix", "main")
        assert result.success
        assert fake_runner.commands() == [["worktree", "add", "/work/repo-12-fix", "-b", "12-fix", "main"]]

    def test_create_worktree_existing_branch(self, driver, fake_runner):
        driver.create_worktree(REPO, Path("/work/repo-12-fix"), "12-fix")
        assert fake_runner.commands() == [["worktree", "add", "/work/repo-12-fix", "12-fix"]]

    def test_remove_worktree_failure(self, driver, fake_runner):
        fake_runner.on("worktree", "remove", returncode=128, stderr="fatal: '/work/x' contains modified files")
        result = driver.remove_worktree(REPO, Path("/work/x"))
        assert not result.success
        assert "modified files" in result.error

    def test_worktree_branch_detached(self, driver, fake_runner):
        fake_runner.on("rev-parse", "--abbrev-ref", "HEAD", stdout="HEAD\n")
        result = driver.worktree_branch(Path("/work/detached"))
        assert result.detached is True
        assert result.branch is None


class TestCheckAllPushed:
    def test_pushed(self, driver, fake_runner):
        fake_runner.on("rev-parse", "--abbrev-ref", "--symbolic-full-name", stdout="origin/12-fix\n")
        fake_runner.on("rev-list", stdout="0\n")
        result = driver.check_all_pushed(REPO)
        assert result.state == PushState.PUSHED
        assert result.all_pushed

    def test_unpushed(self, driver, fake_runner):
        fake_runner.on("rev-parse", "--abbrev-ref", "--symbolic-full-name", stdout="origin/12-fix\n")
        fake_runner.on("rev-list", stdout="3\n")
        result = driver.check_all_pushed(REPO)
        assert result.state == PushState.UNPUSHED
        assert result.unpushed_count == 3
        assert not result.all_pushed
        assert "3 unpushed" in result.reason

    def test_no_tracking(self, driver, fake_runner):
        fake_runner.on(
            "rev-parse",
            "--abbrev-ref",
            "--symbolic-full-name",
            returncode=128,
            stderr="fatal: no upstream configured for branch '12-fix'",
        )
        result = driver.check_all_pushed(REPO)
        assert result.success
        assert result.state == PushState.NO_TRACKING
        assert not result.all_pushed

    def test_hard_failure(self, driver, fake_runner):
        fake_runner.on(
            "rev-parse",
            "--abbrev-ref",
            "--symbolic-full-name",
            returncode=128,
            stderr="fatal: not a git repository (or any of the parent directories): .git",
        )
        result = driver.check_all_pushed(REPO)
        assert not result.success
        assert result.state is None


def test_ensure_success():
    ensure_success(GitResult(success=True), "checkout")
    with pytest.raises(WorkflowError, match="Git checkout failed: boom"):
        ensure_success(GitResult(success=False, error="boom"), "checkout")
