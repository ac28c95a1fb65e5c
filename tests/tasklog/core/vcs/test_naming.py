"""Tests for branch and worktree name derivation."""

from __future__ import annotations

from pathlib import Path

import pytest

from tasklog.core.vcs import WorktreePrefix, derive_project_name, derive_worktree_path, sanitize_branch_name


@pytest.mark.parametrize(
    ("title", "task_id", "words", "expected"),
    [
        ("Complete Remaining Work", 45, 4, "45-complete-remaining-work"),
        ("Fix bug #123", 10, 4, "10-fix-bug-123"),
        ("Fix bug #123 in the Parser", 10, 4, "10-fix-bug-123-in"),
        ("  Leading   and trailing  ", 3, 4, "3-leading-and-trailing"),
        ("Über café -- déjà vu", 8, 4, "8-ber-caf-dj-vu"),
        ("ui", 1, 4, "1-ui"),
        ("One two three", 2, 1, "2-one"),
        ("!!!", 45, 4, "task-45"),
        ("", 7, 4, "task-7"),
    ],
)
def test_sanitize_branch_name(title, task_id, words, expected):
    assert sanitize_branch_name(title, task_id, words) == expected


def test_long_names_are_capped():
    name = sanitize_branch_name("x" * 500, 1, 4)
    assert len(name) == 200
    assert name.startswith("1-x")


@pytest.mark.parametrize("title", ["Fix bug #123 in the Parser", "!!!", "Ship it", "12 monkeys rule"])
def test_derivation_is_idempotent(title):
    once = sanitize_branch_name(title, 12, 4)
    assert sanitize_branch_name(once, 12, 4) == once


def test_worktree_path_with_project_prefix(tmp_path: Path):
    project = tmp_path / "mcp-app"
    project.mkdir()
    path = derive_worktree_path(project, "Fix Login Bug", 12)
    assert path == tmp_path.resolve() / "mcp-app-12-fix-login-bug"


def test_worktree_path_without_prefix(tmp_path: Path):
    project = tmp_path / "mcp-app"
    project.mkdir()
    path = derive_worktree_path(project, "Fix Login Bug", 12, prefix=WorktreePrefix.NONE)
    assert path == tmp_path.resolve() / "12-fix-login-bug"


def test_worktree_path_is_stable(tmp_path: Path):
    project = tmp_path / "app"
    project.mkdir()
    first = derive_worktree_path(project, "Refactor the store layer now", 3, 3)
    second = derive_worktree_path(project, "Refactor the store layer now", 3, 3)
    assert first == second == tmp_path.resolve() / "app-3-refactor-the-store"


def test_project_name(tmp_path: Path):
    assert derive_project_name(tmp_path / "my-project") == "my-project"
