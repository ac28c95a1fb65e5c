"""End-to-end tests for the tasklog command line."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tasklog import __version__
from tasklog.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """The CLI callback reconfigures the root logger against the runner's stderr."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def invoke(project: Path, *args: str):
    return runner.invoke(app, ["--dir", str(project), *args])


def invoke_json(project: Path, *args: str):
    result = invoke(project, *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"tasklog {__version__}" in result.stdout


def test_add_and_show(project: Path):
    added = invoke_json(project, "add", "Fix login redirect", "--category", "bugfix", "--type", "bug", "--meta", "owner=sam")

    assert added["task"]["id"] == 1
    assert added["task"]["type"] == "bug"
    assert added["task"]["meta"] == {"owner": "sam"}
    assert added["modified-files"] == ["tasks.jsonl"]
    assert "git-status" not in added
    assert (project / ".tasklog" / "tasks.jsonl").exists()

    shown = invoke_json(project, "show", "1")
    assert shown["title"] == "Fix login redirect"
    assert shown["is-blocked"] is False


def test_list_filters(project: Path):
    invoke_json(project, "add", "Schema")
    invoke_json(project, "add", "Migration", "--blocked-by", "1", "--category", "backend")

    everything = invoke_json(project, "list")
    assert everything["count"] == 2

    blocked = invoke_json(project, "list", "--blocked")
    assert [t["id"] for t in blocked["tasks"]] == [2]
    assert blocked["tasks"][0]["blocking-task-ids"] == [1]

    unblocked = invoke_json(project, "list", "--unblocked")
    assert [t["id"] for t in unblocked["tasks"]] == [1]

    by_category = invoke_json(project, "list", "--category", "backend")
    assert [t["title"] for t in by_category["tasks"]] == ["Migration"]

    limited = invoke_json(project, "list", "--limit", "1")
    assert limited["count"] == 1


def test_complete_unblocks_dependents(project: Path):
    invoke_json(project, "add", "Schema")
    invoke_json(project, "add", "Migration", "--blocked-by", "1")

    assert invoke_json(project, "why-blocked", "2")["is-blocked"] is True

    completed = invoke_json(project, "complete", "1", "-m", "shipped")
    assert completed["task"]["status"] == "closed"
    assert "completed and moved to" in completed["message"]

    assert invoke_json(project, "why-blocked", "2")["is-blocked"] is False
    assert invoke_json(project, "show", "1")["status"] == "closed"
    assert invoke_json(project, "list")["count"] == 1
    assert invoke_json(project, "list", "--status", "any")["count"] == 2


def test_story_lifecycle(project: Path):
    invoke_json(project, "add", "Checkout flow", "--type", "story")
    invoke_json(project, "add", "Validate cart", "--parent-id", "1")

    refused = invoke(project, "complete", "1")
    assert refused.exit_code == 1
    assert "Cannot complete story" in refused.output

    invoke_json(project, "complete", "2")
    done = invoke_json(project, "complete", "1")
    assert done["message"] == "Story 1 completed and archived with 1 child task"
    assert invoke_json(project, "list", "--status", "any", "--parent-id", "1")["count"] == 1


def test_update_reopen_delete(project: Path):
    invoke_json(project, "add", "Draft")
    updated = invoke_json(project, "update", "1", "--title", "Final", "--status", "in-progress")
    assert updated["task"]["title"] == "Final"
    assert updated["task"]["status"] == "in-progress"

    invoke_json(project, "complete", "1")
    reopened = invoke_json(project, "reopen", "1")
    assert reopened["task"]["status"] == "open"

    deleted = invoke_json(project, "delete", "1")
    assert deleted["message"] == "Task 1 deleted successfully"
    assert invoke_json(project, "list")["count"] == 0


def test_circular_dependency_is_rejected(project: Path):
    invoke_json(project, "add", "A")
    invoke_json(project, "add", "B", "--blocked-by", "1")

    result = invoke(project, "update", "1", "--blocked-by", "2")
    assert result.exit_code == 1
    assert "Circular dependency detected" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ("complete", "9"),
        ("show", "9"),
        ("list", "--status", "finished"),
        ("update", "1"),
        ("add", "Bad", "--relations-json", "{not json"),
        ("add", "Bad", "--meta", "novalue"),
    ],
)
def test_errors_exit_with_status_one(project: Path, args):
    result = invoke(project, *args)
    assert result.exit_code == 1
    assert "Error" in result.output


def test_invalid_relations_report_fields(project: Path):
    result = invoke(project, "add", "Bad", "--relations-json", '[{"id": 1}]')
    assert result.exit_code == 1
    assert "Invalid task schema" in result.output


def test_work_on_and_state(project: Path):
    invoke_json(project, "add", "Write docs")

    worked = invoke_json(project, "work-on", "1")
    assert worked["task-id"] == 1
    assert worked["execution-state-file"] == str((project / ".tasklog-current.json").resolve())

    state = invoke_json(project, "state", "show")
    assert state["task-id"] == 1
    assert "started-at" in state

    assert invoke_json(project, "state", "clear") == {"cleared": True}
    assert invoke_json(project, "state", "show") is None
    assert invoke_json(project, "state", "clear") == {"cleared": False}


def test_complete_clears_state(project: Path):
    invoke_json(project, "add", "Write docs")
    invoke_json(project, "work-on", "1")
    invoke_json(project, "complete", "1")
    assert invoke_json(project, "state", "show") is None


def test_config_file_in_parent_directory(project: Path):
    (project / ".tasklog.yaml").write_text("tasks_dir: shared-tasks\n", encoding="utf-8")
    (project / "shared-tasks").mkdir()
    nested = project / "src"
    nested.mkdir()

    invoke_json(nested, "add", "Found via parent config")
    assert (project / "shared-tasks" / "tasks.jsonl").exists()


def test_bad_config_is_reported(project: Path):
    (project / ".tasklog.yaml").write_text("branch_title_words: zero\n", encoding="utf-8")
    result = invoke(project, "list")
    assert result.exit_code == 1
    assert "branch_title_words" in result.output


def test_git_mode_requires_tasks_repository(project: Path):
    (project / ".tasklog.yaml").write_text("use_git: true\n", encoding="utf-8")
    result = invoke(project, "add", "Never committed")
    assert result.exit_code == 1
    assert "Git mode enabled" in result.output
    assert not (project / ".tasklog" / "tasks.jsonl").exists()


def test_verbose_logs_debug_to_stderr(project: Path):
    result = invoke(project, "--verbose", "list")
    assert result.exit_code == 0

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    formats = [h.formatter._fmt for h in root.handlers if h.formatter is not None]
    assert "%(asctime)s [%(levelname)s] %(name)s: %(message)s" in formats
